# ===================================
# promo_engine/schemas/promotion.py
# ===================================
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, Field, validator

from promo_engine.models.promotion import ApplyTo, DiscountType, PromotionType


class PromotionStatus(str, Enum):
    """Statut dérivé, jamais stocké"""
    INACTIVE = "inactive"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    EXPIRED = "expired"


class BogoConfig(BaseModel):
    buy_quantity: Optional[int] = None
    get_quantity: Optional[int] = None
    get_discount_percentage: Decimal = Decimal("100")
    apply_to: str = "same"  # "same" ou "different"
    get_product_id: Optional[str] = None  # Produit offert si apply_to == "different"


class FreeGiftConfig(BaseModel):
    product_id: Optional[str] = None
    threshold: Decimal = Decimal("0")
    quantity: int = 1


class Promotion(BaseModel):
    """Instantané en lecture seule d'une promotion, consommé par le moteur"""
    id: str
    name: str = ""
    description: Optional[str] = None
    code: Optional[str] = None
    type: PromotionType
    discount_type: DiscountType
    discount_value: Decimal
    max_discount: Optional[Decimal] = None
    apply_to: ApplyTo = ApplyTo.ORDER
    product_ids: List[str] = []
    category_ids: List[str] = []
    customer_ids: List[str] = []
    min_purchase: Optional[Decimal] = None
    min_quantity: Optional[int] = None
    max_quantity: Optional[int] = None
    bogo_config: Optional[BogoConfig] = None
    free_gift_config: Optional[FreeGiftConfig] = None
    usage_limit: Optional[int] = None
    per_user_limit: Optional[int] = None
    usage_count: int = 0
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    priority: int = 0
    can_stack: bool = False
    stacks_with: List[str] = []
    is_ai_generated: bool = False
    is_public: bool = True
    show_on_website: bool = True

    class Config:
        from_attributes = True

    @validator("product_ids", "category_ids", "customer_ids", "stacks_with", pre=True)
    def none_as_empty(cls, v):
        return v or []

    @property
    def requires_code(self) -> bool:
        """Une promotion portant un code ne s'applique qu'avec ce code"""
        return self.type == PromotionType.COUPON or bool(self.code)


class PromotionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    code: Optional[str] = Field(None, max_length=64)
    type: PromotionType
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0)
    max_discount: Optional[Decimal] = Field(None, ge=0)
    apply_to: ApplyTo = ApplyTo.ORDER
    product_ids: List[str] = []
    category_ids: List[str] = []
    customer_ids: List[str] = []
    min_purchase: Optional[Decimal] = Field(None, ge=0)
    min_quantity: Optional[int] = Field(None, ge=0)
    max_quantity: Optional[int] = Field(None, ge=0)
    bogo_config: Optional[BogoConfig] = None
    free_gift_config: Optional[FreeGiftConfig] = None
    usage_limit: Optional[int] = Field(None, ge=0)
    per_user_limit: Optional[int] = Field(None, ge=0)
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    priority: int = 0
    can_stack: bool = False
    stacks_with: List[str] = []
    is_ai_generated: bool = False
    is_public: bool = True
    show_on_website: bool = True
    tags: List[str] = []
    internal_notes: Optional[str] = None

    class Config:
        extra = "forbid"

    @validator("code")
    def normalize_code(cls, v):
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


class PromotionUpdate(BaseModel):
    """Commande de mise à jour typée : chaque champ modifiable est optionnel,
    tout champ inconnu est refusé."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    code: Optional[str] = Field(None, max_length=64)
    type: Optional[PromotionType] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, ge=0)
    apply_to: Optional[ApplyTo] = None
    product_ids: Optional[List[str]] = None
    category_ids: Optional[List[str]] = None
    customer_ids: Optional[List[str]] = None
    min_purchase: Optional[Decimal] = Field(None, ge=0)
    min_quantity: Optional[int] = Field(None, ge=0)
    max_quantity: Optional[int] = Field(None, ge=0)
    bogo_config: Optional[BogoConfig] = None
    free_gift_config: Optional[FreeGiftConfig] = None
    usage_limit: Optional[int] = Field(None, ge=0)
    per_user_limit: Optional[int] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    can_stack: Optional[bool] = None
    stacks_with: Optional[List[str]] = None
    is_public: Optional[bool] = None
    show_on_website: Optional[bool] = None
    tags: Optional[List[str]] = None
    internal_notes: Optional[str] = None

    class Config:
        extra = "forbid"

    @validator("code")
    def normalize_code(cls, v):
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


class PromotionUsageRecord(BaseModel):
    id: int
    promotion_id: str
    user_id: Optional[str] = None
    order_id: str
    discount_amount: Decimal
    subtotal_before: Decimal
    total_after: Decimal
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PromotionDetail(Promotion):
    """Version administrateur avec statistiques d'utilisation"""
    tags: List[str] = []
    internal_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    status: PromotionStatus
    usage_percentage: Optional[float] = None
    recent_usages: List[PromotionUsageRecord] = []


class ProductPromotion(BaseModel):
    """Résumé public affiché sur une fiche produit"""
    id: str
    name: str
    description: Optional[str] = None
    type: PromotionType
    discount_type: DiscountType
    discount_value: Decimal
    code: Optional[str] = None

    class Config:
        from_attributes = True


class PromotionResponse(BaseModel):
    success: bool = True
    message: str
    data: PromotionDetail


class PromotionsListResponse(BaseModel):
    success: bool = True
    data: List[PromotionDetail]
    total: int


class PromotionStatsResponse(BaseModel):
    success: bool = True
    message: str
    data: dict
