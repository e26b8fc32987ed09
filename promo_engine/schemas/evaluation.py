# ===================================
# promo_engine/schemas/evaluation.py
# ===================================
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from promo_engine.core.exceptions import RejectionReason
from promo_engine.schemas.cart import CartItem
from promo_engine.schemas.promotion import PromotionUsageRecord


class AppliedPromotion(BaseModel):
    promotion_id: str
    code: Optional[str] = None
    name: str = ""
    scope_amount: Decimal
    discount_amount: Decimal


class InducedLineItem(BaseModel):
    """Ligne ajoutée par une promotion (cadeau offert)"""
    promotion_id: str
    product_id: str
    quantity: int = 1
    unit_price: Decimal = Decimal("0")


class PromotionRejection(BaseModel):
    promotion_id: Optional[str] = None
    code: Optional[str] = None
    reason: RejectionReason
    message: str


class EvaluationResult(BaseModel):
    currency: str
    subtotal: Decimal
    applied: List[AppliedPromotion] = []
    induced_items: List[InducedLineItem] = []
    rejections: List[PromotionRejection] = []
    total_discount: Decimal
    final_total: Decimal

    def rejection_for(self, promotion_id: str) -> Optional[PromotionRejection]:
        return next(
            (r for r in self.rejections if r.promotion_id == promotion_id), None
        )


class RedemptionResult(BaseModel):
    """Issue d'un encaissement : un échec est un avertissement, pas une erreur"""
    redeemed: bool
    record: Optional[PromotionUsageRecord] = None
    reason: Optional[RejectionReason] = None
    message: str


# Requêtes de l'API

class EvaluateRequest(BaseModel):
    items: List[CartItem] = Field(default_factory=list)
    customer_id: Optional[str] = None
    code: Optional[str] = None
    now: Optional[datetime] = None


class ValidateCouponRequest(BaseModel):
    code: str = Field(min_length=1)
    items: List[CartItem] = Field(default_factory=list)
    customer_id: Optional[str] = None


class RedeemRequest(BaseModel):
    promotion_id: str
    customer_id: Optional[str] = None
    order_id: str = Field(min_length=1)
    discount_amount: Decimal = Field(ge=0)
    subtotal: Decimal = Field(ge=0)
    total: Decimal = Field(ge=0)


class EvaluationResponse(BaseModel):
    success: bool = True
    message: str
    data: EvaluationResult


class RedemptionResponse(BaseModel):
    success: bool = True
    message: str
    data: RedemptionResult


class CouponValidation(BaseModel):
    """Réponse de la case « code promo » du panier"""
    valid: bool
    code: str
    promotion_id: Optional[str] = None
    discount_amount: Decimal = Decimal("0")
    reason: Optional[RejectionReason] = None
    message: str
    evaluation: EvaluationResult


class CouponValidationResponse(BaseModel):
    success: bool = True
    message: str
    data: CouponValidation
