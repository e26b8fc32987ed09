# ===================================
# Fichier: promo_engine/models/promotion.py
# ===================================
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, DECIMAL, Text, ForeignKey, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
import uuid

from promo_engine.core.database import Base

# JSONB sur PostgreSQL, JSON générique ailleurs (SQLite en test)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class PromotionType(str, enum.Enum):
    """Types de promotion"""
    COUPON = "COUPON"                        # Code à saisir
    AUTOMATIC = "AUTOMATIC"                  # Appliquée sans code
    CART_DISCOUNT = "CART_DISCOUNT"          # Remise sur le panier
    ORDER_DISCOUNT = "ORDER_DISCOUNT"        # Remise sur la commande
    PRODUCT_DISCOUNT = "PRODUCT_DISCOUNT"    # Remise sur des produits
    CATEGORY_DISCOUNT = "CATEGORY_DISCOUNT"  # Remise sur des catégories
    BOGO = "BOGO"                            # Achetez X, obtenez Y
    FREE_GIFT = "FREE_GIFT"                  # Cadeau offert
    FREE_SHIPPING = "FREE_SHIPPING"          # Livraison offerte (gérée ailleurs)
    CUSTOMER_SPECIFIC = "CUSTOMER_SPECIFIC"  # Réservée à certains clients


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FIXED_PRICE = "FIXED_PRICE"


class ApplyTo(str, enum.Enum):
    """Périmètre sur lequel la remise est calculée"""
    ORDER = "ORDER"
    PRODUCT = "PRODUCT"
    CATEGORY = "CATEGORY"


def _new_id() -> str:
    return str(uuid.uuid4())


class Promotion(Base):
    __tablename__ = "promotion"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    code = Column(String, unique=True, index=True, nullable=True)  # Toujours en majuscules

    # Type et valeur de la remise
    type = Column(String, nullable=False, index=True)  # PromotionType
    discount_type = Column(String, nullable=False)  # DiscountType
    discount_value = Column(DECIMAL(10, 2), nullable=False)
    max_discount = Column(DECIMAL(10, 2), nullable=True)  # Remise maximum
    apply_to = Column(String, nullable=False, default=ApplyTo.ORDER.value)

    # Ciblage (liste vide = pas de restriction)
    product_ids = Column(JSONType, nullable=False, default=list)
    category_ids = Column(JSONType, nullable=False, default=list)
    customer_ids = Column(JSONType, nullable=False, default=list)

    # Seuils
    min_purchase = Column(DECIMAL(10, 2), nullable=True)
    min_quantity = Column(Integer, nullable=True)
    max_quantity = Column(Integer, nullable=True)

    # Configurations spécifiques (JSON)
    bogo_config = Column(JSONType, nullable=True)
    free_gift_config = Column(JSONType, nullable=True)

    # Limites d'utilisation
    usage_limit = Column(Integer, nullable=True)  # Limite globale
    per_user_limit = Column(Integer, nullable=True)  # Limite par utilisateur
    usage_count = Column(Integer, nullable=False, default=0)

    # Validité [start_date, end_date)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Cumul
    priority = Column(Integer, nullable=False, default=0)
    can_stack = Column(Boolean, nullable=False, default=False)
    stacks_with = Column(JSONType, nullable=False, default=list)

    # Métadonnées (non utilisées par l'évaluation)
    is_ai_generated = Column(Boolean, default=False)
    is_public = Column(Boolean, default=True)
    show_on_website = Column(Boolean, default=True)
    tags = Column(JSONType, nullable=False, default=list)
    internal_notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relations
    usages = relationship("PromotionUsage", back_populates="promotion")

    __table_args__ = (
        Index("ix_promotion_active_window", "is_active", "start_date", "end_date"),
    )

    def __repr__(self):
        return f"<Promotion(id={self.id}, code='{self.code}', type={self.type})>"


class PromotionUsage(Base):
    """Une ligne par encaissement réussi. Immuable."""
    __tablename__ = "promotion_usage"

    id = Column(Integer, primary_key=True, index=True)
    promotion_id = Column(
        String(36), ForeignKey("promotion.id", ondelete="RESTRICT"), nullable=False
    )
    user_id = Column(String, nullable=True, index=True)  # None pour un invité
    order_id = Column(String, nullable=False, index=True)

    discount_amount = Column(DECIMAL(10, 2), nullable=False)
    subtotal_before = Column(DECIMAL(10, 2), nullable=False)
    total_after = Column(DECIMAL(10, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    promotion = relationship("Promotion", back_populates="usages")

    __table_args__ = (
        UniqueConstraint("promotion_id", "order_id", name="uq_promotion_usage_order"),
        Index("ix_promotion_usage_promotion_user", "promotion_id", "user_id"),
    )

    def __repr__(self):
        return (
            f"<PromotionUsage(id={self.id}, promotion_id={self.promotion_id}, "
            f"order_id='{self.order_id}')>"
        )
