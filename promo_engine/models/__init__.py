"""
Models package initialization.
This file imports all models to make them available to Alembic for autogeneration.
"""

# IMPORTANT: Utiliser la MÊME Base que celle de database.py
from promo_engine.core.database import Base

from .promotion import (  # noqa: F401
    ApplyTo,
    DiscountType,
    Promotion,
    PromotionType,
    PromotionUsage,
)

# Export Base so it can be imported from promo_engine.models
__all__ = [
    'Base',
    'ApplyTo',
    'DiscountType',
    'Promotion',
    'PromotionType',
    'PromotionUsage',
]
