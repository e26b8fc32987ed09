# ===================================
# promo_engine/api/deps.py
# ===================================
from fastapi import Depends
from sqlalchemy.orm import Session

from promo_engine.core.database import get_db
from promo_engine.services.checkout_service import CheckoutService
from promo_engine.services.promotion_service import PromotionService


def get_promotion_service(db: Session = Depends(get_db)) -> PromotionService:
    return PromotionService(db)


def get_checkout_service(db: Session = Depends(get_db)) -> CheckoutService:
    return CheckoutService(db)


def get_pagination_params(
    skip: int = 0,
    limit: int = 50
) -> tuple[int, int]:
    """
    Paramètres de pagination communs
    """
    if skip < 0:
        skip = 0
    if limit < 1:
        limit = 1
    if limit > 100:
        limit = 100

    return skip, limit
