# ===================================
# promo_engine/services/checkout_service.py
# ===================================
"""
Service utilisé par le tunnel de commande : évaluation du panier avant
paiement, validation d'un code promo, encaissement après paiement.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session

from promo_engine.core.config import settings
from promo_engine.core.exceptions import rejection_message
from promo_engine.engine.clock import utcnow
from promo_engine.engine.facade import PromotionEngine, normalize_code
from promo_engine.models.promotion import PromotionType
from promo_engine.repositories.promotion_repo import PromotionRepository
from promo_engine.repositories.usage_ledger import SqlUsageLedger
from promo_engine.schemas.cart import CartItem, CartSnapshot, CustomerRef
from promo_engine.schemas.evaluation import (
    CouponValidation,
    EvaluationResult,
    RedemptionResult,
)
from promo_engine.schemas.promotion import Promotion as PromotionSnapshot, ProductPromotion

logger = logging.getLogger(__name__)


class CheckoutService:
    """Service pour l'application des promotions au panier"""

    def __init__(self, db: Session):
        self.db = db
        self.promotion_repo = PromotionRepository(db)
        self.engine = PromotionEngine(
            quantum=settings.money_quantum,
            currency=settings.currency,
            ledger=SqlUsageLedger(
                db,
                lock_timeout_ms=settings.ledger_lock_timeout_ms,
                allow_guests=settings.allow_guest_redemption,
            ),
            allow_guests=settings.allow_guest_redemption,
        )

    def _load_customer(self, customer_id: Optional[str],
                       promotions: List[PromotionSnapshot]) -> Optional[CustomerRef]:
        if not customer_id:
            return None
        counts = self.promotion_repo.get_user_redemption_counts(
            customer_id, [p.id for p in promotions]
        )
        return CustomerRef(id=customer_id, redemption_counts=counts)

    def evaluate(self, items: List[CartItem], customer_id: Optional[str] = None,
                 code: Optional[str] = None,
                 now: Optional[datetime] = None) -> EvaluationResult:
        """
        Évaluer un panier : charge les promotions candidates et l'historique
        du client, puis délègue au moteur. Aucune écriture en base.
        """
        now = now or utcnow()
        code = normalize_code(code)

        candidates = [
            PromotionSnapshot.model_validate(promotion)
            for promotion in self.promotion_repo.get_candidate_promotions(now, code)
        ]
        customer = self._load_customer(customer_id, candidates)

        return self.engine.evaluate(
            cart=CartSnapshot(items=items),
            customer=customer,
            code=code,
            now=now,
            candidate_promotions=candidates,
        )

    def validate_coupon(self, code: str, items: List[CartItem],
                        customer_id: Optional[str] = None,
                        now: Optional[datetime] = None) -> CouponValidation:
        """Valider un code promo sur le panier courant"""
        code = normalize_code(code) or ""
        result = self.evaluate(items, customer_id=customer_id, code=code, now=now)

        applied = next((a for a in result.applied if a.code == code), None)
        if applied is not None:
            return CouponValidation(
                valid=True,
                code=code,
                promotion_id=applied.promotion_id,
                discount_amount=applied.discount_amount,
                message=f"Code promo appliqué : -{applied.discount_amount} {result.currency}",
                evaluation=result,
            )

        rejection = next((r for r in result.rejections if r.code == code), None)
        if rejection is None:
            # Ne devrait pas arriver : un code saisi est soit appliqué soit refusé
            logger.error(f"Code {code} ni appliqué ni refusé")
            return CouponValidation(
                valid=False,
                code=code,
                message="Code promo non applicable",
                evaluation=result,
            )

        return CouponValidation(
            valid=False,
            code=code,
            promotion_id=rejection.promotion_id,
            reason=rejection.reason,
            message=rejection_message(rejection.reason),
            evaluation=result,
        )

    def redeem(self, promotion_id: str, customer_id: Optional[str], order_id: str,
               discount_amount: Decimal, subtotal: Decimal,
               total: Decimal) -> RedemptionResult:
        """Encaisser une promotion après un paiement réussi"""
        return self.engine.redeem(
            promotion_id=promotion_id,
            customer_id=customer_id,
            order_id=order_id,
            discount_amount=discount_amount,
            subtotal=subtotal,
            total=total,
        )

    def get_product_promotions(self, product_id: str,
                               category_id: Optional[str] = None,
                               now: Optional[datetime] = None) -> List[ProductPromotion]:
        """Promotions affichées sur la fiche d'un produit"""
        promotions = []
        for promotion in self.promotion_repo.get_showcased_promotions(now or utcnow()):
            if (
                product_id in (promotion.product_ids or [])
                or (category_id and category_id in (promotion.category_ids or []))
                or promotion.type == PromotionType.AUTOMATIC.value
            ):
                promotions.append(ProductPromotion.model_validate(promotion))
        return promotions
