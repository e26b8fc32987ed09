# ===================================
# promo_engine/engine/facade.py
# ===================================
"""
Point d'entrée du moteur : `evaluate` avant le paiement, `redeem` après.

`evaluate` est pur et sans état ; il peut être appelé en parallèle et
rejoué sans effet de bord. `redeem` délègue au registre d'utilisation,
seule opération avec état.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from promo_engine.core.exceptions import (
    DiscountConflict,
    InvalidPromotionDefinition,
    RejectionReason,
    rejection_message,
)
from promo_engine.engine.clock import utcnow
from promo_engine.engine.ledger import UsageLedger
from promo_engine.engine.matcher import check_eligibility
from promo_engine.engine.money import DEFAULT_QUANTUM, round_money
from promo_engine.engine.resolver import resolve, sort_candidates
from promo_engine.engine.validation import validate_promotion_definition
from promo_engine.schemas.cart import CartSnapshot, CustomerRef
from promo_engine.schemas.evaluation import (
    EvaluationResult,
    PromotionRejection,
    RedemptionResult,
)
from promo_engine.schemas.promotion import Promotion

logger = logging.getLogger(__name__)

# Motifs renvoyés quand la promotion a été atteinte par un code saisi
_CODE_REASONS = {
    RejectionReason.EXPIRED: RejectionReason.CODE_EXPIRED,
    RejectionReason.NOT_YET_ACTIVE: RejectionReason.CODE_NOT_YET_ACTIVE,
    RejectionReason.INACTIVE: RejectionReason.CODE_INACTIVE,
}


def normalize_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    code = code.strip().upper()
    return code or None


def _rejection(promotion: Optional[Promotion], reason: RejectionReason,
               code: Optional[str] = None) -> PromotionRejection:
    return PromotionRejection(
        promotion_id=promotion.id if promotion else None,
        code=promotion.code if promotion and promotion.code else code,
        reason=reason,
        message=rejection_message(reason),
    )


class PromotionEngine:
    """Façade du moteur d'évaluation des promotions"""

    def __init__(
        self,
        quantum: Decimal = DEFAULT_QUANTUM,
        currency: str = "USD",
        ledger: Optional[UsageLedger] = None,
        allow_guests: bool = True,
    ):
        self.quantum = quantum
        self.currency = currency
        self.ledger = ledger
        self.allow_guests = allow_guests

    def evaluate(
        self,
        cart: CartSnapshot,
        customer: Optional[CustomerRef],
        code: Optional[str],
        now: Optional[datetime],
        candidate_promotions: Iterable[Promotion],
    ) -> EvaluationResult:
        """Détermine les promotions applicables et le total remisé"""
        now = now or utcnow()
        code = normalize_code(code)

        eligible: List[Promotion] = []
        rejections: List[PromotionRejection] = []
        code_matched = False

        for promotion in sort_candidates(candidate_promotions):
            if promotion.requires_code:
                # Un coupon non saisi n'est pas un refus, il est simplement ignoré
                if code is None or normalize_code(promotion.code) != code:
                    continue
                code_matched = True

            try:
                validate_promotion_definition(promotion)
            except InvalidPromotionDefinition as exc:
                logger.warning(exc.message)
                rejections.append(_rejection(promotion, RejectionReason.INVALID_DEFINITION))
                continue

            reason = check_eligibility(
                promotion, cart, customer, now, code=code, allow_guests=self.allow_guests
            )
            if reason is not None:
                if promotion.requires_code:
                    reason = _CODE_REASONS.get(reason, reason)
                logger.debug(f"Promotion {promotion.id} refusée : {reason.value}")
                rejections.append(_rejection(promotion, reason))
                continue

            eligible.append(promotion)

        if code is not None and not code_matched:
            rejections.append(_rejection(None, RejectionReason.CODE_NOT_FOUND, code=code))

        combination = resolve(eligible, cart, self.quantum)
        for promotion in combination.skipped:
            rejections.append(_rejection(promotion, RejectionReason.NOT_COMBINABLE))

        result = EvaluationResult(
            currency=self.currency,
            subtotal=combination.subtotal,
            applied=combination.applied,
            induced_items=combination.induced_items,
            rejections=rejections,
            total_discount=combination.total_discount,
            final_total=round_money(combination.final_total, self.quantum),
        )
        logger.info(
            f"Évaluation : {len(result.applied)} promotion(s) appliquée(s), "
            f"remise {result.total_discount} {self.currency}"
        )
        return result

    def redeem(
        self,
        promotion_id: str,
        customer_id: Optional[str],
        order_id: str,
        discount_amount: Decimal,
        subtotal: Decimal,
        total: Decimal,
    ) -> RedemptionResult:
        """
        Encaisse une promotion après paiement réussi.
        Un échec ne remet pas en cause la commande : il est journalisé et
        renvoyé comme avertissement à l'appelant.
        """
        if self.ledger is None:
            raise RuntimeError("Aucun registre d'utilisation configuré")

        try:
            record = self.ledger.try_redeem(
                promotion_id, customer_id, order_id, discount_amount, subtotal, total
            )
        except DiscountConflict as exc:
            logger.warning(
                f"Encaissement refusé pour {promotion_id} (commande {order_id}) : {exc.message}"
            )
            return RedemptionResult(
                redeemed=False,
                reason=exc.reason,
                message=rejection_message(exc.reason),
            )

        logger.info(f"Promotion {promotion_id} encaissée pour la commande {order_id}")
        return RedemptionResult(
            redeemed=True,
            record=record,
            message="Promotion encaissée avec succès",
        )
