# ===================================
# promo_engine/engine/ledger.py
# ===================================
"""
Registre d'utilisation des promotions.

`try_redeem` incrémente le compteur d'une promotion uniquement si les
limites tiennent encore au moment de l'écriture, et produit la ligne
d'utilisation immuable. Un encaissement perdu lève DiscountConflict.
"""
import logging
import threading
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from promo_engine.core.exceptions import DiscountConflict, RejectionReason
from promo_engine.engine.clock import utcnow
from promo_engine.schemas.promotion import Promotion, PromotionUsageRecord

logger = logging.getLogger(__name__)


class UsageLedger(ABC):

    @abstractmethod
    def try_redeem(
        self,
        promotion_id: str,
        customer_id: Optional[str],
        order_id: str,
        discount_amount: Decimal,
        subtotal: Decimal,
        total: Decimal,
    ) -> PromotionUsageRecord:
        """Encaisse une promotion pour une commande, ou lève DiscountConflict"""


class InMemoryUsageLedger(UsageLedger):
    """
    Registre en mémoire, sûr entre threads (un verrou par registre).

    `prior_redemptions` reprend l'historique par client :
    {(promotion_id, user_id): nombre d'utilisations}.
    """

    def __init__(
        self,
        promotions: Iterable[Promotion] = (),
        allow_guests: bool = True,
        prior_redemptions: Optional[Dict[Tuple[str, str], int]] = None,
    ):
        self._lock = threading.Lock()
        self._allow_guests = allow_guests
        self._promotions: Dict[str, Promotion] = {}
        self._usage_counts: Dict[str, int] = {}
        self._records: List[PromotionUsageRecord] = []
        self._by_order: Dict[Tuple[str, str], PromotionUsageRecord] = {}
        self._user_counts: Dict[Tuple[str, str], int] = dict(prior_redemptions or {})
        for promotion in promotions:
            self.register(promotion)

    def register(self, promotion: Promotion) -> None:
        with self._lock:
            self._promotions[promotion.id] = promotion
            self._usage_counts[promotion.id] = promotion.usage_count

    def usage_count(self, promotion_id: str) -> int:
        with self._lock:
            return self._usage_counts.get(promotion_id, 0)

    def records(self) -> List[PromotionUsageRecord]:
        with self._lock:
            return list(self._records)

    def try_redeem(
        self,
        promotion_id: str,
        customer_id: Optional[str],
        order_id: str,
        discount_amount: Decimal,
        subtotal: Decimal,
        total: Decimal,
    ) -> PromotionUsageRecord:
        with self._lock:
            existing = self._by_order.get((promotion_id, order_id))
            if existing is not None:
                # Même commande déjà encaissée : on renvoie la ligne existante
                logger.debug(f"Encaissement déjà enregistré pour {promotion_id}/{order_id}")
                return existing

            promotion = self._promotions.get(promotion_id)
            if promotion is None:
                raise DiscountConflict(
                    f"Promotion {promotion_id} introuvable", RejectionReason.CODE_NOT_FOUND
                )

            if not promotion.is_active:
                raise DiscountConflict(
                    f"Promotion {promotion_id} désactivée", RejectionReason.INACTIVE
                )

            count = self._usage_counts[promotion_id]
            if promotion.usage_limit is not None and count >= promotion.usage_limit:
                raise DiscountConflict(
                    f"Limite globale atteinte pour la promotion {promotion_id}",
                    RejectionReason.USAGE_LIMIT_EXCEEDED,
                )

            if promotion.per_user_limit is not None:
                if customer_id is None:
                    if not self._allow_guests:
                        raise DiscountConflict(
                            f"Promotion {promotion_id} réservée aux clients identifiés",
                            RejectionReason.NOT_APPLICABLE_TO_CART,
                        )
                else:
                    used = self._user_counts.get((promotion_id, customer_id), 0)
                    if used >= promotion.per_user_limit:
                        raise DiscountConflict(
                            f"Limite par client atteinte pour la promotion {promotion_id}",
                            RejectionReason.USAGE_LIMIT_EXCEEDED,
                        )

            self._usage_counts[promotion_id] = count + 1
            if customer_id is not None:
                key = (promotion_id, customer_id)
                self._user_counts[key] = self._user_counts.get(key, 0) + 1
            record = PromotionUsageRecord(
                id=len(self._records) + 1,
                promotion_id=promotion_id,
                user_id=customer_id,
                order_id=order_id,
                discount_amount=discount_amount,
                subtotal_before=subtotal,
                total_after=total,
                created_at=utcnow(),
            )
            self._records.append(record)
            self._by_order[(promotion_id, order_id)] = record
            return record
