# ===================================
# promo_engine/repositories/usage_ledger.py
# ===================================
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update, func, or_, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from promo_engine.core.exceptions import DiscountConflict, RejectionReason
from promo_engine.engine.ledger import UsageLedger
from promo_engine.models.promotion import Promotion, PromotionUsage
from promo_engine.schemas.promotion import PromotionUsageRecord

logger = logging.getLogger(__name__)


class SqlUsageLedger(UsageLedger):
    """
    Registre d'utilisation adossé à la base.

    Une seule transaction par promotion et par commande : incrément
    conditionnel du compteur, comptage des utilisations du client,
    insertion de la ligne immuable. Ne jamais rejouer un encaissement
    échoué : seul le pré-contrôle de l'évaluation est rejouable.
    """

    def __init__(self, db: Session, lock_timeout_ms: int = 2000, allow_guests: bool = True):
        self.db = db
        self.lock_timeout_ms = lock_timeout_ms
        self.allow_guests = allow_guests

    def _existing_usage(self, promotion_id: str, order_id: str) -> Optional[PromotionUsage]:
        return self.db.scalar(
            select(PromotionUsage).where(
                PromotionUsage.promotion_id == promotion_id,
                PromotionUsage.order_id == order_id,
            )
        )

    def _set_lock_timeout(self) -> None:
        # Transaction courte : une seule mise à jour conditionnelle
        if self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text(f"SET LOCAL lock_timeout = {int(self.lock_timeout_ms)}"))

    def try_redeem(
        self,
        promotion_id: str,
        customer_id: Optional[str],
        order_id: str,
        discount_amount: Decimal,
        subtotal: Decimal,
        total: Decimal,
    ) -> PromotionUsageRecord:
        try:
            existing = self._existing_usage(promotion_id, order_id)
            if existing is not None:
                logger.debug(f"Encaissement déjà enregistré pour {promotion_id}/{order_id}")
                return PromotionUsageRecord.model_validate(existing)

            self._set_lock_timeout()

            promotion = self.db.get(Promotion, promotion_id)
            if promotion is None:
                raise DiscountConflict(
                    f"Promotion {promotion_id} introuvable", RejectionReason.CODE_NOT_FOUND
                )

            if promotion.per_user_limit is not None and customer_id is None and not self.allow_guests:
                raise DiscountConflict(
                    f"Promotion {promotion_id} réservée aux clients identifiés",
                    RejectionReason.NOT_APPLICABLE_TO_CART,
                )

            # UPDATE ... SET usage_count = usage_count + 1
            # WHERE id = ? AND is_active AND (usage_limit IS NULL OR usage_count < usage_limit)
            result = self.db.execute(
                update(Promotion)
                .where(
                    Promotion.id == promotion_id,
                    Promotion.is_active == True,  # noqa: E712
                    or_(
                        Promotion.usage_limit.is_(None),
                        Promotion.usage_count < Promotion.usage_limit,
                    ),
                )
                .values(usage_count=Promotion.usage_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Désactivée entre l'évaluation et le paiement, ou limite atteinte
                self.db.refresh(promotion)
                if not promotion.is_active:
                    raise DiscountConflict(
                        f"Promotion {promotion_id} désactivée", RejectionReason.INACTIVE
                    )
                raise DiscountConflict(
                    f"Limite globale atteinte pour la promotion {promotion_id}",
                    RejectionReason.USAGE_LIMIT_EXCEEDED,
                )

            if promotion.per_user_limit is not None and customer_id is not None:
                used = self.db.scalar(
                    select(func.count(PromotionUsage.id)).where(
                        PromotionUsage.promotion_id == promotion_id,
                        PromotionUsage.user_id == customer_id,
                    )
                ) or 0
                if used >= promotion.per_user_limit:
                    raise DiscountConflict(
                        f"Limite par client atteinte pour la promotion {promotion_id}",
                        RejectionReason.USAGE_LIMIT_EXCEEDED,
                    )

            usage = PromotionUsage(
                promotion_id=promotion_id,
                user_id=customer_id,
                order_id=order_id,
                discount_amount=discount_amount,
                subtotal_before=subtotal,
                total_after=total,
            )
            self.db.add(usage)
            self.db.commit()
        except DiscountConflict:
            self.db.rollback()
            raise
        except IntegrityError as exc:
            # Une transaction concurrente a encaissé la même commande
            self.db.rollback()
            raise DiscountConflict(
                f"Encaissement concurrent pour {promotion_id}/{order_id}",
                RejectionReason.DISCOUNT_CONFLICT,
            ) from exc
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(
                f"Erreur base de données lors de l'encaissement de {promotion_id}",
                exc_info=True,
            )
            raise

        self.db.refresh(usage)
        return PromotionUsageRecord.model_validate(usage)
