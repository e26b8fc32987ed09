# ===================================
# promo_engine/engine/matcher.py
# ===================================
"""
Éligibilité structurelle d'une promotion pour un panier et un client.

Prédicat pur sur des instantanés : aucune lecture ni écriture en base.
Les contrôles sont faits dans l'ordre et le premier échec est renvoyé.
"""
from datetime import datetime
from typing import Optional

from promo_engine.core.exceptions import RejectionReason
from promo_engine.engine.calculator import count_bogo_units, free_gift_threshold_met
from promo_engine.engine.clock import as_utc
from promo_engine.engine.scope import DiscountScope, build_scope
from promo_engine.models.promotion import ApplyTo, PromotionType
from promo_engine.schemas.cart import CartSnapshot, CustomerRef
from promo_engine.schemas.promotion import Promotion, PromotionStatus


def derive_status(promotion: Promotion, now: datetime) -> PromotionStatus:
    """Statut calculé à la lecture à partir de is_active et de [start_date, end_date)"""
    if not promotion.is_active:
        return PromotionStatus.INACTIVE
    now = as_utc(now)
    if now < as_utc(promotion.start_date):
        return PromotionStatus.SCHEDULED
    if now >= as_utc(promotion.end_date):
        return PromotionStatus.EXPIRED
    return PromotionStatus.ACTIVE


_STATUS_REJECTIONS = {
    PromotionStatus.INACTIVE: RejectionReason.INACTIVE,
    PromotionStatus.SCHEDULED: RejectionReason.NOT_YET_ACTIVE,
    PromotionStatus.EXPIRED: RejectionReason.EXPIRED,
}


def _check_targeting(
    promotion: Promotion,
    cart: CartSnapshot,
    customer: Optional[CustomerRef],
    scope: DiscountScope,
) -> Optional[RejectionReason]:
    if promotion.customer_ids and (customer is None or customer.id not in promotion.customer_ids):
        return RejectionReason.NOT_APPLICABLE_TO_CART
    if cart.is_empty():
        return RejectionReason.NOT_APPLICABLE_TO_CART
    if promotion.apply_to in (ApplyTo.PRODUCT, ApplyTo.CATEGORY) and scope.is_empty():
        return RejectionReason.NOT_APPLICABLE_TO_CART
    return None


def _check_thresholds(promotion: Promotion, scope: DiscountScope) -> Optional[RejectionReason]:
    if promotion.min_purchase is not None and scope.subtotal < promotion.min_purchase:
        return RejectionReason.THRESHOLD_NOT_MET
    if promotion.min_quantity is not None and scope.quantity < promotion.min_quantity:
        return RejectionReason.THRESHOLD_NOT_MET
    if promotion.max_quantity is not None and scope.quantity > promotion.max_quantity:
        return RejectionReason.THRESHOLD_NOT_MET

    # Formes à seuil propre : au moins un groupe BOGO complet, seuil du cadeau
    if promotion.type == PromotionType.BOGO and count_bogo_units(promotion, scope) == 0:
        return RejectionReason.THRESHOLD_NOT_MET
    if promotion.type == PromotionType.FREE_GIFT and not free_gift_threshold_met(promotion, scope):
        return RejectionReason.THRESHOLD_NOT_MET
    return None


def _check_usage(
    promotion: Promotion,
    customer: Optional[CustomerRef],
    allow_guests: bool,
) -> Optional[RejectionReason]:
    # Pré-contrôle optimiste, revérifié atomiquement à l'encaissement
    if promotion.usage_limit is not None and promotion.usage_count >= promotion.usage_limit:
        return RejectionReason.USAGE_LIMIT_EXCEEDED
    if promotion.per_user_limit is not None:
        if customer is None:
            if not allow_guests:
                return RejectionReason.NOT_APPLICABLE_TO_CART
        elif customer.redemptions_of(promotion.id) >= promotion.per_user_limit:
            return RejectionReason.USAGE_LIMIT_EXCEEDED
    return None


def _check_code(promotion: Promotion, code: Optional[str]) -> Optional[RejectionReason]:
    if not promotion.requires_code:
        return None
    if not code or not promotion.code or promotion.code.upper() != code.strip().upper():
        return RejectionReason.CODE_NOT_FOUND
    return None


def check_eligibility(
    promotion: Promotion,
    cart: CartSnapshot,
    customer: Optional[CustomerRef],
    now: datetime,
    code: Optional[str] = None,
    allow_guests: bool = True,
) -> Optional[RejectionReason]:
    """Retourne None si la promotion est éligible, sinon le premier motif de refus"""
    status = derive_status(promotion, now)
    if status != PromotionStatus.ACTIVE:
        return _STATUS_REJECTIONS[status]

    scope = build_scope(promotion, cart)

    return (
        _check_targeting(promotion, cart, customer, scope)
        or _check_thresholds(promotion, scope)
        or _check_usage(promotion, customer, allow_guests)
        or _check_code(promotion, code)
    )


def is_eligible(
    promotion: Promotion,
    cart: CartSnapshot,
    customer: Optional[CustomerRef],
    now: datetime,
    code: Optional[str] = None,
    allow_guests: bool = True,
) -> bool:
    return check_eligibility(promotion, cart, customer, now, code, allow_guests) is None
