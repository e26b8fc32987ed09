# ===================================
# promo_engine/core/exceptions.py
# ===================================
"""
Erreurs du domaine des promotions.

Les refus survenant pendant l'évaluation d'un panier ne sont jamais levés :
ils sont renvoyés sous forme de `PromotionRejection` dans le résultat.
Ces exceptions couvrent la définition des promotions, leur administration
et l'encaissement (redemption) après paiement.
"""

import enum
from typing import Optional


class RejectionReason(str, enum.Enum):
    """Motifs structurés pour lesquels une promotion ne s'applique pas"""
    CODE_NOT_FOUND = "code_not_found"
    CODE_EXPIRED = "code_expired"
    CODE_NOT_YET_ACTIVE = "code_not_yet_active"
    CODE_INACTIVE = "code_inactive"
    EXPIRED = "expired"
    NOT_YET_ACTIVE = "not_yet_active"
    INACTIVE = "inactive"
    THRESHOLD_NOT_MET = "threshold_not_met"
    USAGE_LIMIT_EXCEEDED = "usage_limit_exceeded"
    NOT_APPLICABLE_TO_CART = "not_applicable_to_cart"
    INVALID_DEFINITION = "invalid_definition"
    NOT_COMBINABLE = "not_combinable"
    DISCOUNT_CONFLICT = "discount_conflict"


REJECTION_MESSAGES = {
    RejectionReason.CODE_NOT_FOUND: "Code promo introuvable",
    RejectionReason.CODE_EXPIRED: "Ce code promo a expiré",
    RejectionReason.CODE_NOT_YET_ACTIVE: "Ce code promo n'est pas encore valable",
    RejectionReason.CODE_INACTIVE: "Ce code promo a été désactivé",
    RejectionReason.EXPIRED: "Cette promotion est terminée",
    RejectionReason.NOT_YET_ACTIVE: "Cette promotion n'a pas encore commencé",
    RejectionReason.INACTIVE: "Cette promotion est désactivée",
    RejectionReason.THRESHOLD_NOT_MET: "Le minimum d'achat requis n'est pas atteint",
    RejectionReason.USAGE_LIMIT_EXCEEDED: "La limite d'utilisation de cette promotion est atteinte",
    RejectionReason.NOT_APPLICABLE_TO_CART: "Cette promotion ne s'applique pas à votre panier",
    RejectionReason.INVALID_DEFINITION: "Cette promotion est mal configurée",
    RejectionReason.NOT_COMBINABLE: "Cette promotion ne se cumule pas avec une offre déjà appliquée",
    RejectionReason.DISCOUNT_CONFLICT: "Cette promotion n'a pas pu être appliquée à la commande",
}


def rejection_message(reason: RejectionReason) -> str:
    return REJECTION_MESSAGES[reason]


class PromotionError(Exception):
    """Erreur de base du domaine des promotions"""

    reason: Optional[RejectionReason] = None

    def __init__(self, message: str, reason: Optional[RejectionReason] = None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason


class InvalidPromotionDefinition(PromotionError):
    """Configuration de promotion incohérente (dates, BOGO incomplet, ...)"""
    reason = RejectionReason.INVALID_DEFINITION


class DuplicatePromotionCode(PromotionError):
    """Le code promo existe déjà"""


class PromotionNotFound(PromotionError):
    """Promotion inexistante"""
    reason = RejectionReason.CODE_NOT_FOUND


class PromotionInUse(PromotionError):
    """Suppression refusée : la promotion a déjà été utilisée"""


class DiscountConflict(PromotionError):
    """La remise a perdu la course à l'encaissement ou n'est plus valable"""
    reason = RejectionReason.DISCOUNT_CONFLICT
