# ===================================
# promo_engine/engine/validation.py
# ===================================
from typing import List

from promo_engine.core.exceptions import InvalidPromotionDefinition
from promo_engine.engine.clock import as_utc
from promo_engine.engine.money import HUNDRED, ZERO
from promo_engine.models.promotion import DiscountType, PromotionType
from promo_engine.schemas.promotion import Promotion


def definition_errors(promotion: Promotion) -> List[str]:
    """Liste les incohérences de configuration d'une promotion"""
    errors = []

    if as_utc(promotion.start_date) >= as_utc(promotion.end_date):
        errors.append("La date de fin doit être postérieure à la date de début")

    if promotion.discount_value < ZERO:
        errors.append("La valeur de remise doit être positive")
    if promotion.discount_type == DiscountType.PERCENTAGE and promotion.type not in (
        PromotionType.BOGO, PromotionType.FREE_GIFT, PromotionType.FREE_SHIPPING
    ):
        if not (ZERO < promotion.discount_value <= HUNDRED):
            errors.append("Un pourcentage doit être compris entre 0 (exclu) et 100")

    if promotion.max_discount is not None and promotion.max_discount < ZERO:
        errors.append("La remise maximum doit être positive")

    if (promotion.min_quantity is not None and promotion.max_quantity is not None
            and promotion.min_quantity > promotion.max_quantity):
        errors.append("La quantité minimum dépasse la quantité maximum")

    if promotion.type == PromotionType.COUPON and not promotion.code:
        errors.append("Un coupon doit avoir un code")

    if promotion.type == PromotionType.CUSTOMER_SPECIFIC and not promotion.customer_ids:
        errors.append("Une promotion client doit cibler au moins un client")

    if promotion.type == PromotionType.BOGO:
        config = promotion.bogo_config
        if config is None:
            errors.append("Configuration BOGO manquante")
        else:
            if not config.buy_quantity or config.buy_quantity < 1:
                errors.append("BOGO : quantité achetée manquante")
            if not config.get_quantity or config.get_quantity < 1:
                errors.append("BOGO : quantité offerte manquante")
            if not (ZERO < config.get_discount_percentage <= HUNDRED):
                errors.append("BOGO : pourcentage de remise invalide")
            if config.apply_to not in ("same", "different"):
                errors.append("BOGO : apply_to doit valoir 'same' ou 'different'")
            elif config.apply_to == "different" and not config.get_product_id:
                errors.append("BOGO : produit offert manquant")

    if promotion.type == PromotionType.FREE_GIFT:
        config = promotion.free_gift_config
        if config is None:
            errors.append("Configuration cadeau manquante")
        else:
            if not config.product_id:
                errors.append("Cadeau : produit manquant")
            if config.quantity < 1:
                errors.append("Cadeau : quantité invalide")
            if config.threshold < ZERO:
                errors.append("Cadeau : seuil invalide")

    return errors


def validate_promotion_definition(promotion: Promotion) -> None:
    """Lève InvalidPromotionDefinition si la configuration est incohérente"""
    errors = definition_errors(promotion)
    if errors:
        raise InvalidPromotionDefinition(
            f"Promotion {promotion.id} invalide : " + "; ".join(errors)
        )
