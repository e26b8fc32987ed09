# ===================================
# promo_engine/engine/calculator.py
# ===================================
"""
Calcul du montant de remise d'une promotion sur son périmètre.

Tous les montants sont des Decimal ; l'arrondi à l'unité mineure
(demi-pair) n'est appliqué qu'une fois, à la fin de chaque calcul.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Tuple

from promo_engine.engine.money import DEFAULT_QUANTUM, HUNDRED, ZERO, clamp, round_money
from promo_engine.engine.scope import DiscountScope
from promo_engine.models.promotion import DiscountType, PromotionType
from promo_engine.schemas.cart import CartItem
from promo_engine.schemas.evaluation import InducedLineItem
from promo_engine.schemas.promotion import Promotion


@dataclass
class DiscountComputation:
    amount: Decimal
    induced_items: List[InducedLineItem] = field(default_factory=list)


def _cap(promotion: Promotion, raw: Decimal, ceiling: Decimal) -> Decimal:
    # Jamais plus que la valeur remisée, ni plus que max_discount
    upper = ceiling
    if promotion.max_discount is not None:
        upper = min(upper, promotion.max_discount)
    return clamp(raw, ZERO, upper)


def _cheapest_units(items: List[CartItem], units: int) -> List[Tuple[Decimal, int]]:
    """Répartit `units` unités sur les lignes les moins chères"""
    picked = []
    for item in sorted(items, key=lambda i: i.unit_price):
        if units <= 0:
            break
        taken = min(units, item.quantity)
        picked.append((item.unit_price, taken))
        units -= taken
    return picked


def _bogo_trigger_items(promotion: Promotion, scope: DiscountScope) -> List[CartItem]:
    return [
        item for item in scope.items
        if not promotion.product_ids or item.product_id in promotion.product_ids
    ]


def bogo_reward_units(promotion: Promotion, scope: DiscountScope) -> List[Tuple[Decimal, int]]:
    """
    Unités remisées par un BOGO, sous forme de (prix unitaire, quantité).
    Seuls les groupes complets comptent.
    """
    config = promotion.bogo_config
    if config is None or not config.buy_quantity or not config.get_quantity:
        return []

    triggers = _bogo_trigger_items(promotion, scope)

    if config.apply_to == "different":
        trigger_units = sum(
            item.quantity for item in triggers if item.product_id != config.get_product_id
        )
        groups = trigger_units // config.buy_quantity
        rewarded = [i for i in scope.cart.items if i.product_id == config.get_product_id]
        return _cheapest_units(rewarded, groups * config.get_quantity)

    # Même produit : groupes de (achetés + offerts) par produit
    by_product: Dict[str, List[CartItem]] = {}
    for item in triggers:
        by_product.setdefault(item.product_id, []).append(item)

    picked = []
    group_size = config.buy_quantity + config.get_quantity
    for lines in by_product.values():
        groups = sum(line.quantity for line in lines) // group_size
        picked.extend(_cheapest_units(lines, groups * config.get_quantity))
    return picked


def count_bogo_units(promotion: Promotion, scope: DiscountScope) -> int:
    return sum(units for _, units in bogo_reward_units(promotion, scope))


def free_gift_threshold_met(promotion: Promotion, scope: DiscountScope) -> bool:
    config = promotion.free_gift_config
    return config is not None and scope.subtotal >= config.threshold


def _percentage(promotion: Promotion, scope: DiscountScope) -> Decimal:
    return scope.subtotal * promotion.discount_value / HUNDRED


def _fixed_amount(promotion: Promotion, scope: DiscountScope) -> Decimal:
    return min(promotion.discount_value, scope.subtotal)


def _fixed_price(promotion: Promotion, scope: DiscountScope) -> Decimal:
    return max(ZERO, scope.subtotal - promotion.discount_value)


def _bogo(promotion: Promotion, scope: DiscountScope) -> Decimal:
    rate = promotion.bogo_config.get_discount_percentage / HUNDRED
    return sum((price * units * rate for price, units in bogo_reward_units(promotion, scope)), ZERO)


_MONETARY_SHAPES = {
    DiscountType.PERCENTAGE: _percentage,
    DiscountType.FIXED_AMOUNT: _fixed_amount,
    DiscountType.FIXED_PRICE: _fixed_price,
}


def compute_discount(
    promotion: Promotion,
    scope: DiscountScope,
    quantum: Decimal = DEFAULT_QUANTUM,
) -> DiscountComputation:
    """Montant de remise d'une promotion éligible sur le périmètre donné"""
    if promotion.type == PromotionType.FREE_GIFT:
        # Aucune remise : une ligne cadeau à prix nul est ajoutée
        if not free_gift_threshold_met(promotion, scope):
            return DiscountComputation(amount=round_money(ZERO, quantum))
        config = promotion.free_gift_config
        gift = InducedLineItem(
            promotion_id=promotion.id,
            product_id=config.product_id,
            quantity=config.quantity,
            unit_price=round_money(ZERO, quantum),
        )
        return DiscountComputation(amount=round_money(ZERO, quantum), induced_items=[gift])

    if promotion.type == PromotionType.FREE_SHIPPING:
        # La livraison est gérée par le tunnel de commande
        return DiscountComputation(amount=round_money(ZERO, quantum))

    if promotion.type == PromotionType.BOGO:
        raw = _bogo(promotion, scope)
        # Le produit offert peut être hors périmètre : plafond = valeur des unités remisées
        ceiling = sum((price * units for price, units in bogo_reward_units(promotion, scope)), ZERO)
    else:
        raw = _MONETARY_SHAPES[promotion.discount_type](promotion, scope)
        ceiling = scope.subtotal

    return DiscountComputation(amount=round_money(_cap(promotion, raw, ceiling), quantum))
