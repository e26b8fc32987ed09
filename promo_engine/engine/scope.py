# ===================================
# promo_engine/engine/scope.py
# ===================================
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Tuple

from promo_engine.engine.money import ZERO
from promo_engine.models.promotion import ApplyTo
from promo_engine.schemas.cart import CartItem, CartSnapshot
from promo_engine.schemas.promotion import Promotion


@dataclass(frozen=True)
class DiscountScope:
    """Partie du panier sur laquelle une promotion est calculée"""
    items: Tuple[CartItem, ...]
    cart: CartSnapshot
    subtotal: Decimal
    quantity: int

    def is_empty(self) -> bool:
        return len(self.items) == 0

    def reduced_by(self, amount: Decimal) -> "DiscountScope":
        """Même périmètre, sous-total diminué des remises déjà appliquées"""
        return replace(self, subtotal=max(ZERO, self.subtotal - amount))


def item_in_scope(promotion: Promotion, item: CartItem) -> bool:
    if promotion.apply_to == ApplyTo.PRODUCT:
        return not promotion.product_ids or item.product_id in promotion.product_ids
    if promotion.apply_to == ApplyTo.CATEGORY:
        return not promotion.category_ids or item.category_id in promotion.category_ids
    return True


def build_scope(promotion: Promotion, cart: CartSnapshot) -> DiscountScope:
    """Panier entier pour ORDER, sous-ensemble ciblé pour PRODUCT/CATEGORY"""
    items = tuple(item for item in cart.items if item_in_scope(promotion, item))
    return DiscountScope(
        items=items,
        cart=cart,
        subtotal=sum((item.line_total for item in items), ZERO),
        quantity=sum(item.quantity for item in items),
    )
