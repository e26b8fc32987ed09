# ===================================
# promo_engine/engine/resolver.py
# ===================================
"""
Choix de la combinaison de promotions réellement appliquée.

Sélection gloutonne par priorité : la priorité et les déclarations de
cumul saisies par l'administrateur priment sur la recherche de la
remise maximale.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Tuple

from promo_engine.engine.calculator import compute_discount
from promo_engine.engine.clock import as_utc
from promo_engine.engine.money import DEFAULT_QUANTUM, ZERO, round_money
from promo_engine.engine.scope import build_scope
from promo_engine.models.promotion import ApplyTo, PromotionType
from promo_engine.schemas.cart import CartSnapshot
from promo_engine.schemas.evaluation import AppliedPromotion, InducedLineItem
from promo_engine.schemas.promotion import Promotion

logger = logging.getLogger(__name__)

_LINE_LEVEL_TYPES = (PromotionType.BOGO, PromotionType.FREE_GIFT, PromotionType.FREE_SHIPPING)


@dataclass
class ResolvedCombination:
    applied: List[AppliedPromotion] = field(default_factory=list)
    induced_items: List[InducedLineItem] = field(default_factory=list)
    skipped: List[Promotion] = field(default_factory=list)
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO

    @property
    def final_total(self) -> Decimal:
        return self.subtotal - self.total_discount


def sort_candidates(promotions: Iterable[Promotion]) -> List[Promotion]:
    """Priorité décroissante, puis date de début la plus ancienne, puis id"""
    return sorted(promotions, key=lambda p: (-p.priority, as_utc(p.start_date), p.id))


def stacks_together(first: Promotion, second: Promotion) -> bool:
    """Le cumul doit être déclaré des deux côtés"""
    return (
        first.can_stack and second.can_stack
        and second.id in first.stacks_with
        and first.id in second.stacks_with
    )


def select_combination(ordered: List[Promotion]) -> Tuple[List[Promotion], List[Promotion]]:
    selected: List[Promotion] = []
    skipped: List[Promotion] = []
    for candidate in ordered:
        if not selected or all(stacks_together(candidate, q) for q in selected):
            selected.append(candidate)
        else:
            skipped.append(candidate)
    return selected, skipped


def is_order_level(promotion: Promotion) -> bool:
    """Remise monétaire sur l'ensemble de la commande"""
    return promotion.apply_to == ApplyTo.ORDER and promotion.type not in _LINE_LEVEL_TYPES


def resolve(
    eligible: Iterable[Promotion],
    cart: CartSnapshot,
    quantum: Decimal = DEFAULT_QUANTUM,
) -> ResolvedCombination:
    selected, skipped = select_combination(sort_candidates(eligible))

    line_level = [p for p in selected if not is_order_level(p)]
    order_level = [p for p in selected if is_order_level(p)]

    computed = []
    line_discount = ZERO
    # Remises sur lignes : calculées sur les prix d'origine
    for promotion in line_level:
        scope = build_scope(promotion, cart)
        result = compute_discount(promotion, scope, quantum)
        computed.append((promotion, scope.subtotal, result))
        line_discount += result.amount

    # Remises commande : sur le sous-total déjà réduit par les remises sur lignes
    for promotion in order_level:
        scope = build_scope(promotion, cart).reduced_by(line_discount)
        result = compute_discount(promotion, scope, quantum)
        computed.append((promotion, scope.subtotal, result))

    subtotal = round_money(cart.subtotal, quantum)
    combination = ResolvedCombination(skipped=skipped, subtotal=subtotal)

    # Le total remisé ne descend jamais sous zéro : l'excédent est retiré
    # des dernières promotions appliquées
    remaining = subtotal
    for promotion, scope_amount, result in computed:
        amount = min(result.amount, remaining)
        if amount < result.amount:
            logger.debug(
                f"Remise {promotion.id} plafonnée de {result.amount} à {amount}"
            )
        remaining -= amount
        combination.applied.append(AppliedPromotion(
            promotion_id=promotion.id,
            code=promotion.code,
            name=promotion.name,
            scope_amount=round_money(scope_amount, quantum),
            discount_amount=amount,
        ))
        combination.induced_items.extend(result.induced_items)

    combination.total_discount = subtotal - remaining
    return combination
