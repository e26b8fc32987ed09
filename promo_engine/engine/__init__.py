"""
Moteur d'évaluation des promotions : éligibilité, calcul des remises,
résolution du cumul et encaissement.
"""

from .calculator import DiscountComputation, compute_discount
from .facade import PromotionEngine
from .ledger import InMemoryUsageLedger, UsageLedger
from .matcher import check_eligibility, derive_status, is_eligible
from .resolver import ResolvedCombination, resolve, select_combination, sort_candidates
from .scope import DiscountScope, build_scope
from .validation import validate_promotion_definition

__all__ = [
    'DiscountComputation',
    'DiscountScope',
    'InMemoryUsageLedger',
    'PromotionEngine',
    'ResolvedCombination',
    'UsageLedger',
    'build_scope',
    'check_eligibility',
    'compute_discount',
    'derive_status',
    'is_eligible',
    'resolve',
    'select_combination',
    'sort_candidates',
    'validate_promotion_definition',
]
