# ===================================
# promo_engine/engine/money.py
# ===================================
from decimal import Decimal, ROUND_HALF_EVEN

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_QUANTUM = Decimal("0.01")


def round_money(amount: Decimal, quantum: Decimal = DEFAULT_QUANTUM) -> Decimal:
    """Arrondi bancaire à l'unité mineure. Appliqué une seule fois par calcul."""
    return Decimal(amount).quantize(quantum, rounding=ROUND_HALF_EVEN)


def clamp(amount: Decimal, lower: Decimal, upper: Decimal) -> Decimal:
    return max(lower, min(amount, upper))
