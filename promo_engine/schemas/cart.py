# ===================================
# promo_engine/schemas/cart.py
# ===================================
from typing import Dict, List, Optional
from decimal import Decimal
from pydantic import BaseModel, Field


class CartItem(BaseModel):
    product_id: str
    category_id: Optional[str] = None
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1, description="La quantité doit être positive")

    @property
    def line_total(self) -> Decimal:
        """Total de la ligne (quantité × prix unitaire)"""
        return self.unit_price * self.quantity


class CartSnapshot(BaseModel):
    """Instantané du panier au moment de l'évaluation"""
    items: List[CartItem] = []

    @property
    def subtotal(self) -> Decimal:
        """Sous-total du panier"""
        return sum((item.line_total for item in self.items), Decimal("0"))

    @property
    def quantity(self) -> int:
        """Nombre total d'articles dans le panier"""
        return sum(item.quantity for item in self.items)

    def is_empty(self) -> bool:
        return len(self.items) == 0


class CustomerRef(BaseModel):
    """Client candidat et nombre d'utilisations passées par promotion"""
    id: str
    redemption_counts: Dict[str, int] = {}

    def redemptions_of(self, promotion_id: str) -> int:
        return self.redemption_counts.get(promotion_id, 0)
