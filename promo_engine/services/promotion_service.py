# ===================================
# promo_engine/services/promotion_service.py
# ===================================

import enum
import logging
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session

from promo_engine.core.exceptions import (
    DuplicatePromotionCode,
    InvalidPromotionDefinition,
    PromotionInUse,
    PromotionNotFound,
)
from promo_engine.engine.clock import utcnow
from promo_engine.engine.matcher import derive_status
from promo_engine.engine.validation import definition_errors
from promo_engine.models.promotion import Promotion, PromotionType
from promo_engine.repositories.promotion_repo import PromotionRepository
from promo_engine.schemas.promotion import (
    Promotion as PromotionSnapshot,
    PromotionCreate,
    PromotionDetail,
    PromotionUpdate,
    PromotionUsageRecord,
)

logger = logging.getLogger(__name__)

# Champs JSON stockés tels quels
_CONFIG_FIELDS = ("bogo_config", "free_gift_config")

# Champs qui ne peuvent pas être remis à null par une mise à jour
_REQUIRED_FIELDS = {
    "name", "type", "discount_type", "discount_value", "apply_to",
    "product_ids", "category_ids", "customer_ids", "stacks_with", "tags",
    "start_date", "end_date", "is_active", "priority", "can_stack",
    "is_public", "show_on_website",
}


def _column_values(data: dict) -> dict:
    """Les énumérations sont stockées sous forme de chaînes"""
    return {
        key: value.value if isinstance(value, enum.Enum) else value
        for key, value in data.items()
    }


class PromotionService:
    """Service pour la logique métier d'administration des promotions"""

    def __init__(self, db: Session):
        self.db = db
        self.promotion_repo = PromotionRepository(db)

    def create_promotion(self, promotion_data: PromotionCreate) -> Promotion:
        """Créer une promotion après validation complète de sa définition"""
        data = promotion_data.model_dump(mode="python")
        self._dump_configs(data, promotion_data)

        self._ensure_valid({"id": "new", **data})
        if data.get("code"):
            self._ensure_code_available(data["code"])

        promotion = self.promotion_repo.create_promotion(_column_values(data))
        logger.info(f"Promotion créée : {promotion.id} ({promotion.type})")
        return promotion

    def update_promotion(self, promotion_id: str,
                         promotion_update: PromotionUpdate) -> Promotion:
        """
        Appliquer une commande de mise à jour : seuls les champs fournis sont
        modifiés, et l'entité fusionnée est validée avant écriture.
        """
        promotion = self.get_promotion(promotion_id)
        update_data = {
            field: value
            for field, value in promotion_update.model_dump(exclude_unset=True, mode="python").items()
            if value is not None or field not in _REQUIRED_FIELDS
        }
        self._dump_configs(update_data, promotion_update)

        merged = PromotionSnapshot.model_validate(promotion).model_dump(mode="python")
        merged.update(update_data)
        self._ensure_valid(merged)

        if update_data.get("code") and update_data["code"] != promotion.code:
            self._ensure_code_available(update_data["code"])

        promotion = self.promotion_repo.update_promotion(promotion, _column_values(update_data))
        logger.info(f"Promotion mise à jour : {promotion.id} ({', '.join(sorted(update_data))})")
        return promotion

    def deactivate_promotion(self, promotion_id: str) -> Promotion:
        promotion = self.get_promotion(promotion_id)
        return self.promotion_repo.update_promotion(promotion, {"is_active": False})

    def delete_promotion(self, promotion_id: str) -> None:
        """Supprimer une promotion jamais utilisée ; sinon il faut la désactiver"""
        promotion = self.get_promotion(promotion_id)
        if self.promotion_repo.count_usages(promotion_id) > 0:
            raise PromotionInUse(
                "Impossible de supprimer une promotion déjà utilisée. Désactivez-la."
            )
        self.promotion_repo.delete_promotion(promotion)
        logger.info(f"Promotion supprimée : {promotion_id}")

    def get_promotion(self, promotion_id: str) -> Promotion:
        promotion = self.promotion_repo.get_promotion_by_id(promotion_id)
        if not promotion:
            raise PromotionNotFound("Promotion non trouvée")
        return promotion

    def get_promotion_detail(self, promotion_id: str,
                             now: Optional[datetime] = None,
                             history_limit: int = 20) -> PromotionDetail:
        """Fiche complète avec les dernières utilisations enregistrées"""
        detail = self.to_detail(self.get_promotion(promotion_id), now)
        detail.recent_usages = self.get_usage_history(promotion_id, history_limit)
        return detail

    def list_promotions(self, skip: int = 0, limit: int = 50,
                        type: Optional[PromotionType] = None,
                        is_active: Optional[bool] = None,
                        search: Optional[str] = None,
                        now: Optional[datetime] = None) -> Tuple[List[PromotionDetail], int]:
        promotions, total = self.promotion_repo.get_promotions(
            skip=skip, limit=limit, type=type, is_active=is_active, search=search
        )
        return [self.to_detail(p, now) for p in promotions], total

    def get_usage_history(self, promotion_id: str, limit: int = 100) -> List[PromotionUsageRecord]:
        self.get_promotion(promotion_id)
        return [
            PromotionUsageRecord.model_validate(usage)
            for usage in self.promotion_repo.get_recent_usages(promotion_id, limit)
        ]

    def get_stats(self, now: Optional[datetime] = None) -> dict:
        return self.promotion_repo.get_promotion_stats(now or utcnow())

    def to_detail(self, promotion: Promotion, now: Optional[datetime] = None) -> PromotionDetail:
        """Ajoute le statut dérivé et le taux d'utilisation"""
        snapshot = PromotionSnapshot.model_validate(promotion)
        usage_percentage = None
        if promotion.usage_limit:
            usage_percentage = promotion.usage_count / promotion.usage_limit * 100
        return PromotionDetail(
            **snapshot.model_dump(),
            tags=promotion.tags or [],
            internal_notes=promotion.internal_notes,
            created_at=promotion.created_at,
            updated_at=promotion.updated_at,
            status=derive_status(snapshot, now or utcnow()),
            usage_percentage=usage_percentage,
        )

    def _ensure_valid(self, data: dict) -> None:
        candidate = PromotionSnapshot.model_validate(data)
        errors = definition_errors(candidate)
        if errors:
            raise InvalidPromotionDefinition("; ".join(errors))

    def _ensure_code_available(self, code: str) -> None:
        if self.promotion_repo.get_promotion_by_code(code):
            raise DuplicatePromotionCode("Ce code promo existe déjà")

    def _dump_configs(self, data: dict, source) -> None:
        # Les configurations sont stockées en JSON
        for field in _CONFIG_FIELDS:
            if field in data and getattr(source, field) is not None:
                data[field] = getattr(source, field).model_dump(mode="json")
