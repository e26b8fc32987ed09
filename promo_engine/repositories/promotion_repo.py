# ===================================
# promo_engine/repositories/promotion_repo.py
# ===================================
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import select, func, and_, or_, desc
from datetime import datetime, timedelta
from decimal import Decimal

from promo_engine.engine.clock import as_utc
from promo_engine.models.promotion import Promotion, PromotionType, PromotionUsage


class PromotionRepository:
    """Repository pour la gestion des promotions"""

    def __init__(self, db: Session):
        self.db = db

    def get_promotion_by_id(self, promotion_id: str) -> Optional[Promotion]:
        """Récupérer une promotion par son ID"""
        return self.db.get(Promotion, promotion_id)

    def get_promotion_by_code(self, code: str) -> Optional[Promotion]:
        """Récupérer une promotion par son code (insensible à la casse)"""
        return self.db.scalar(
            select(Promotion).where(Promotion.code == code.strip().upper())
        )

    def get_promotions(self, skip: int = 0, limit: int = 50,
                       type: Optional[PromotionType] = None,
                       is_active: Optional[bool] = None,
                       search: Optional[str] = None) -> Tuple[List[Promotion], int]:
        """Récupérer les promotions avec filtres (admin)"""
        query = select(Promotion)

        conditions = []

        if type:
            conditions.append(Promotion.type == type.value)

        if is_active is not None:
            conditions.append(Promotion.is_active == is_active)

        if search:
            conditions.append(
                or_(
                    Promotion.name.ilike(f"%{search}%"),
                    Promotion.code.ilike(f"%{search}%"),
                    Promotion.description.ilike(f"%{search}%")
                )
            )

        if conditions:
            query = query.where(and_(*conditions))

        # Compter le total
        total = self.db.scalar(select(func.count()).select_from(query.subquery()))

        promotions = self.db.scalars(
            query.order_by(desc(Promotion.priority), desc(Promotion.created_at))
            .offset(skip)
            .limit(limit)
        ).all()

        return list(promotions), total or 0

    def get_candidate_promotions(self, now: datetime,
                                 code: Optional[str] = None) -> List[Promotion]:
        """
        Promotions à soumettre au moteur : promotions automatiques actives
        sur la période, plus la promotion portant le code saisi quel que soit
        son statut (pour pouvoir expliquer un refus).
        """
        now = as_utc(now)
        condition = and_(
            Promotion.is_active == True,  # noqa: E712
            Promotion.start_date <= now,
            Promotion.end_date > now,
            Promotion.code.is_(None),
            Promotion.type != PromotionType.COUPON.value,
        )
        if code:
            condition = or_(condition, Promotion.code == code.strip().upper())

        return list(self.db.scalars(
            select(Promotion).where(condition).order_by(Promotion.id)
        ))

    def get_showcased_promotions(self, now: datetime) -> List[Promotion]:
        """Promotions actives affichables sur le site"""
        now = as_utc(now)
        return list(self.db.scalars(
            select(Promotion)
            .where(
                Promotion.is_active == True,  # noqa: E712
                Promotion.show_on_website == True,  # noqa: E712
                Promotion.start_date <= now,
                Promotion.end_date > now,
            )
            .order_by(desc(Promotion.priority), Promotion.id)
        ))

    def create_promotion(self, data: dict) -> Promotion:
        """Créer une promotion"""
        promotion = Promotion(usage_count=0, **data)
        self.db.add(promotion)
        self.db.commit()
        self.db.refresh(promotion)
        return promotion

    def update_promotion(self, promotion: Promotion, data: dict) -> Promotion:
        """Mettre à jour une promotion"""
        for field, value in data.items():
            setattr(promotion, field, value)
        self.db.commit()
        self.db.refresh(promotion)
        return promotion

    def delete_promotion(self, promotion: Promotion) -> None:
        self.db.delete(promotion)
        self.db.commit()

    def count_usages(self, promotion_id: str) -> int:
        return self.db.scalar(
            select(func.count(PromotionUsage.id))
            .where(PromotionUsage.promotion_id == promotion_id)
        ) or 0

    def get_recent_usages(self, promotion_id: str, limit: int = 100) -> List[PromotionUsage]:
        return list(self.db.scalars(
            select(PromotionUsage)
            .where(PromotionUsage.promotion_id == promotion_id)
            .order_by(desc(PromotionUsage.created_at), desc(PromotionUsage.id))
            .limit(limit)
        ))

    def get_user_redemption_counts(self, user_id: str,
                                   promotion_ids: Iterable[str]) -> Dict[str, int]:
        """Nombre d'utilisations passées d'un client, par promotion"""
        promotion_ids = list(promotion_ids)
        if not promotion_ids:
            return {}

        rows = self.db.execute(
            select(PromotionUsage.promotion_id, func.count(PromotionUsage.id))
            .where(
                PromotionUsage.user_id == user_id,
                PromotionUsage.promotion_id.in_(promotion_ids)
            )
            .group_by(PromotionUsage.promotion_id)
        ).all()
        return {promotion_id: count for promotion_id, count in rows}

    def _usage_aggregate(self, since: Optional[datetime] = None) -> dict:
        query = select(func.count(PromotionUsage.id), func.sum(PromotionUsage.discount_amount))
        if since is not None:
            query = query.where(PromotionUsage.created_at >= since)
        count, total = self.db.execute(query).one()
        count = count or 0
        total = Decimal(total or 0)
        return {
            "count": count,
            "total_discount": total,
            "average_discount": (total / count) if count else Decimal("0"),
        }

    def get_promotion_stats(self, now: datetime) -> dict:
        """Récupérer les statistiques des promotions"""
        now = as_utc(now)
        last_30_days = now - timedelta(days=30)

        total = self.db.scalar(select(func.count(Promotion.id)))
        active = self.db.scalar(
            select(func.count(Promotion.id)).where(
                Promotion.is_active == True,  # noqa: E712
                Promotion.start_date <= now,
                Promotion.end_date > now,
            )
        )
        expired = self.db.scalar(
            select(func.count(Promotion.id)).where(Promotion.end_date <= now)
        )
        scheduled = self.db.scalar(
            select(func.count(Promotion.id)).where(Promotion.start_date > now)
        )

        daily_rows = self.db.execute(
            select(
                func.date(PromotionUsage.created_at).label("day"),
                func.count(PromotionUsage.id),
                func.sum(PromotionUsage.discount_amount),
            )
            .where(PromotionUsage.created_at >= last_30_days)
            .group_by(func.date(PromotionUsage.created_at))
            .order_by(func.date(PromotionUsage.created_at))
        ).all()

        top_promotions = self.db.scalars(
            select(Promotion).order_by(desc(Promotion.usage_count), Promotion.id).limit(10)
        ).all()

        by_type_rows = self.db.execute(
            select(Promotion.type, func.count(Promotion.id))
            .where(Promotion.is_active == True)  # noqa: E712
            .group_by(Promotion.type)
            .order_by(Promotion.type)
        ).all()

        return {
            "overview": {
                "total": total or 0,
                "active": active or 0,
                "expired": expired or 0,
                "scheduled": scheduled or 0,
            },
            "usage": {
                "all_time": self._usage_aggregate(),
                "last_30_days": self._usage_aggregate(since=last_30_days),
            },
            "daily_usage": [
                {"date": str(day), "count": count, "total_discount": Decimal(amount or 0)}
                for day, count, amount in daily_rows
            ],
            "top_promotions": [
                {
                    "id": p.id,
                    "name": p.name,
                    "code": p.code,
                    "usage_count": p.usage_count,
                    "usage_limit": p.usage_limit,
                }
                for p in top_promotions
            ],
            "by_type": {promotion_type: count for promotion_type, count in by_type_rows},
        }
