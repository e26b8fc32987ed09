import os

# Base en mémoire pour toute la session de test
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from promo_engine.core.database import Base, get_db
from promo_engine.engine.clock import utcnow
from promo_engine.main import app
from promo_engine.models.promotion import Promotion as PromotionModel
from promo_engine.schemas.cart import CartItem, CartSnapshot
from promo_engine.schemas.promotion import Promotion

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_promotion():
    """Fabrique d'instantanés de promotion, active autour de NOW par défaut"""
    counter = {"n": 0}

    def factory(**overrides) -> Promotion:
        counter["n"] += 1
        data = {
            "id": f"promo-{counter['n']}",
            "name": f"Promotion {counter['n']}",
            "type": "AUTOMATIC",
            "discount_type": "PERCENTAGE",
            "discount_value": Decimal("10"),
            "start_date": NOW - timedelta(days=1),
            "end_date": NOW + timedelta(days=1),
        }
        data.update(overrides)
        return Promotion.model_validate(data)

    return factory


@pytest.fixture
def make_cart():
    def factory(*lines) -> CartSnapshot:
        """lines : tuples (product_id, unit_price, quantity[, category_id])"""
        items = []
        for line in lines:
            product_id, price, quantity = line[:3]
            category_id = line[3] if len(line) > 3 else None
            items.append(CartItem(
                product_id=product_id,
                category_id=category_id,
                unit_price=Decimal(str(price)),
                quantity=quantity,
            ))
        return CartSnapshot(items=items)

    return factory


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def store_promotion(db):
    """Insère une promotion en base, active autour de l'heure courante"""
    counter = {"n": 0}
    current = utcnow()

    def factory(**overrides) -> PromotionModel:
        counter["n"] += 1
        data = {
            "name": f"Promotion {counter['n']}",
            "type": "AUTOMATIC",
            "discount_type": "PERCENTAGE",
            "discount_value": Decimal("10"),
            "apply_to": "ORDER",
            "start_date": current - timedelta(days=1),
            "end_date": current + timedelta(days=30),
            "usage_count": 0,
        }
        data.update(overrides)
        promotion = PromotionModel(**data)
        db.add(promotion)
        db.commit()
        db.refresh(promotion)
        return promotion

    return factory


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
