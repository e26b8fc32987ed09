from datetime import timedelta
from decimal import Decimal

import pytest

from promo_engine.core.exceptions import (
    DuplicatePromotionCode,
    InvalidPromotionDefinition,
    PromotionInUse,
    PromotionNotFound,
)
from promo_engine.engine.clock import utcnow
from promo_engine.models.promotion import PromotionType
from promo_engine.repositories.usage_ledger import SqlUsageLedger
from promo_engine.schemas.promotion import PromotionCreate, PromotionStatus, PromotionUpdate
from promo_engine.services.checkout_service import CheckoutService
from promo_engine.services.promotion_service import PromotionService


@pytest.fixture
def service(db):
    return PromotionService(db)


def new_promotion(**overrides) -> PromotionCreate:
    current = utcnow()
    data = {
        "name": "Soldes d'été",
        "type": "COUPON",
        "code": " summer20 ",
        "discount_type": "PERCENTAGE",
        "discount_value": "20",
        "start_date": current - timedelta(days=1),
        "end_date": current + timedelta(days=10),
    }
    data.update(overrides)
    return PromotionCreate(**data)


def test_create_normalizes_code(service):
    promotion = service.create_promotion(new_promotion())

    assert promotion.code == "SUMMER20"
    assert promotion.type == "COUPON"
    assert promotion.usage_count == 0
    assert service.to_detail(promotion).status == PromotionStatus.ACTIVE


def test_create_rejects_duplicate_code(service):
    service.create_promotion(new_promotion())
    with pytest.raises(DuplicatePromotionCode):
        service.create_promotion(new_promotion(name="Autre"))


def test_create_rejects_incoherent_definition(service):
    current = utcnow()
    with pytest.raises(InvalidPromotionDefinition):
        service.create_promotion(new_promotion(start_date=current, end_date=current))
    with pytest.raises(InvalidPromotionDefinition):
        service.create_promotion(new_promotion(code=None))
    with pytest.raises(InvalidPromotionDefinition):
        service.create_promotion(new_promotion(type="BOGO", code=None))


def test_create_bogo_stores_configuration(service):
    promotion = service.create_promotion(new_promotion(
        type="BOGO", code=None, apply_to="PRODUCT", product_ids=["p1"],
        bogo_config={"buy_quantity": 2, "get_quantity": 1},
    ))

    assert promotion.bogo_config["buy_quantity"] == 2
    assert promotion.bogo_config["apply_to"] == "same"


def test_update_validates_merged_promotion(service):
    promotion = service.create_promotion(new_promotion())

    with pytest.raises(InvalidPromotionDefinition):
        service.update_promotion(
            promotion.id, PromotionUpdate(end_date=promotion.start_date - timedelta(days=1))
        )

    updated = service.update_promotion(
        promotion.id, PromotionUpdate(priority=7, max_discount=Decimal("30"))
    )
    assert updated.priority == 7
    assert updated.max_discount == Decimal("30")
    assert updated.discount_value == Decimal("20")


def test_update_ignores_null_for_required_fields(service):
    promotion = service.create_promotion(new_promotion())
    updated = service.update_promotion(promotion.id, PromotionUpdate(name=None, description="x"))

    assert updated.name == "Soldes d'été"
    assert updated.description == "x"


def test_update_rejects_taken_code(service):
    service.create_promotion(new_promotion(code="TAKEN"))
    promotion = service.create_promotion(new_promotion())

    with pytest.raises(DuplicatePromotionCode):
        service.update_promotion(promotion.id, PromotionUpdate(code="taken"))
    # Conserver son propre code n'est pas un conflit
    service.update_promotion(promotion.id, PromotionUpdate(code="summer20"))


def test_update_rejects_unknown_fields():
    with pytest.raises(ValueError):
        PromotionUpdate(usage_count=0)


def test_deactivate_and_status(service):
    promotion = service.create_promotion(new_promotion())
    promotion = service.deactivate_promotion(promotion.id)

    assert promotion.is_active is False
    assert service.to_detail(promotion).status == PromotionStatus.INACTIVE


def test_scheduled_status(service):
    current = utcnow()
    promotion = service.create_promotion(new_promotion(
        start_date=current + timedelta(days=2), end_date=current + timedelta(days=3)
    ))
    assert service.get_promotion_detail(promotion.id).status == PromotionStatus.SCHEDULED


def test_delete_refused_once_used(db, service):
    used = service.create_promotion(new_promotion())
    unused = service.create_promotion(new_promotion(code="OTHER"))
    SqlUsageLedger(db).try_redeem(
        used.id, "c1", "order-1", Decimal("5"), Decimal("50"), Decimal("45")
    )

    with pytest.raises(PromotionInUse):
        service.delete_promotion(used.id)

    service.delete_promotion(unused.id)
    with pytest.raises(PromotionNotFound):
        service.get_promotion(unused.id)


def test_list_filters_and_usage_percentage(db, service):
    coupon = service.create_promotion(new_promotion(usage_limit=4))
    service.create_promotion(new_promotion(
        name="Automatique", type="AUTOMATIC", code=None, priority=5
    ))
    SqlUsageLedger(db).try_redeem(
        coupon.id, None, "order-1", Decimal("5"), Decimal("50"), Decimal("45")
    )

    promotions, total = service.list_promotions()
    assert total == 2
    assert promotions[0].name == "Automatique"

    promotions, total = service.list_promotions(type=PromotionType.COUPON)
    assert total == 1
    assert promotions[0].usage_percentage == 25.0

    promotions, total = service.list_promotions(search="summer")
    assert [p.code for p in promotions] == ["SUMMER20"]

    assert len(service.get_usage_history(coupon.id)) == 1
    assert [u.order_id for u in service.get_promotion_detail(coupon.id).recent_usages] == ["order-1"]


def test_stats(db, service):
    coupon = service.create_promotion(new_promotion())
    SqlUsageLedger(db).try_redeem(
        coupon.id, "c1", "order-1", Decimal("5"), Decimal("50"), Decimal("45")
    )

    stats = service.get_stats()

    assert stats["overview"]["total"] == 1
    assert stats["overview"]["active"] == 1
    assert stats["usage"]["all_time"]["count"] == 1
    assert stats["usage"]["all_time"]["total_discount"] == Decimal("5")
    assert stats["top_promotions"][0]["id"] == coupon.id
    assert stats["by_type"] == {"COUPON": 1}


def test_checkout_flow(db, service):
    coupon = service.create_promotion(new_promotion(
        discount_type="FIXED_AMOUNT", discount_value="10", per_user_limit=1
    ))
    checkout = CheckoutService(db)
    items = [{"product_id": "p1", "unit_price": "30", "quantity": 2}]

    validation = checkout.validate_coupon("summer20", items, customer_id="c1")
    assert validation.valid
    assert validation.discount_amount == Decimal("10.00")

    result = checkout.redeem(coupon.id, "c1", "order-1", Decimal("10"), Decimal("60"), Decimal("50"))
    assert result.redeemed

    validation = checkout.validate_coupon("summer20", items, customer_id="c1")
    assert not validation.valid
    assert validation.reason.value == "usage_limit_exceeded"

    validation = checkout.validate_coupon("unknown", items)
    assert not validation.valid
    assert validation.reason.value == "code_not_found"


def test_product_promotions(db, service):
    service.create_promotion(new_promotion(
        name="Chaussures", type="CATEGORY_DISCOUNT", code=None,
        apply_to="CATEGORY", category_ids=["shoes"],
    ))
    service.create_promotion(new_promotion(
        name="Pour tous", type="AUTOMATIC", code=None,
    ))
    service.create_promotion(new_promotion(
        name="Cachée", type="PRODUCT_DISCOUNT", code=None,
        apply_to="PRODUCT", product_ids=["p1"], show_on_website=False,
    ))
    checkout = CheckoutService(db)

    names = {p.name for p in checkout.get_product_promotions("p1", "shoes")}
    assert names == {"Chaussures", "Pour tous"}

    names = {p.name for p in checkout.get_product_promotions("p2")}
    assert names == {"Pour tous"}
