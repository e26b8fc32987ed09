from datetime import timedelta
from decimal import Decimal

from promo_engine.core.exceptions import RejectionReason
from promo_engine.engine.matcher import check_eligibility, derive_status, is_eligible
from promo_engine.schemas.cart import CartSnapshot, CustomerRef
from promo_engine.schemas.promotion import PromotionStatus


def test_status_window_is_half_open(make_promotion, now):
    promotion = make_promotion(start_date=now, end_date=now + timedelta(hours=1))

    assert derive_status(promotion, now) == PromotionStatus.ACTIVE
    assert derive_status(promotion, now - timedelta(seconds=1)) == PromotionStatus.SCHEDULED
    assert derive_status(promotion, now + timedelta(hours=1)) == PromotionStatus.EXPIRED


def test_inactive_flag_wins_over_dates(make_promotion, now):
    promotion = make_promotion(is_active=False)
    assert derive_status(promotion, now) == PromotionStatus.INACTIVE


def test_naive_dates_are_read_as_utc(make_promotion, now):
    promotion = make_promotion(
        start_date=(now - timedelta(days=1)).replace(tzinfo=None),
        end_date=(now + timedelta(days=1)).replace(tzinfo=None),
    )
    assert derive_status(promotion, now) == PromotionStatus.ACTIVE


def test_status_rejections(make_promotion, make_cart, now):
    cart = make_cart(("p1", 10, 1))

    expired = make_promotion(end_date=now - timedelta(minutes=1))
    scheduled = make_promotion(start_date=now + timedelta(minutes=1))
    inactive = make_promotion(is_active=False)

    assert check_eligibility(expired, cart, None, now) == RejectionReason.EXPIRED
    assert check_eligibility(scheduled, cart, None, now) == RejectionReason.NOT_YET_ACTIVE
    assert check_eligibility(inactive, cart, None, now) == RejectionReason.INACTIVE


def test_empty_cart_is_not_applicable(make_promotion, now):
    promotion = make_promotion()
    reason = check_eligibility(promotion, CartSnapshot(items=[]), None, now)
    assert reason == RejectionReason.NOT_APPLICABLE_TO_CART


def test_customer_targeting(make_promotion, make_cart, now):
    promotion = make_promotion(type="CUSTOMER_SPECIFIC", customer_ids=["vip-1"])
    cart = make_cart(("p1", 10, 1))

    assert check_eligibility(promotion, cart, None, now) == RejectionReason.NOT_APPLICABLE_TO_CART
    assert check_eligibility(
        promotion, cart, CustomerRef(id="other"), now
    ) == RejectionReason.NOT_APPLICABLE_TO_CART
    assert is_eligible(promotion, cart, CustomerRef(id="vip-1"), now)


def test_product_scope_must_match_a_line(make_promotion, make_cart, now):
    promotion = make_promotion(apply_to="PRODUCT", product_ids=["p9"])

    assert check_eligibility(
        promotion, make_cart(("p1", 10, 1)), None, now
    ) == RejectionReason.NOT_APPLICABLE_TO_CART
    assert is_eligible(promotion, make_cart(("p1", 10, 1), ("p9", 5, 1)), None, now)


def test_min_purchase_is_measured_on_scope(make_promotion, make_cart, now):
    promotion = make_promotion(
        apply_to="CATEGORY", category_ids=["shoes"], min_purchase=Decimal("50")
    )
    cart = make_cart(("p1", 100, 1, "hats"), ("p2", 40, 1, "shoes"))

    assert check_eligibility(promotion, cart, None, now) == RejectionReason.THRESHOLD_NOT_MET
    cart = make_cart(("p1", 100, 1, "hats"), ("p2", 25, 2, "shoes"))
    assert is_eligible(promotion, cart, None, now)


def test_quantity_bounds(make_promotion, make_cart, now):
    promotion = make_promotion(min_quantity=2, max_quantity=4)

    assert check_eligibility(
        promotion, make_cart(("p1", 10, 1)), None, now
    ) == RejectionReason.THRESHOLD_NOT_MET
    assert is_eligible(promotion, make_cart(("p1", 10, 3)), None, now)
    assert check_eligibility(
        promotion, make_cart(("p1", 10, 5)), None, now
    ) == RejectionReason.THRESHOLD_NOT_MET


def test_global_usage_limit(make_promotion, make_cart, now):
    promotion = make_promotion(usage_limit=3, usage_count=3)
    reason = check_eligibility(promotion, make_cart(("p1", 10, 1)), None, now)
    assert reason == RejectionReason.USAGE_LIMIT_EXCEEDED


def test_per_user_limit(make_promotion, make_cart, now):
    promotion = make_promotion(per_user_limit=1)
    cart = make_cart(("p1", 10, 1))

    used = CustomerRef(id="c1", redemption_counts={promotion.id: 1})
    fresh = CustomerRef(id="c2", redemption_counts={"another": 4})

    assert check_eligibility(promotion, cart, used, now) == RejectionReason.USAGE_LIMIT_EXCEEDED
    assert is_eligible(promotion, cart, fresh, now)


def test_guests_and_per_user_limit(make_promotion, make_cart, now):
    promotion = make_promotion(per_user_limit=1)
    cart = make_cart(("p1", 10, 1))

    assert is_eligible(promotion, cart, None, now)
    assert check_eligibility(
        promotion, cart, None, now, allow_guests=False
    ) == RejectionReason.NOT_APPLICABLE_TO_CART


def test_coupon_requires_matching_code(make_promotion, make_cart, now):
    promotion = make_promotion(type="COUPON", code="SAVE10")
    cart = make_cart(("p1", 10, 1))

    assert check_eligibility(promotion, cart, None, now) == RejectionReason.CODE_NOT_FOUND
    assert check_eligibility(
        promotion, cart, None, now, code="OTHER"
    ) == RejectionReason.CODE_NOT_FOUND
    assert is_eligible(promotion, cart, None, now, code=" save10 ")


def test_bogo_needs_a_complete_group(make_promotion, make_cart, now):
    promotion = make_promotion(
        type="BOGO",
        apply_to="PRODUCT",
        product_ids=["p1"],
        bogo_config={"buy_quantity": 2, "get_quantity": 1},
    )

    assert check_eligibility(
        promotion, make_cart(("p1", 10, 2)), None, now
    ) == RejectionReason.THRESHOLD_NOT_MET
    assert is_eligible(promotion, make_cart(("p1", 10, 3)), None, now)


def test_free_gift_threshold(make_promotion, make_cart, now):
    promotion = make_promotion(
        type="FREE_GIFT",
        free_gift_config={"product_id": "gift", "threshold": "50"},
    )

    assert check_eligibility(
        promotion, make_cart(("p1", 49.99, 1)), None, now
    ) == RejectionReason.THRESHOLD_NOT_MET
    assert is_eligible(promotion, make_cart(("p1", 50, 1)), None, now)
