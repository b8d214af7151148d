import pytest

from vendorpos.services.pricing_service import (
    Cart,
    CartLine,
    ChargeInput,
    DiscountRule,
    InvalidCartLine,
    PricingError,
    apply_rate,
    discount_for,
    price_cart,
    round_half_up,
)


def _line(price=100, qty=2, item_id=1, item_type="product", name="Soap"):
    return CartLine(item_type=item_type, item_id=item_id, name=name, unit_price_cents=price, quantity=qty)


def test_scenario_a_no_discount():
    result = price_cart([_line(100, 2)])

    assert result.subtotal_cents == 200
    assert result.discount_cents == 0
    assert result.tax_cents == 36
    assert result.grand_total_cents == 236


def test_scenario_b_twenty_percent_coupon_rounds_tax_half_up():
    rule = DiscountRule(kind="percentage", value=2000, coupon_id=7, coupon_code="SAVE20")
    result = price_cart([_line(100, 2)], rule)

    assert result.subtotal_cents == 200
    assert result.discount_cents == 40
    assert result.taxable_cents == 160
    # 160 * 18% = 28.8 -> 29
    assert result.tax_cents == 29
    assert result.grand_total_cents == 189
    assert result.to_dict()["discount_type"] == "coupon"
    assert result.to_dict()["coupon_code"] == "SAVE20"


def test_round_half_up_boundaries():
    assert round_half_up(5, 10) == 1
    assert round_half_up(4, 10) == 0
    assert round_half_up(15, 10) == 2
    assert apply_rate(250, 1800) == 45
    # 25 * 18% = 4.5 -> 5
    assert apply_rate(25, 1800) == 5


def test_fixed_discount_is_clamped_to_subtotal():
    result = price_cart([_line(100, 2)], DiscountRule(kind="fixed", value=500))

    assert result.discount_cents == 200
    assert result.taxable_cents == 0
    assert result.tax_cents == 0
    assert result.grand_total_cents == 0


def test_negative_fixed_discount_is_clamped_to_zero():
    result = price_cart([_line(100, 2)], DiscountRule(kind="fixed", value=-50))
    assert result.discount_cents == 0
    assert result.grand_total_cents == 236


def test_percentage_over_hundred_is_clamped():
    result = price_cart([_line(100, 2)], DiscountRule(kind="percentage", value=15000))
    assert result.discount_cents == 200


def test_discount_for_returns_raw_unclamped_value():
    assert discount_for("fixed", 500, 200) == 500
    assert discount_for("percentage", 2000, 200) == 40
    assert discount_for("percentage", 0, 200) == 0
    with pytest.raises(PricingError):
        discount_for("bogo", 1, 200)


def test_charges_are_taxed_separately():
    result = price_cart(
        [_line(100, 2)],
        charges=[ChargeInput(label="Packing", base_cents=50, tax_rate_bps=1800)],
    )

    charge = result.charges[0]
    assert charge.tax_cents == 9
    assert charge.total_cents == 59
    assert result.charges_total_cents == 59
    assert result.grand_total_cents == 236 + 59


def test_vendor_tax_rate_override():
    result = price_cart([_line(100, 2)], tax_rate_bps=500)
    assert result.tax_cents == 10
    assert result.grand_total_cents == 210


def test_empty_cart_prices_to_zero():
    result = price_cart([])
    assert result.subtotal_cents == 0
    assert result.grand_total_cents == 0


def test_pricing_is_deterministic():
    lines = [_line(333, 3), _line(99, 1, item_id=2, name="Comb")]
    rule = DiscountRule(kind="percentage", value=1250)
    charges = [ChargeInput(label="Delivery", base_cents=75)]

    assert price_cart(lines, rule, charges) == price_cart(lines, rule, charges)


@pytest.mark.parametrize("qty", [0, -1])
def test_non_positive_quantity_rejected(qty):
    with pytest.raises(InvalidCartLine):
        price_cart([_line(100, qty)])


def test_negative_price_rejected():
    with pytest.raises(InvalidCartLine):
        price_cart([_line(-1, 1)])


def test_float_quantity_rejected():
    with pytest.raises(InvalidCartLine):
        price_cart([_line(100, 1.5)])


def test_unknown_item_type_rejected():
    with pytest.raises(InvalidCartLine):
        price_cart([_line(item_type="bundle")])


def test_cart_add_merges_same_item():
    cart = Cart()
    cart.add(_line(100, 1))
    merged = cart.add(_line(100, 2))

    assert len(cart) == 1
    assert merged.quantity == 3
    assert cart.quantity_of("product", 1) == 3


def test_cart_keeps_product_and_service_with_same_id_apart():
    cart = Cart()
    cart.add(_line(100, 1, item_id=1, item_type="product"))
    cart.add(_line(40, 1, item_id=1, item_type="service", name="Delivery"))
    assert len(cart) == 2


def test_cart_set_quantity_zero_removes_line():
    cart = Cart()
    cart.add(_line(100, 2))
    assert cart.set_quantity("product", 1, 0) is None
    assert len(cart) == 0


def test_cart_set_quantity_negative_rejected_and_line_kept():
    cart = Cart()
    cart.add(_line(100, 2))
    with pytest.raises(InvalidCartLine):
        cart.set_quantity("product", 1, -3)
    assert cart.quantity_of("product", 1) == 2


def test_cart_lines_feed_price_cart():
    cart = Cart()
    cart.add(_line(100, 1))
    cart.add(_line(100, 1))
    assert price_cart(cart.lines).grand_total_cents == 236
