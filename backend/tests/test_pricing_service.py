"""
DTG screen price calculator tests.

Expected prices are worked by hand from the pricing steps in
pricing_service's module docstring.
"""

from decimal import Decimal

import pytest

from garmentops.services.pricing_service import (
    DTGSettings,
    ScreenInputs,
    calculate_screen_price,
    quantity_discount_rate,
)
from garmentops.validation import ValidationError


def _price(**data):
    data.setdefault("quantity", 1)
    return calculate_screen_price(ScreenInputs.from_dict(data))


class TestDarkShirts:

    def test_single_side(self):
        # 5*16 + 40 = 120 -> 102 -> 110 -> 143 -> 150
        result = _price(ink_cc=5)
        assert result.price_per_item == Decimal("150")
        assert result.discount_rate == 0
        assert result.discount_text == "No quantity discount"

    def test_minimum_sell_price(self):
        # 0 + 40 = 40 -> 34 -> 40 -> 52 -> 60, raised to 100
        result = _price(ink_cc=0)
        assert result.price_per_item == Decimal("100")
        assert any("minimum sell price" in line for line in result.details)

    def test_neck_logo_and_sleeves(self):
        # 80 + 40 + 30 + 2*70 = 290 -> 246.5 -> 250 -> 325 -> 330
        result = _price(ink_cc=5, has_neck_logo=True, sleeve_print_count=2)
        assert result.price_per_item == Decimal("330")

    def test_fractional_ink_has_no_float_noise(self):
        # 6.25*16 + 40 = 140 -> 119 -> 120 -> 156 -> 160
        result = _price(ink_cc=6.25)
        assert result.price_per_item == Decimal("160")

    def test_two_sides_use_two_side_pretreat(self):
        # 5*16 + 70 = 150 -> 127.5 -> 130 -> 169 -> 170
        result = _price(ink_cc=5, sides=2)
        assert result.price_per_item == Decimal("170")


class TestWhiteShirts:

    def test_size_minimum_applies(self):
        # 120 -> 102 -> 110 -> 143 - 40 = 103 -> 110, A4 minimum 150
        result = _price(ink_cc=5, color="white", size_front="A4")
        assert result.price_per_item == Decimal("150")

    def test_small_print_minimum(self):
        result = _price(ink_cc=5, color="white", size_front="A6")
        assert result.price_per_item == Decimal("110")

    def test_back_side_choice_uses_back_size(self):
        result = _price(ink_cc=5, color="white", side_choice="back", size_front="A6", size_back="A2")
        assert result.price_per_item == Decimal("180")

    def test_two_sides_larger_min_plus_smaller_add(self):
        # 160 + 70 = 230 -> 195.5 -> 200 -> 260 - 40 = 220; minimum A3 150 + A6 50 = 200
        result = _price(ink_cc=10, color="white", sides=2, size_front="A3", size_back="A6")
        assert result.price_per_item == Decimal("220")
        assert any("larger side A3 + smaller side A6" in line for line in result.details)

    def test_two_sides_minimum_raises_price(self):
        # 80 + 70 = 150 -> 127.5 -> 130 -> 169 - 40 = 129 -> 130; minimum A2 180 + A4 80 = 260
        result = _price(ink_cc=5, color="white", sides=2, size_front="A4", size_back="A2")
        assert result.price_per_item == Decimal("260")

    def test_price_cap(self):
        # 480 + 70 = 550 -> 467.5 -> 470 -> 611 - 40 = 571 -> 580, capped at 300
        result = _price(ink_cc=30, color="white", sides=2, size_front="A4", size_back="A4")
        assert result.price_per_item == Decimal("300")
        assert any("capped" in line for line in result.details)


class TestQuantityDiscount:

    @pytest.mark.parametrize("quantity,rate", [
        (1, Decimal("0")),
        (29, Decimal("0")),
        (30, Decimal("0.05")),
        (49, Decimal("0.05")),
        (50, Decimal("0.10")),
        (100, Decimal("0.15")),
    ])
    def test_tiers(self, quantity, rate):
        assert quantity_discount_rate(quantity) == rate

    def test_discount_applies_to_unit_price_and_total(self):
        result = _price(ink_cc=5, quantity=100)

        assert result.price_per_item == Decimal("127.5")
        assert result.discount_text == "15% quantity discount"
        data = result.to_dict(quantity=100)
        assert data["price_per_item"] == 127.5
        assert data["total"] == 12750.0


class TestSettings:

    def test_overrides_change_the_result(self):
        settings = DTGSettings.from_dict({"MIN_SELL_PRICE": 200})
        result = calculate_screen_price(ScreenInputs.from_dict({"quantity": 1, "ink_cc": 5}), settings)
        assert result.price_per_item == Decimal("200")

    def test_unknown_setting_is_rejected(self):
        with pytest.raises(ValidationError, match="Unknown setting"):
            DTGSettings.from_dict({"GOLD_FOIL": 10})

    @pytest.mark.parametrize("value", ["abc", True, float("nan"), float("inf")])
    def test_setting_must_be_a_finite_number(self, value):
        with pytest.raises(ValidationError):
            DTGSettings.from_dict({"INK_COST_PER_CC": value})


class TestInputValidation:

    @pytest.mark.parametrize("data", [
        {"quantity": 0, "ink_cc": 5},
        {"quantity": 1.5, "ink_cc": 5},
        {"quantity": 1},
        {"quantity": 1, "ink_cc": -1},
        {"quantity": 1, "ink_cc": 5, "color": "red"},
        {"quantity": 1, "ink_cc": 5, "sides": 3},
        {"quantity": 1, "ink_cc": 5, "side_choice": "left"},
        {"quantity": 1, "ink_cc": 5, "size_front": "A1"},
        {"quantity": 1, "ink_cc": 5, "sleeve_print_count": -1},
        {"quantity": 1, "ink_cc": 5, "has_neck_logo": "false"},
        {"quantity": 1, "ink_cc": 5, "has_neck_logo": 1},
    ])
    def test_rejected(self, data):
        with pytest.raises(ValidationError):
            ScreenInputs.from_dict(data)

    def test_sides_accepts_numeric_string(self):
        assert ScreenInputs.from_dict({"quantity": 1, "ink_cc": 5, "sides": "2"}).sides == 2
