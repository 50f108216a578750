# Overview: DTG (direct-to-garment) screen price calculator. Pure functions, no DB access.

"""
Price per printed garment, in baht:

    1. raw cost   = ink_cc * INK_COST_PER_CC + pretreat(1 or 2 sides)
                    + neck logo + sleeve prints
    2. raw * 0.85, rounded up to the next 10
    3. * PROFIT_MARGIN
    4. white shirts: - WHITE_TSHIRT_DISCOUNT
    5. round up to the next 10
    6. white: cap at WHITE_TSHIRT_PRICE_CAP, then raise to the print-size minimum
       dark:  raise to MIN_SELL_PRICE
    7. quantity discount (30+ / 50+ / 100+ pieces)

Decimal arithmetic throughout so "round up to the next 10" never trips on
binary float noise (e.g. 130.00000000000003 -> 140).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from ..validation import ValidationError


PRINT_SIZES = ("A7", "A6", "A5", "A4", "A3", "A2")
SIZE_ORDER = {size: idx for idx, size in enumerate(PRINT_SIZES, start=1)}

SHIRT_COLORS = ("white", "dark")
SIDE_CHOICES = ("front", "back")

_COST_FACTOR = Decimal("0.85")


@dataclass(frozen=True)
class DTGSettings:
    INK_COST_PER_CC: Decimal = Decimal("16")
    PRETREAT_1_SIDE: Decimal = Decimal("40")
    PRETREAT_2_SIDES: Decimal = Decimal("70")
    NECK_LOGO_COST: Decimal = Decimal("30")
    SLEEVE_PRINT_COST: Decimal = Decimal("70")
    WHITE_TSHIRT_DISCOUNT: Decimal = Decimal("40")
    PROFIT_MARGIN: Decimal = Decimal("1.30")
    MIN_SELL_PRICE: Decimal = Decimal("100")
    WHITE_TSHIRT_PRICE_CAP: Decimal = Decimal("300")
    # percent
    DISCOUNT_TIER_30: Decimal = Decimal("5")
    DISCOUNT_TIER_50: Decimal = Decimal("10")
    DISCOUNT_TIER_100: Decimal = Decimal("15")
    WHITE_MIN_A7_A5: Decimal = Decimal("100")
    WHITE_MIN_A4_A3: Decimal = Decimal("150")
    WHITE_MIN_A2: Decimal = Decimal("180")
    WHITE_ADD_A7_A5: Decimal = Decimal("50")
    WHITE_ADD_A4_A3: Decimal = Decimal("80")
    WHITE_ADD_A2: Decimal = Decimal("100")

    @classmethod
    def from_dict(cls, overrides: dict | None) -> "DTGSettings":
        """Defaults with any known keys replaced; unknown keys are rejected."""
        if not overrides:
            return cls()
        if not isinstance(overrides, dict):
            raise ValidationError("settings must be an object")
        known = {f.name for f in fields(cls)}
        values = {}
        for key, raw in overrides.items():
            if key not in known:
                raise ValidationError(f"Unknown setting: {key}")
            values[key] = _to_decimal(raw, key)
        return cls(**values)

    def to_dict(self) -> dict:
        return {f.name: float(getattr(self, f.name)) for f in fields(self)}


DEFAULT_SETTINGS = DTGSettings()


@dataclass(frozen=True)
class ScreenInputs:
    quantity: int
    ink_cc: Decimal
    color: str = "dark"
    sides: int = 1
    side_choice: str = "front"
    size_front: str = "A4"
    size_back: str = "A4"
    has_neck_logo: bool = False
    sleeve_print_count: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "ScreenInputs":
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")

        quantity = data.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("quantity must be a positive integer")

        if "ink_cc" not in data:
            raise ValidationError("Missing required fields: ink_cc")
        ink_cc = _to_decimal(data["ink_cc"], "ink_cc")
        if ink_cc < 0:
            raise ValidationError("ink_cc must be >= 0")

        color = data.get("color", "dark")
        if color not in SHIRT_COLORS:
            raise ValidationError(f"color must be one of: {', '.join(SHIRT_COLORS)}")

        sides = data.get("sides", 1)
        if isinstance(sides, str) and sides.strip().isdigit():
            sides = int(sides.strip())
        if sides not in (1, 2):
            raise ValidationError("sides must be 1 or 2")

        side_choice = data.get("side_choice", "front")
        if side_choice not in SIDE_CHOICES:
            raise ValidationError("side_choice must be front or back")

        size_front = data.get("size_front", "A4")
        size_back = data.get("size_back", "A4")
        for key, size in (("size_front", size_front), ("size_back", size_back)):
            if size not in SIZE_ORDER:
                raise ValidationError(f"{key} must be one of: {', '.join(PRINT_SIZES)}")

        sleeves = data.get("sleeve_print_count", 0)
        if isinstance(sleeves, bool) or not isinstance(sleeves, int) or sleeves < 0:
            raise ValidationError("sleeve_print_count must be a non-negative integer")

        has_neck_logo = data.get("has_neck_logo", False)
        if not isinstance(has_neck_logo, bool):
            raise ValidationError("has_neck_logo must be true or false")

        return cls(
            quantity=quantity,
            ink_cc=ink_cc,
            color=color,
            sides=sides,
            side_choice=side_choice,
            size_front=size_front,
            size_back=size_back,
            has_neck_logo=has_neck_logo,
            sleeve_print_count=sleeves,
        )


@dataclass
class CalculationResult:
    price_per_item: Decimal
    discount_rate: Decimal
    details: list[str] = field(default_factory=list)

    @property
    def discount_text(self) -> str:
        if self.discount_rate <= 0:
            return "No quantity discount"
        return f"{_fmt(self.discount_rate * 100, places=0)}% quantity discount"

    def total_for(self, quantity: int) -> Decimal:
        return (self.price_per_item * quantity).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def to_dict(self, quantity: int | None = None) -> dict:
        data = {
            "price_per_item": float(self.price_per_item.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
            "discount_rate": float(self.discount_rate),
            "discount_text": self.discount_text,
            "details": list(self.details),
        }
        if quantity is not None:
            data["total"] = float(self.total_for(quantity))
        return data


def _to_decimal(value, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        # str() first so 0.1 becomes Decimal("0.1") rather than its float expansion
        result = Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(f"{name} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{name} must be a number")
    return result


def _ceil_to_ten(value: Decimal) -> Decimal:
    return (value / 10).to_integral_value(rounding=ROUND_CEILING) * 10


def _fmt(value: Decimal, places: int = 2) -> str:
    q = Decimal(1).scaleb(-places)
    return f"{value.quantize(q, rounding=ROUND_HALF_UP)}"


def _white_size_price(settings: DTGSettings, size: str, kind: str) -> Decimal:
    """kind 'min' is the base price of the main side, 'add' the surcharge for a second side."""
    if size in ("A7", "A6", "A5"):
        return settings.WHITE_MIN_A7_A5 if kind == "min" else settings.WHITE_ADD_A7_A5
    if size in ("A4", "A3"):
        return settings.WHITE_MIN_A4_A3 if kind == "min" else settings.WHITE_ADD_A4_A3
    if size == "A2":
        return settings.WHITE_MIN_A2 if kind == "min" else settings.WHITE_ADD_A2
    return Decimal(0)


def quantity_discount_rate(quantity: int, settings: DTGSettings = DEFAULT_SETTINGS) -> Decimal:
    if quantity >= 100:
        return settings.DISCOUNT_TIER_100 / 100
    if quantity >= 50:
        return settings.DISCOUNT_TIER_50 / 100
    if quantity >= 30:
        return settings.DISCOUNT_TIER_30 / 100
    return Decimal(0)


def calculate_screen_price(inputs: ScreenInputs, settings: DTGSettings = DEFAULT_SETTINGS) -> CalculationResult:
    details: list[str] = []

    pretreat = settings.PRETREAT_1_SIDE if inputs.sides == 1 else settings.PRETREAT_2_SIDES
    neck = settings.NECK_LOGO_COST if inputs.has_neck_logo else Decimal(0)
    sleeves = settings.SLEEVE_PRINT_COST * inputs.sleeve_print_count
    raw_cost = inputs.ink_cc * settings.INK_COST_PER_CC + pretreat + neck + sleeves

    addons = ""
    if inputs.has_neck_logo:
        addons += f" + neck logo {_fmt(neck, 0)}"
    if inputs.sleeve_print_count > 0:
        addons += f" + sleeves {_fmt(sleeves, 0)}"
    details.append(
        f"Print cost: (ink {inputs.ink_cc}cc x {_fmt(settings.INK_COST_PER_CC, 0)}) "
        f"+ pretreat {_fmt(pretreat, 0)}{addons} = {_fmt(raw_cost)}"
    )

    reduced = raw_cost * _COST_FACTOR
    details.append(f"Less 15%: {_fmt(reduced)}")

    screen_cost = _ceil_to_ten(reduced)
    details.append(f"Rounded up to tens: {_fmt(screen_cost, 0)}")

    sell_raw = screen_cost * settings.PROFIT_MARGIN
    details.append(f"Raw sell price: {_fmt(screen_cost, 0)} x {settings.PROFIT_MARGIN} = {_fmt(sell_raw)}")

    if inputs.color == "white":
        sell_raw -= settings.WHITE_TSHIRT_DISCOUNT
        details.append(f"White shirt discount {_fmt(settings.WHITE_TSHIRT_DISCOUNT, 0)}: {_fmt(sell_raw)}")

    price = _ceil_to_ten(sell_raw)
    details.append(f"Rounded up to tens: {_fmt(price, 0)}")

    if inputs.color == "white":
        if price > settings.WHITE_TSHIRT_PRICE_CAP:
            price = settings.WHITE_TSHIRT_PRICE_CAP
            details.append(f"White shirt price capped at {_fmt(price, 0)}")

        if inputs.sides == 1:
            size = inputs.size_front if inputs.side_choice == "front" else inputs.size_back
            minimum = _white_size_price(settings, size, "min")
            label = f"size {size}"
        else:
            if SIZE_ORDER[inputs.size_front] >= SIZE_ORDER[inputs.size_back]:
                larger, smaller = inputs.size_front, inputs.size_back
            else:
                larger, smaller = inputs.size_back, inputs.size_front
            minimum = _white_size_price(settings, larger, "min") + _white_size_price(settings, smaller, "add")
            label = f"larger side {larger} + smaller side {smaller}"

        details.append(f"White shirt minimum ({label}): {_fmt(minimum, 0)}")
        if price < minimum:
            price = minimum
            details.append(f"Raised to print-size minimum: {_fmt(price, 0)}")
    elif price < settings.MIN_SELL_PRICE:
        price = settings.MIN_SELL_PRICE
        details.append(f"Raised to minimum sell price: {_fmt(price, 0)}")

    rate = quantity_discount_rate(inputs.quantity, settings)
    per_item = price * (1 - rate)
    if rate > 0:
        details.append(
            f"Quantity discount {_fmt(rate * 100, 0)}% ({inputs.quantity} pcs): "
            f"{_fmt(price, 0)} x {_fmt(1 - rate)} = {_fmt(per_item)}"
        )

    return CalculationResult(price_per_item=per_item, discount_rate=rate, details=details)
