# storefront/utils/money.py

from decimal import Decimal, ROUND_HALF_UP

Money = Decimal
ZERO = Decimal("0.00")


def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def round_money(x: Money) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_minor_units(x) -> int:
    # paise / cents
    return int((round_money(x) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Money:
    return round_money(Decimal(int(amount)) / Decimal(100))
