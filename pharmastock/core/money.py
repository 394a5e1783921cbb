from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

MONEY_QUANT = Decimal("0.01")
ZERO_MONEY = Decimal("0.00")

MoneyLike = Decimal | int | float | str


def to_money(value: MoneyLike) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[MoneyLike]) -> Decimal:
    total = ZERO_MONEY
    for value in values:
        total += Decimal(str(value))
    return to_money(total)


def line_total(quantity: int, unit_price: MoneyLike, discount: MoneyLike = ZERO_MONEY) -> Decimal:
    # discount is per unit
    return to_money(Decimal(quantity) * to_money(unit_price) - Decimal(quantity) * to_money(discount))
