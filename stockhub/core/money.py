from decimal import Decimal, ROUND_HALF_UP

# Kuwaiti dinar amounts carry three decimals.
MONEY_QUANT = Decimal("0.001")
ZERO_MONEY = Decimal("0.000")


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        return ZERO_MONEY
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def line_total(quantity: float, unit_price: Decimal | int | float | str | None) -> Decimal:
    return to_money(Decimal(str(quantity)) * to_money(unit_price))
