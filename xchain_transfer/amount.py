"""Token amount conversions.

Cross-chain transfers always move raw integer base units on-chain,
while humans (and the example scripts) think in decimal strings like ``"0.01"``.

Example:

.. code-block:: python

    from xchain_transfer.amount import parse_amount, format_amount

    # 0.2 USDC with 6 decimals
    raw = parse_amount("0.2", 6)
    assert raw == 200_000
    assert format_amount(raw, 6) == "0.2"

"""

from decimal import Decimal, DecimalException, InvalidOperation, localcontext

#: Largest raw amount an EVM token can hold
MAX_RAW_AMOUNT = 2**256 - 1

#: Decimal context precision used for conversions.
#:
#: uint256 has 78 digits, leave room for 18 decimals on top of it.
AMOUNT_PRECISION = 100


class AmountError(ValueError):
    """Amount cannot be expressed in token base units."""


def _to_plain_string(value: Decimal) -> str:
    """Format a decimal without exponent and trailing zeros."""
    value = value.normalize()
    if value == 0:
        return "0"
    return f"{value:f}"


def parse_amount(amount: str | Decimal | int, decimals: int) -> int:
    """Convert a human-readable amount to raw token base units.

    :param amount:
        Decimal amount, like ``"0.01"``

    :param decimals:
        Token decimal precision, like 6 for USDC and 18 for ETH

    :return:
        Amount in base units

    :raise AmountError:
        If the amount is not a number, is negative, does not fit in uint256
        or has more fractional digits than the token supports
    """
    assert type(decimals) == int, f"Got {type(decimals)}: {decimals}"
    assert decimals >= 0, f"Negative decimals: {decimals}"

    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION

        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
        except InvalidOperation as e:
            raise AmountError(f"Not a decimal amount: {amount!r}") from e

        if not value.is_finite():
            raise AmountError(f"Not a finite amount: {amount!r}")

        if value < 0:
            raise AmountError(f"Negative amount: {amount!r}")

        try:
            raw = value.scaleb(decimals)
            fractional = raw != raw.to_integral_value()
        except DecimalException as e:
            raise AmountError(f"Amount out of range: {amount!r}") from e

        if fractional:
            raise AmountError(f"Amount {amount} has more than {decimals} decimals")

        if raw > MAX_RAW_AMOUNT:
            raise AmountError(f"Amount {amount} does not fit in uint256 with {decimals} decimals")

        return int(raw)


def convert_to_decimals(raw_amount: int, decimals: int) -> Decimal:
    """Convert raw token base units to a decimal amount."""
    assert type(raw_amount) == int, f"Got {type(raw_amount)}, expected int: {raw_amount}"
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        return Decimal(raw_amount).scaleb(-decimals)


def format_amount(raw_amount: int, decimals: int) -> str:
    """Convert raw token base units to a human-readable decimal string.

    Trailing zeros are dropped, so the output is comparable with :py:func:`normalise_amount`.
    """
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        return _to_plain_string(convert_to_decimals(raw_amount, decimals))


def normalise_amount(amount: str | Decimal) -> str:
    """Canonical string form of a decimal amount.

    ``"0.010"`` becomes ``"0.01"`` and ``"1e3"`` becomes ``"1000"``.
    """
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
        except InvalidOperation as e:
            raise AmountError(f"Not a decimal amount: {amount!r}") from e
        return _to_plain_string(value)
