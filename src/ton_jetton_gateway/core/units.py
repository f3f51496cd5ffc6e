"""Conversion between display amounts and integer jetton base units."""

from decimal import Decimal

DEFAULT_DECIMALS = 6


def _to_decimal(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    # str() first so 0.1 becomes Decimal("0.1") rather than its binary expansion
    return Decimal(str(amount))


def amount_to_units(amount: Decimal | int | float | str, decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Convert a display amount to integer base units, rounding down.

    Parameters
    ----------
    amount : Decimal | int | float | str
        Amount in whole tokens (e.g., ``Decimal("1.5")`` USDT)
    decimals : int
        Token decimal precision

    Returns
    -------
    int
        Amount in base units

    Raises
    ------
    ValueError
        If the amount is negative or not a finite number

    Examples
    --------
    >>> amount_to_units("1.5")
    1500000
    >>> amount_to_units("0.0000019")
    1

    """
    value = _to_decimal(amount)
    if not value.is_finite():
        msg = f"Amount must be a finite number, got {amount!r}"
        raise ValueError(msg)
    if value < 0:
        msg = f"Amount must not be negative, got {amount!r}"
        raise ValueError(msg)
    # Exact exponent shift, no context rounding
    sign, digits, exponent = value.as_tuple()
    scaled = Decimal((sign, digits, exponent + decimals))
    # int() truncates toward zero, which is a floor for non-negative values
    return int(scaled)


def units_to_amount(units: int, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """
    Convert integer base units to a display amount.

    Parameters
    ----------
    units : int
        Amount in base units
    decimals : int
        Token decimal precision

    Returns
    -------
    Decimal
        Exact amount in whole tokens

    Raises
    ------
    ValueError
        If units is negative

    """
    if units < 0:
        msg = f"Units must not be negative, got {units}"
        raise ValueError(msg)
    return Decimal(f"{int(units)}e-{decimals}")
