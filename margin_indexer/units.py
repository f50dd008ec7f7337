from decimal import Decimal, ROUND_HALF_EVEN

# ledger amounts carry 6 implied decimals
DECIMALS = 6
SCALE = 10 ** DECIMALS
BASIS_POINTS = 10_000

def to_display(base_units: int) -> float:
    return base_units / SCALE

def to_base_units(amount) -> int:
    # repr() keeps the shortest decimal that maps back to the same float
    d = Decimal(repr(amount)) if isinstance(amount, float) else Decimal(str(amount))
    return int((d * SCALE).quantize(Decimal(1), rounding=ROUND_HALF_EVEN))

def scale_by_basis_points(base_units: int, bps: int) -> int:
    # truncates any fraction of a base unit
    return base_units * bps // BASIS_POINTS

def notional(quantity: int, price: int) -> int:
    return quantity * price // SCALE

def fmt_usd(base_units: int) -> str:
    return f"${to_display(abs(base_units)):.2f}"
