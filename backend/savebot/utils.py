import re
from decimal import Decimal, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")


def clean_goal_name(name: str) -> str:
    """
    '  New   Book ' -> 'New Book'
    Trim and collapse inner whitespace, keep the original casing.
    """
    return re.sub(r"\s+", " ", name).strip()


def normalize_goal_name(name: str) -> str:
    """
    'New  BOOK' -> 'new book'
    Comparison key for goal names; every lookup goes through this.
    """
    return clean_goal_name(name).casefold()


def quantize_amount(value: Decimal) -> Decimal:
    """Normalize money values to cents."""
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
