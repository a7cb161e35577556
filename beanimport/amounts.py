"""Amounts, costs, prices, postings and metadata values."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Union


def _format_number(number: Decimal) -> str:
    return format(number, "f")


@dataclass(frozen=True)
class Amount:
    """A number together with its currency or commodity code."""

    number: Decimal
    currency: str

    def negate(self) -> "Amount":
        """Return the amount with its sign flipped."""
        return Amount(-self.number, self.currency)

    def is_zero(self) -> bool:
        """Whether the number is zero."""
        return self.number == 0

    def __str__(self) -> str:
        return f"{_format_number(self.number)} {self.currency}"


@dataclass(frozen=True)
class Cost:
    """Per-unit cost basis of a lot, rendered inside ``{...}``."""

    number: Decimal
    currency: str
    date: Optional[dt.date] = None
    label: Optional[str] = None

    def __str__(self) -> str:
        text = f"{_format_number(self.number)} {self.currency}"
        if self.date is not None:
            text += f", {self.date.strftime('%Y-%m-%d')}"
        if self.label is not None:
            text += f', "{self.label}"'
        return text


@dataclass(frozen=True)
class Price:
    """Per-unit market price, rendered after ``@``."""

    number: Decimal
    currency: str

    def __str__(self) -> str:
        return f"{_format_number(self.number)} {self.currency}"


MetaValue = Union[str, Decimal, bool, dt.date, Amount]


def format_meta_value(value: MetaValue) -> str:
    """Render a metadata value in ledger syntax."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, Decimal):
        return _format_number(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, dt.date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, Amount):
        return str(value)
    raise TypeError(f"unsupported metadata value: {value!r}")


@dataclass
class Posting:
    """One leg of a transaction.

    ``inferred_cost`` renders an empty ``{}`` so the ledger matches an
    existing lot; it takes precedence over ``cost``.
    """

    account: str
    amount: Optional[Amount] = None
    cost: Optional[Cost] = None
    inferred_cost: bool = False
    price: Optional[Price] = None
    flag: Optional[str] = None
    metadata: Dict[str, MetaValue] = field(default_factory=dict)