"""Normalised intermediate record parsed from a statement row."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

_TEXT_FIELDS = frozenset(
    {
        "payee",
        "narration",
        "transaction_type",
        "status",
        "reference",
        "symbol",
        "security_name",
        "currency",
    }
)


@dataclass
class RawRecord:
    """Standard fields of one statement row plus provider-specific extras."""

    date: Optional[dt.date] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payee: Optional[str] = None
    narration: Optional[str] = None
    transaction_type: Optional[str] = None
    status: Optional[str] = None
    reference: Optional[str] = None
    symbol: Optional[str] = None
    security_name: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    fee: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    extra: Dict[str, str] = field(default_factory=dict)

    def get(self, field: str) -> Optional[str]:
        """Return a standard text field or, failing that, an extra field."""
        if field in _TEXT_FIELDS:
            return getattr(self, field)
        return self.extra.get(field)

    def set_extra(self, key: str, value: str) -> None:
        """Store a provider-specific field."""
        self.extra[key] = value

    def is_security_transaction(self) -> bool:
        """Whether the record carries both a symbol and a quantity."""
        return self.symbol is not None and self.quantity is not None