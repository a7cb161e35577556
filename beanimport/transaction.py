"""Ledger transaction model."""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from beanimport.amounts import MetaValue, Posting


@dataclass
class Transaction:
    """A dated transaction with its postings."""

    date: dt.date
    narration: str
    flag: str = "*"
    payee: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    postings: List[Posting] = field(default_factory=list)
    metadata: Dict[str, MetaValue] = field(default_factory=dict)

    def is_balanced(self) -> bool:
        """Whether postings balance per currency.

        A single posting without an amount is accepted since the ledger
        fills it in; more than one is not.
        """
        missing = sum(1 for posting in self.postings if posting.amount is None)
        if missing > 1:
            return False
        if missing == 1:
            return True

        balances: Dict[str, Decimal] = defaultdict(Decimal)
        for posting in self.postings:
            balances[posting.amount.currency] += posting.amount.number
        return all(total == 0 for total in balances.values())