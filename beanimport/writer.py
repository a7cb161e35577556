"""Rendering transactions as Beancount ledger text."""

from __future__ import annotations

import datetime as dt
import io
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, TextIO

from beanimport.amounts import MetaValue, Posting, format_meta_value
from beanimport.config import OutputConfig
from beanimport.transaction import Transaction

logger = logging.getLogger(__name__)

_FIAT_CURRENCIES = frozenset(
    {"CNY", "USD", "HKD", "EUR", "JPY", "GBP", "SGD", "CHF", "AUD", "CAD"}
)
_BOOKING_METHODS = frozenset({"STRICT", "FIFO", "LIFO", "AVERAGE", "NONE"})


def _is_fiat(currency: str) -> bool:
    return currency in _FIAT_CURRENCIES


def _sanitize_date_format(raw: str) -> str:
    """Trim the format and drop one pair of surrounding quotes."""
    trimmed = raw.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in "\"'":
        return trimmed[1:-1]
    return trimmed


def _escape(raw: str) -> str:
    return raw.replace("\\", "\\\\").replace('"', '\\"')


def _tags_links(tx: Transaction) -> str:
    parts = [f"#{tag.strip()}" for tag in tx.tags if tag.strip()]
    parts += [f"^{link.strip()}" for link in tx.links if link.strip()]
    return f" {' '.join(parts)}" if parts else ""


@dataclass
class _OpenAccountInfo:
    fiat_currencies: Set[str] = field(default_factory=set)
    has_non_fiat: bool = False


class BeancountWriter:
    """Writes transactions as Beancount text according to an output configuration."""

    def __init__(self, config: Optional[OutputConfig] = None) -> None:
        self.config = config if config is not None else OutputConfig()

    def write(self, transactions: Iterable[Transaction], stream: TextIO) -> None:
        """Write optional ``open`` directives, ``commodity`` directives, then each transaction."""
        transactions = list(transactions)
        if self.config.emit_open_directives:
            self._write_open_directives(transactions, stream)
        self._write_commodity_directives(transactions, stream)

        for index, tx in enumerate(transactions):
            if index > 0:
                stream.write("\n")
            self._write_transaction(tx, stream)

    def render(self, transactions: Iterable[Transaction]) -> str:
        """Return the text that :meth:`write` would produce."""
        buffer = io.StringIO()
        self.write(transactions, buffer)
        return buffer.getvalue()

    # -- directives ------------------------------------------------------

    def _resolve_open_date(self, transactions: Sequence[Transaction]) -> Optional[dt.date]:
        raw = self.config.open_date
        if raw is not None:
            try:
                return dt.datetime.strptime(raw.strip(), "%Y-%m-%d").date()
            except ValueError:
                logger.warning("Ignoring invalid open_date '%s'", raw)
        return min((tx.date for tx in transactions), default=None)

    def _collect_open_accounts(
        self, transactions: Sequence[Transaction]
    ) -> Dict[str, _OpenAccountInfo]:
        accounts: Dict[str, _OpenAccountInfo] = {}
        for tx in transactions:
            for posting in tx.postings:
                info = accounts.setdefault(
                    self._render_account(posting.account), _OpenAccountInfo()
                )
                if posting.amount is None:
                    continue
                if _is_fiat(posting.amount.currency):
                    info.fiat_currencies.add(posting.amount.currency)
                else:
                    info.has_non_fiat = True
        return dict(sorted(accounts.items()))

    def _booking_method(self) -> Optional[str]:
        raw = self.config.booking_method
        if raw is None or not raw.strip():
            return None
        normalized = raw.strip().upper()
        return normalized if normalized in _BOOKING_METHODS else None

    def _write_open_directives(
        self, transactions: Sequence[Transaction], stream: TextIO
    ) -> None:
        open_date = self._resolve_open_date(transactions)
        if open_date is None:
            return
        accounts = self._collect_open_accounts(transactions)
        if not accounts:
            return

        date_text = open_date.strftime("%Y-%m-%d")
        method = self._booking_method()
        for account, info in accounts.items():
            if info.has_non_fiat:
                suffix = f' "{method}"' if method is not None else ""
            elif info.fiat_currencies:
                suffix = " " + ", ".join(sorted(info.fiat_currencies))
            else:
                suffix = ""
            stream.write(f"{date_text} open {account}{suffix}\n")
        stream.write("\n")

    @staticmethod
    def _collect_commodity_symbols(transactions: Sequence[Transaction]) -> List[str]:
        symbols = {
            posting.amount.currency
            for tx in transactions
            for posting in tx.postings
            if posting.amount is not None
            and (posting.cost is not None or posting.price is not None)
            and not _is_fiat(posting.amount.currency)
        }
        return sorted(symbols)

    def _write_commodity_directives(
        self, transactions: Sequence[Transaction], stream: TextIO
    ) -> None:
        symbols = self._collect_commodity_symbols(transactions)
        commodity_date = self._resolve_open_date(transactions)
        if commodity_date is None or not symbols:
            return
        date_text = commodity_date.strftime("%Y-%m-%d")
        for symbol in symbols:
            stream.write(f"{date_text} commodity {symbol}\n")
        stream.write("\n")

    # -- transactions ----------------------------------------------------

    def _write_transaction(self, tx: Transaction, stream: TextIO) -> None:
        logger.debug("Writing transaction: %r", tx)
        date_text = tx.date.strftime(_sanitize_date_format(self.config.date_format))
        header = f"{date_text} {tx.flag}"
        if tx.payee is not None:
            header += f' "{_escape(tx.payee)}"'
        header += f' "{_escape(tx.narration)}"{_tags_links(tx)}'
        stream.write(header + "\n")

        self._write_metadata(tx.metadata, "  ", stream)
        for posting in tx.postings:
            self._write_posting(posting, stream)

    def _write_posting(self, posting: Posting, stream: TextIO) -> None:
        line = "  "
        if posting.flag is not None:
            line += f"{posting.flag} "
        line += self._render_account(posting.account)
        if posting.amount is not None:
            line += f"  {self._format_decimal(posting.amount.number)} {posting.amount.currency}"
        if posting.inferred_cost:
            line += " {}"
        elif posting.cost is not None:
            line += f" {{{posting.cost}}}"
        if posting.price is not None:
            line += f" @ {posting.price}"
        stream.write(line + "\n")
        self._write_metadata(posting.metadata, "    ", stream)

    def _render_account(self, account: str) -> str:
        prefix = self.config.account_prefix
        if prefix is None or account.startswith(prefix):
            return account
        return f"{prefix}:{account}"

    @staticmethod
    def _write_metadata(
        metadata: Mapping[str, MetaValue], indent: str, stream: TextIO
    ) -> None:
        for key in sorted(metadata):
            stream.write(f"{indent}{key}: {format_meta_value(metadata[key])}\n")

    def _format_decimal(self, value: Decimal) -> str:
        return format(value, f".{self.config.decimal_places}f")