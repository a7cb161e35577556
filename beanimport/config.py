"""Configuration models: CSV options, output, provider and global settings."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import yaml

from beanimport.errors import ConfigError
from beanimport.rules import Rule

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_DECIMAL_PLACES = 2
DEFAULT_CURRENCY = "CNY"

_MISSING = object()


def _lookup(data: Dict[str, Any], names: Sequence[str]) -> Any:
    """Return the value stored under one of ``names``; a key and its alias may not both appear."""
    present = [name for name in names if name in data]
    if len(present) > 1:
        raise ConfigError(f"duplicate field: {' / '.join(present)}")
    if not present:
        return _MISSING
    return data[present[0]]


def _opt_str(data: Dict[str, Any], *names: str) -> Optional[str]:
    value = _lookup(data, names)
    if value is _MISSING or value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dt.date):
        return value.isoformat()
    raise ConfigError(f"'{names[0]}' must be a string, got {value!r}")


def _str(data: Dict[str, Any], name: str, default: str) -> str:
    value = _opt_str(data, name)
    return default if value is None else value


def _bool(data: Dict[str, Any], name: str, default: bool) -> bool:
    value = data.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"'{name}' must be a boolean, got {value!r}")
    return value


def _non_negative_int(data: Dict[str, Any], name: str, default: int) -> int:
    value = data.get(name)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"'{name}' must be a non-negative integer, got {value!r}")
    return value


def _char(data: Dict[str, Any], name: str, default: Optional[str]) -> Optional[str]:
    value = data.get(name)
    if value is None:
        return default
    if not isinstance(value, str) or len(value) != 1:
        raise ConfigError(f"'{name}' must be a single character, got {value!r}")
    return value


def _mapping(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{what} must be a mapping, got {type(value).__name__}")
    return value


def _load_yaml(text: str, what: str) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid {what} YAML: {exc}") from exc
    return _mapping(data, what)


def _rules(value: Any, name: str) -> List[Rule]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"'{name}' must be a list of rules")
    return [Rule.from_dict(item) for item in value]


def _first_non_empty(primary: Optional[str], fallback: Optional[str]) -> Optional[str]:
    for candidate in (primary, fallback):
        if candidate is not None and candidate.strip():
            return candidate.strip()
    return None


@dataclass
class CsvOptions:
    """How a CSV source is split into fields."""

    delimiter: str = ","
    quote: str = '"'
    flexible: bool = False
    encoding: str = "UTF-8"
    comment: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CsvOptions":
        """Build from a parsed mapping; missing keys take their defaults."""
        data = _mapping(data, "csv_options")
        return cls(
            delimiter=_char(data, "delimiter", ","),
            quote=_char(data, "quote", '"'),
            flexible=_bool(data, "flexible", False),
            encoding=_str(data, "encoding", "UTF-8"),
            comment=_char(data, "comment", None),
        )


@dataclass
class OutputConfig:
    """How transactions are written out."""

    date_format: str = DEFAULT_DATE_FORMAT
    decimal_places: int = DEFAULT_DECIMAL_PLACES
    account_prefix: Optional[str] = None
    emit_open_directives: bool = False
    open_date: Optional[str] = None
    booking_method: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutputConfig":
        """Build from a parsed mapping; missing keys take their defaults."""
        data = _mapping(data, "output")
        return cls(
            date_format=_str(data, "date_format", DEFAULT_DATE_FORMAT),
            decimal_places=_non_negative_int(data, "decimal_places", DEFAULT_DECIMAL_PLACES),
            account_prefix=_opt_str(data, "account_prefix"),
            emit_open_directives=_bool(data, "emit_open_directives", False),
            open_date=_opt_str(data, "open_date"),
            booking_method=_opt_str(data, "booking_method"),
        )

    def merge_with(self, other: "OutputConfig") -> None:
        """Fill values still at their defaults from ``other``; own settings win."""
        if self.date_format == DEFAULT_DATE_FORMAT:
            self.date_format = other.date_format
        if self.decimal_places == DEFAULT_DECIMAL_PLACES:
            self.decimal_places = other.decimal_places
        if self.account_prefix is None:
            self.account_prefix = other.account_prefix
        if not self.emit_open_directives:
            self.emit_open_directives = other.emit_open_directives
        if self.open_date is None:
            self.open_date = other.open_date
        if self.booking_method is None:
            self.booking_method = other.booking_method
        logger.debug("Merged output config: %r", self)


@dataclass
class SecuritiesAccountsConfig:
    """Accounts used for brokerage statements."""

    cash_account: Optional[str] = None
    fee_account: Optional[str] = None
    pnl_account: Optional[str] = None
    repo_interest_account: Optional[str] = None
    rounding_account: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SecuritiesAccountsConfig":
        """Build from a parsed mapping; each key also accepts a ``default_`` prefix."""
        data = _mapping(data, "securities_accounts")
        return cls(
            cash_account=_opt_str(data, "cash_account", "default_cash_account"),
            fee_account=_opt_str(data, "fee_account", "default_fee_account"),
            pnl_account=_opt_str(data, "pnl_account", "default_pnl_account"),
            repo_interest_account=_opt_str(
                data, "repo_interest_account", "default_repo_interest_account"
            ),
            rounding_account=_opt_str(data, "rounding_account", "default_rounding_account"),
        )


@dataclass
class GlobalConfig:
    """Settings shared by all providers."""

    default_currency: str = DEFAULT_CURRENCY
    default_expense_account: Optional[str] = None
    default_asset_account: Optional[str] = None
    default_income_account: Optional[str] = None
    global_rules: List[Rule] = field(default_factory=list)
    providers: Dict[str, "ProviderConfig"] = field(default_factory=dict)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GlobalConfig":
        """Build from a parsed global configuration document."""
        data = _mapping(data, "global config")
        providers = _mapping(data.get("providers"), "'providers'")
        return cls(
            default_currency=_str(data, "default_currency", DEFAULT_CURRENCY),
            default_expense_account=_opt_str(data, "default_expense_account"),
            default_asset_account=_opt_str(data, "default_asset_account"),
            default_income_account=_opt_str(data, "default_income_account"),
            global_rules=_rules(data.get("global_rules"), "global_rules"),
            providers={
                str(name): ProviderConfig.from_dict(value) for name, value in providers.items()
            },
            output=OutputConfig.from_dict(data.get("output")),
        )

    @classmethod
    def from_yaml(cls, text: str) -> "GlobalConfig":
        """Parse a YAML global configuration document."""
        return cls.from_dict(_load_yaml(text, "global config"))


@dataclass
class ProviderConfig:
    """Settings of one provider; the flat ``default_*`` account keys are legacy."""

    name: Optional[str] = None
    mapping_file: Optional[str] = None
    default_asset_account: Optional[str] = None
    default_expense_account: Optional[str] = None
    default_income_account: Optional[str] = None
    default_currency: Optional[str] = None
    securities_accounts: SecuritiesAccountsConfig = field(
        default_factory=SecuritiesAccountsConfig
    )
    default_cash_account: Optional[str] = None
    default_fee_account: Optional[str] = None
    default_pnl_account: Optional[str] = None
    default_repo_interest_account: Optional[str] = None
    default_rounding_account: Optional[str] = None
    inventory_seed_files: List[str] = field(default_factory=list)
    csv_options: CsvOptions = field(default_factory=CsvOptions)
    rules: List[Rule] = field(default_factory=list)
    output: OutputConfig = field(default_factory=OutputConfig)
    skip_header_lines: int = 0
    has_csv_header: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        """Build from a parsed provider configuration document."""
        data = _mapping(data, "provider config")

        seeds = _lookup(
            data, ("inventory_seed_files", "lot_seed_files", "history_beancount_files")
        )
        if seeds is _MISSING or seeds is None:
            seeds = []
        if not isinstance(seeds, list) or not all(isinstance(item, str) for item in seeds):
            raise ConfigError("'inventory_seed_files' must be a list of strings")

        return cls(
            name=_opt_str(data, "name"),
            mapping_file=_opt_str(data, "mapping_file"),
            default_asset_account=_opt_str(data, "default_asset_account"),
            default_expense_account=_opt_str(data, "default_expense_account"),
            default_income_account=_opt_str(data, "default_income_account"),
            default_currency=_opt_str(data, "default_currency"),
            securities_accounts=SecuritiesAccountsConfig.from_dict(
                data.get("securities_accounts")
            ),
            default_cash_account=_opt_str(data, "default_cash_account", "cash_account"),
            default_fee_account=_opt_str(data, "default_fee_account", "fee_account"),
            default_pnl_account=_opt_str(data, "default_pnl_account", "pnl_account"),
            default_repo_interest_account=_opt_str(
                data, "default_repo_interest_account", "repo_interest_account"
            ),
            default_rounding_account=_opt_str(
                data, "default_rounding_account", "rounding_account"
            ),
            inventory_seed_files=list(seeds),
            csv_options=CsvOptions.from_dict(data.get("csv_options")),
            rules=_rules(data.get("rules"), "rules"),
            output=OutputConfig.from_dict(data.get("output")),
            skip_header_lines=_non_negative_int(data, "skip_header_lines", 0),
            has_csv_header=_bool(data, "has_csv_header", True),
        )

    @classmethod
    def from_yaml(cls, text: str) -> "ProviderConfig":
        """Parse a YAML provider configuration document."""
        return cls.from_dict(_load_yaml(text, "provider config"))

    def merge_with_global(self, global_config: GlobalConfig) -> None:
        """Fill unset defaults from the global configuration; own settings win."""
        if self.default_asset_account is None:
            self.default_asset_account = global_config.default_asset_account
        if self.default_expense_account is None:
            self.default_expense_account = global_config.default_expense_account
        if self.default_income_account is None:
            self.default_income_account = global_config.default_income_account
        if self.default_currency is None:
            self.default_currency = global_config.default_currency
        self.output.merge_with(global_config.output)

    def securities_cash_account(self) -> Optional[str]:
        """Effective brokerage cash account."""
        return _first_non_empty(self.securities_accounts.cash_account, self.default_cash_account)

    def securities_fee_account(self) -> Optional[str]:
        """Effective fee account."""
        return _first_non_empty(self.securities_accounts.fee_account, self.default_fee_account)

    def securities_pnl_account(self) -> Optional[str]:
        """Effective realised profit-and-loss account."""
        return _first_non_empty(self.securities_accounts.pnl_account, self.default_pnl_account)

    def securities_repo_interest_account(self) -> Optional[str]:
        """Effective reverse-repo interest account."""
        return _first_non_empty(
            self.securities_accounts.repo_interest_account, self.default_repo_interest_account
        )

    def securities_rounding_account(self) -> Optional[str]:
        """Effective rounding-difference account."""
        return _first_non_empty(
            self.securities_accounts.rounding_account, self.default_rounding_account
        )