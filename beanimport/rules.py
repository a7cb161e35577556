"""Rule definitions, condition matching and the rule engine."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from beanimport.errors import ConfigError
from beanimport.records import RawRecord

_DECIMAL_FIELDS = ("amount", "quantity", "unit_price", "fee", "tax")
_NUMBER_CHARS = frozenset("0123456789.-+")


class Operator(str, Enum):
    """How a condition compares a record field."""

    EQUALS = "equals"
    CONTAINS = "contains"
    REGEX = "regex"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"
    IN = "in"
    NOT_EMPTY = "not_empty"
    IS_EMPTY = "is_empty"


_TEXT_OPERATORS = frozenset(
    {Operator.EQUALS, Operator.CONTAINS, Operator.STARTS_WITH, Operator.ENDS_WITH}
)
_UNIT_OPERATORS = frozenset({Operator.NOT_EMPTY, Operator.IS_EMPTY})


class MatchMode(str, Enum):
    """How the conditions of a rule are combined."""

    AND = "and"
    OR = "or"


def _to_decimal(value: Any, what: str) -> Decimal:
    if isinstance(value, bool):
        raise ConfigError(f"{what} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    if isinstance(value, (int, str)):
        try:
            return Decimal(value)
        except InvalidOperation as exc:
            raise ConfigError(f"{what} is not a valid number: {value!r}") from exc
    raise ConfigError(f"{what} must be a number, got {value!r}")


def _coerce_value(operator: Operator, value: Any) -> Any:
    if operator in _TEXT_OPERATORS:
        if not isinstance(value, str):
            raise ConfigError(f"'{operator.value}' expects a string, got {value!r}")
        return value
    if operator is Operator.REGEX:
        if isinstance(value, re.Pattern):
            return value
        if not isinstance(value, str):
            raise ConfigError(f"'regex' expects a pattern string, got {value!r}")
        try:
            return re.compile(value)
        except re.error as exc:
            raise ConfigError(f"invalid regex {value!r}: {exc}") from exc
    if operator in (Operator.GREATER_THAN, Operator.LESS_THAN):
        return _to_decimal(value, f"'{operator.value}'")
    if operator is Operator.BETWEEN:
        if isinstance(value, dict):
            if "min" not in value or "max" not in value:
                raise ConfigError("'between' needs both 'min' and 'max'")
            low, high = value["min"], value["max"]
        elif isinstance(value, (tuple, list)) and len(value) == 2:
            low, high = value
        else:
            raise ConfigError(f"'between' expects min and max, got {value!r}")
        return (_to_decimal(low, "'between.min'"), _to_decimal(high, "'between.max'"))
    if operator is Operator.IN:
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"'in' expects a list of strings, got {value!r}")
        return tuple(value)
    return None


def _normalized(number: Decimal) -> str:
    return format(number.normalize(), "f")


def _field_text(record: RawRecord, name: str) -> Optional[str]:
    if name == "date":
        return record.date.strftime("%Y-%m-%d") if record.date is not None else None
    if name in _DECIMAL_FIELDS:
        number = getattr(record, name)
        return _normalized(number) if number is not None else None
    return record.get(name)


def _parse_decimal(text: Optional[str]) -> Optional[Decimal]:
    if text is None:
        return None
    cleaned = "".join(ch for ch in text if ch in _NUMBER_CHARS)
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def _field_number(record: RawRecord, name: str, text: Optional[str]) -> Optional[Decimal]:
    if name in _DECIMAL_FIELDS:
        return getattr(record, name)
    return _parse_decimal(text)


@dataclass
class Condition:
    """A test of one record field against an operator and its operand.

    Operands: a string for text operators, a pattern for ``regex``, a
    number for ``greater_than``/``less_than``, a ``(min, max)`` pair for
    ``between``, a list of strings for ``in`` and nothing for the
    emptiness checks.
    """

    field: str
    operator: Operator
    value: Any = None

    def __post_init__(self) -> None:
        self.operator = Operator(self.operator)
        self.value = _coerce_value(self.operator, self.value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        """Build from ``{"field": ..., "<operator>": <operand>}``."""
        if not isinstance(data, dict):
            raise ConfigError(f"condition must be a mapping, got {data!r}")
        name = data.get("field")
        if not isinstance(name, str):
            raise ConfigError(f"condition needs a string 'field': {data!r}")
        keys = [key for key in data if key != "field"]
        if len(keys) != 1:
            raise ConfigError(f"condition needs exactly one operator: {data!r}")
        try:
            operator = Operator(keys[0])
        except ValueError as exc:
            raise ConfigError(f"unknown condition operator '{keys[0]}'") from exc
        return cls(field=name, operator=operator, value=data[keys[0]])

    def matches(self, record: RawRecord) -> bool:
        """Whether the record satisfies this condition."""
        op = self.operator
        text = _field_text(record, self.field)

        if op is Operator.IS_EMPTY:
            return text is None or text == ""
        if op is Operator.NOT_EMPTY:
            return text is not None and text != ""

        if op in (Operator.GREATER_THAN, Operator.LESS_THAN, Operator.BETWEEN):
            number = _field_number(record, self.field, text)
            if number is None:
                return False
            if op is Operator.GREATER_THAN:
                return number > self.value
            if op is Operator.LESS_THAN:
                return number < self.value
            low, high = self.value
            return low <= number <= high

        if text is None:
            return False
        if op is Operator.EQUALS:
            return text == self.value
        if op is Operator.CONTAINS:
            return self.value in text
        if op is Operator.REGEX:
            return self.value.search(text) is not None
        if op is Operator.STARTS_WITH:
            return text.startswith(self.value)
        if op is Operator.ENDS_WITH:
            return text.endswith(self.value)
        return text in self.value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or isinstance(value, str):
        return value
    raise ConfigError(f"'{key}' must be a string, got {value!r}")


def _str_list(data: Dict[str, Any], key: str) -> List[str]:
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return list(value)


def _bool(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be a boolean, got {value!r}")
    return value


@dataclass
class RuleAction:
    """What a matching rule sets on the result."""

    debit_account: Optional[str] = None
    credit_account: Optional[str] = None
    fee_account: Optional[str] = None
    pnl_account: Optional[str] = None
    rounding_account: Optional[str] = None
    payee: Optional[str] = None
    narration: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    flag: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    ignore: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleAction":
        """Build from a parsed action mapping; unknown keys are ignored."""
        if not isinstance(data, dict):
            raise ConfigError(f"rule action must be a mapping, got {data!r}")
        flag = _optional_str(data, "flag")
        if flag is not None and len(flag) != 1:
            raise ConfigError(f"'flag' must be a single character, got {flag!r}")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in metadata.items()
        ):
            raise ConfigError("'metadata' must map strings to strings")
        return cls(
            debit_account=_optional_str(data, "debit_account"),
            credit_account=_optional_str(data, "credit_account"),
            fee_account=_optional_str(data, "fee_account"),
            pnl_account=_optional_str(data, "pnl_account"),
            rounding_account=_optional_str(data, "rounding_account"),
            payee=_optional_str(data, "payee"),
            narration=_optional_str(data, "narration"),
            tags=_str_list(data, "tags"),
            links=_str_list(data, "links"),
            flag=flag,
            metadata=dict(metadata),
            ignore=_bool(data, "ignore"),
        )


@dataclass
class MatchResult:
    """Accumulated outcome of all matching rules."""

    debit_account: Optional[str] = None
    credit_account: Optional[str] = None
    fee_account: Optional[str] = None
    pnl_account: Optional[str] = None
    rounding_account: Optional[str] = None
    payee: Optional[str] = None
    narration: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    flag: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    ignore: bool = False

    def apply_action(self, action: RuleAction) -> None:
        """Merge an action in; values set later override earlier ones."""
        for name in (
            "debit_account",
            "credit_account",
            "fee_account",
            "pnl_account",
            "rounding_account",
            "payee",
            "narration",
            "flag",
        ):
            value = getattr(action, name)
            if value is not None:
                setattr(self, name, value)
        self.tags.extend(action.tags)
        self.links.extend(action.links)
        self.metadata.update(action.metadata)
        if action.ignore:
            self.ignore = True


@dataclass
class Rule:
    """Conditions plus the action applied when they match."""

    conditions: List[Condition]
    action: RuleAction
    name: Optional[str] = None
    match_mode: MatchMode = MatchMode.AND
    priority: int = 0
    terminal: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """Build from a parsed rule mapping."""
        if not isinstance(data, dict):
            raise ConfigError(f"rule must be a mapping, got {data!r}")
        conditions = data.get("conditions")
        if not isinstance(conditions, list):
            raise ConfigError("rule needs a list of 'conditions'")
        if "action" not in data:
            raise ConfigError("rule needs an 'action'")
        mode = data.get("match_mode", MatchMode.AND.value)
        try:
            match_mode = MatchMode(mode)
        except ValueError as exc:
            raise ConfigError(f"unknown match_mode {mode!r}") from exc
        priority = data.get("priority", 0)
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise ConfigError(f"'priority' must be an integer, got {priority!r}")
        return cls(
            conditions=[Condition.from_dict(item) for item in conditions],
            action=RuleAction.from_dict(data["action"]),
            name=_optional_str(data, "name"),
            match_mode=match_mode,
            priority=priority,
            terminal=_bool(data, "terminal"),
        )

    def specificity(self) -> int:
        """More conditions means a more specific rule."""
        return len(self.conditions)

    def matches(self, record: RawRecord) -> bool:
        """Whether the rule applies; a rule without conditions never does."""
        if not self.conditions:
            return False
        results = (condition.matches(record) for condition in self.conditions)
        return all(results) if self.match_mode is MatchMode.AND else any(results)


def _ordered(rules: Iterable[Rule]) -> Tuple[Rule, ...]:
    # sorted() is stable, so file order breaks ties.
    return tuple(sorted(rules, key=lambda rule: (rule.priority, rule.specificity())))


class RuleEngine:
    """Applies global rules, then provider rules, to a record.

    Within each list rules run by ascending priority, then ascending
    specificity, then file order; later matches override earlier ones.
    """

    def __init__(
        self, provider_rules: Sequence[Rule] = (), global_rules: Sequence[Rule] = ()
    ) -> None:
        self._provider_rules = _ordered(provider_rules)
        self._global_rules = _ordered(global_rules)

    def match_record(self, record: RawRecord) -> MatchResult:
        """Collect the actions of every matching rule into one result."""
        result = MatchResult()
        for rule in (*self._global_rules, *self._provider_rules):
            if rule.matches(record):
                result.apply_action(rule.action)
                if rule.terminal:
                    break
        return result