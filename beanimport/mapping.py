"""Mapping from source columns to standard record fields."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple

import yaml

from beanimport.errors import ConfigError

STANDARD_FIELDS: Tuple[str, ...] = (
    "date",
    "amount",
    "currency",
    "payee",
    "narration",
    "transaction_type",
    "status",
    "reference",
    "symbol",
    "security_name",
    "quantity",
    "unit_price",
    "fee",
    "tax",
)

DEFAULT_DATE_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
)


def _optional_str(data: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = data.get(key)
    if value is None or isinstance(value, str):
        return value
    raise ConfigError(f"'{key}' of {where} must be a string, got {value!r}")


@dataclass(frozen=True)
class FieldSpec:
    """How to read one field: a column plus optional default, transform and regex."""

    column: str
    default: Optional[str] = None
    transform: Optional[str] = None
    regex_extract: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> "FieldSpec":
        """Build from a bare column name or a detailed mapping."""
        if isinstance(value, str):
            return cls(column=value)
        if isinstance(value, dict):
            column = value.get("column")
            if not isinstance(column, str):
                raise ConfigError(f"field spec needs a string 'column': {value!r}")
            return cls(
                column=column,
                default=_optional_str(value, "default", column),
                transform=_optional_str(value, "transform", column),
                regex_extract=_optional_str(value, "regex_extract", column),
            )
        raise ConfigError(f"invalid field spec: {value!r}")


@dataclass
class FieldMapping:
    """Column specs for each standard field, extra fields and date formats."""

    date: Optional[FieldSpec] = None
    amount: Optional[FieldSpec] = None
    currency: Optional[FieldSpec] = None
    payee: Optional[FieldSpec] = None
    narration: Optional[FieldSpec] = None
    transaction_type: Optional[FieldSpec] = None
    status: Optional[FieldSpec] = None
    reference: Optional[FieldSpec] = None
    symbol: Optional[FieldSpec] = None
    security_name: Optional[FieldSpec] = None
    quantity: Optional[FieldSpec] = None
    unit_price: Optional[FieldSpec] = None
    fee: Optional[FieldSpec] = None
    tax: Optional[FieldSpec] = None
    # Extra key -> column; the reader also accepts the reversed legacy form.
    extra_fields: Dict[str, str] = field(default_factory=dict)
    date_formats: List[str] = field(default_factory=lambda: list(DEFAULT_DATE_FORMATS))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldMapping":
        """Build from a parsed mapping document; unknown keys are ignored."""
        if not isinstance(data, dict):
            raise ConfigError(f"field mapping must be a mapping, got {type(data).__name__}")

        specs = {
            name: FieldSpec.from_value(data[name])
            for name in STANDARD_FIELDS
            if data.get(name) is not None
        }

        extra = data.get("extra_fields") or {}
        if not isinstance(extra, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in extra.items()
        ):
            raise ConfigError("'extra_fields' must map strings to strings")

        kwargs: Dict[str, Any] = {**specs, "extra_fields": dict(extra)}
        if "date_formats" in data:
            formats = data["date_formats"]
            if not isinstance(formats, list) or not all(isinstance(f, str) for f in formats):
                raise ConfigError("'date_formats' must be a list of strings")
            kwargs["date_formats"] = list(formats)
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, text: str) -> "FieldMapping":
        """Parse a YAML mapping document."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid mapping YAML: {exc}") from exc
        return cls.from_dict(data if data is not None else {})

    def get_standard_mapping(self, field_name: str) -> Optional[FieldSpec]:
        """Return the spec of a standard field, or None for unknown names."""
        if field_name in STANDARD_FIELDS:
            return getattr(self, field_name)
        return None

    def mapped_specs(self) -> List[Tuple[str, Optional[FieldSpec]]]:
        """All standard fields with their specs, in canonical order."""
        return [(name, getattr(self, name)) for name in STANDARD_FIELDS]


assert set(STANDARD_FIELDS) <= {f.name for f in fields(FieldMapping)}