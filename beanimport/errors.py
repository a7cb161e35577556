"""Exception hierarchy used throughout the importer."""

from __future__ import annotations


class ImporterError(Exception):
    """Base class for every error the importer raises."""


class ConfigError(ImporterError):
    """A configuration file or value is invalid."""

    def __str__(self) -> str:
        return f"Configuration error: {super().__str__()}"


class ParseError(ImporterError):
    """A source line could not be parsed."""

    def __init__(self, line: int, message: str) -> None:
        super().__init__(line, message)
        self.line = line
        self.message = message

    def __str__(self) -> str:
        return f"Parse error at line {self.line}: {self.message}"


class FieldMappingError(ImporterError):
    """A mapped field is missing from a record."""

    def __init__(self, field: str) -> None:
        super().__init__(field)
        self.field = field

    def __str__(self) -> str:
        return f"Field mapping error: field '{self.field}' not found in record"


class RuleMatchError(ImporterError):
    """A rule could not be evaluated."""

    def __str__(self) -> str:
        return f"Rule matching error: {super().__str__()}"


class ConversionError(ImporterError):
    """A value could not be converted."""

    def __str__(self) -> str:
        return f"Data conversion error: {super().__str__()}"


class ProviderNotFoundError(ImporterError):
    """No provider is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Provider '{self.name}' not found"