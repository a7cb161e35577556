"""Provider interface and the registry that looks providers up by name."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from beanimport.config import ProviderConfig
from beanimport.mapping import FieldMapping
from beanimport.reader import CsvRecordReader
from beanimport.records import RawRecord
from beanimport.rules import RuleEngine
from beanimport.transaction import Transaction


class Provider(ABC):
    """A source of statements (bank, payment app, broker) and how to turn them into entries.

    Subclasses set ``name`` (the registry key) and may set ``description``.
    """

    description: str = "No description"

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier used on the command line and in the registry."""

    def parse(
        self,
        path: Union[str, Path],
        mapping: Optional[FieldMapping],
        config: ProviderConfig,
        strict_mode: bool = False,
    ) -> List[RawRecord]:
        """Read the source file into normalised records."""
        reader = CsvRecordReader(
            csv_options=config.csv_options,
            skip_lines=config.skip_header_lines,
            has_header=config.has_csv_header,
            strict_mode=strict_mode,
        )
        return reader.read_file(path, mapping)

    @abstractmethod
    def transform(
        self, record: RawRecord, rule_engine: RuleEngine, config: ProviderConfig
    ) -> Optional[Transaction]:
        """Turn one record into a transaction, or ``None`` if it is deliberately ignored."""


class ProviderRegistry:
    """Providers keyed by their lower-cased name."""

    def __init__(self) -> None:
        self._providers: Dict[str, Provider] = {}

    def register(self, provider: Provider) -> None:
        """Add a provider, replacing any registered under the same name."""
        self._providers[provider.name.lower()] = provider

    def get(self, name: str) -> Optional[Provider]:
        """The provider registered under ``name``, ignoring case."""
        return self._providers.get(name.lower())

    def list_providers(self) -> List[str]:
        """Registered names in sorted order."""
        return sorted(self._providers)