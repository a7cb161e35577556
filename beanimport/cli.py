"""Command-line arguments and log level selection."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

TRACE = 5


class LogLevel(str, Enum):
    """Verbosity selectable on the command line."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"

    def to_logging_level(self) -> int:
        """The matching ``logging`` level number."""
        return {
            LogLevel.ERROR: logging.ERROR,
            LogLevel.WARN: logging.WARNING,
            LogLevel.INFO: logging.INFO,
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.TRACE: TRACE,
        }[self]


@dataclass
class Cli:
    """Parsed command-line options."""

    provider: str
    source: Path
    config: Path = Path("config.yml")
    global_config: Optional[Path] = None
    output: Optional[Path] = None
    log_level: LogLevel = LogLevel.WARN
    quiet: bool = False
    verbose: bool = False
    strict: bool = False

    def effective_log_level(self) -> int:
        """Level after applying ``--quiet`` and ``--verbose``."""
        if self.quiet:
            return logging.ERROR
        if self.verbose:
            return logging.DEBUG
        return self.log_level.to_logging_level()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beancount-importer",
        description="Generate Beancount ledger entries from financial statements.",
    )
    parser.add_argument("-p", "--provider", required=True, help="provider or bank name")
    parser.add_argument("-s", "--source", required=True, type=Path, help="source CSV/Excel file")
    parser.add_argument(
        "-c", "--config", type=Path, default=Path("config.yml"), help="provider config file"
    )
    parser.add_argument("-g", "--global-config", type=Path, help="global config file")
    parser.add_argument("-o", "--output", type=Path, help="output file (default: stdout)")
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        default=None,
        help="log level (default: warn)",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="same as --log-level=error")
    parser.add_argument("-v", "--verbose", action="store_true", help="same as --log-level=debug")
    parser.add_argument(
        "--strict", action="store_true", help="fail on the first record that cannot be handled"
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> Cli:
    """Parse arguments; exits with status 2 on invalid usage."""
    parser = _build_parser()
    ns = parser.parse_args(argv)

    if ns.quiet and ns.log_level is not None:
        parser.error("argument -q/--quiet: not allowed with argument --log-level")
    if ns.verbose and ns.log_level is not None:
        parser.error("argument -v/--verbose: not allowed with argument --log-level")
    if ns.verbose and ns.quiet:
        parser.error("argument -v/--verbose: not allowed with argument -q/--quiet")

    return Cli(
        provider=ns.provider,
        source=ns.source,
        config=ns.config,
        global_config=ns.global_config,
        output=ns.output,
        log_level=LogLevel(ns.log_level) if ns.log_level is not None else LogLevel.WARN,
        quiet=ns.quiet,
        verbose=ns.verbose,
        strict=ns.strict,
    )