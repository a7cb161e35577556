"""Read financial statements into records, match them against rules and render Beancount text."""

__version__ = "0.1.0"