[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "beanimport"
version = "0.1.0"
description = "Read bank, payment and broker statements (CSV/XLSX) into records, match them against rules and render Beancount ledger text."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "beancount",
    "accounting",
    "ledger",
    "csv",
    "xlsx",
    "importer",
    "plain-text-accounting",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Accounting",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["beanimport"]

[tool.hatch.build.targets.sdist]
include = [
    "beanimport",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
