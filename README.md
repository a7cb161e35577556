# beanimport

`beanimport` is a library for turning statements exported by banks, payment
apps and brokers into Beancount transactions.

A statement (a CSV file in any encoding Python's codecs know, or the first
worksheet of an XLSX workbook) is read into normalised records through a
*field mapping*; those records can be run through *rules* that pick accounts,
payees, tags and metadata; and transactions are rendered as Beancount text.

## Modules

| Module                   | What it holds                                                         |
|--------------------------|-----------------------------------------------------------------------|
| `beanimport.errors`      | `ImporterError` and its subclasses (`ConfigError`, `ParseError`, `FieldMappingError`, `RuleMatchError`, `ConversionError`, `ProviderNotFoundError`) |
| `beanimport.amounts`     | `Amount`, `Cost`, `Price`, `Posting`, `format_meta_value`             |
| `beanimport.transaction` | `Transaction`, with `is_balanced()`                                   |
| `beanimport.records`     | `RawRecord`, the normalised row of a statement                        |
| `beanimport.mapping`     | `FieldSpec`, `FieldMapping`: statement column → record field          |
| `beanimport.rules`       | `Operator`, `Condition`, `MatchMode`, `Rule`, `RuleAction`, `MatchResult`, `RuleEngine` |
| `beanimport.config`      | `CsvOptions`, `OutputConfig`, `SecuritiesAccountsConfig`, `ProviderConfig`, `GlobalConfig` |
| `beanimport.tabular`     | `RowData`, `TabularData`, `build_positional_headers`                  |
| `beanimport.xlsx`        | `read_xlsx_rows`, `header_match_score`, `select_header_row`           |
| `beanimport.reader`      | `CsvRecordReader` (CSV/XLSX file → list of `RawRecord`), `normalize_cell_value` |
| `beanimport.writer`      | `BeancountWriter`: transactions → Beancount text                      |
| `beanimport.provider`    | `Provider` base class and `ProviderRegistry`                          |
| `beanimport.cli`         | `Cli`, `LogLevel`, `parse_args`                                       |

## Field mappings

A mapping names, for each standard field, the statement column it comes from.
Short and detailed forms can be mixed in one document:

```yaml
date: "交易时间"
payee: "交易对方"
amount:
  column: "金额"
  transform: abs
reference:
  column: "备注"
  regex_extract: "order-(\\d+)"
  default: "none"
extra_fields:
  productAccount: "product"
date_formats:
  - "%Y-%m-%d %H:%M:%S"
  - "%Y/%m/%d"
```

```python
from beanimport.mapping import FieldMapping

with open("alipay_mapping.yml", encoding="utf-8") as fh:
    mapping = FieldMapping.from_yaml(fh.read())
spec = mapping.get_standard_mapping("amount")
```

The standard fields are `date`, `amount`, `currency`, `payee`, `narration`,
`transaction_type`, `status`, `reference`, `symbol`, `security_name`,
`quantity`, `unit_price`, `fee` and `tax`. Numeric fields accept the
transforms `negate` and `abs`. `regex_extract` keeps the first capture group,
or the whole match if the pattern has none. `extra_fields` maps an extra key to
a column; the reversed form (column → key) is also accepted.

## Reading statements

```python
from beanimport.config import CsvOptions
from beanimport.reader import CsvRecordReader

reader = CsvRecordReader(CsvOptions(encoding="GBK"), skip_lines=4, has_header=True)
records = reader.read_file("statement.csv", mapping)
```

Files ending in `.xlsx` are read from their first worksheet; anything else is
read as CSV. Cells exported by spreadsheets as `="0.00"` are unwrapped to
`0.00` before mapping. For XLSX input with a header row, the row that matches
the most mapped column names is taken as the header (the later row on a tie).
Without a header row, columns are named `col_0` … `col_255`.

With `strict_mode=True` the first row that cannot be parsed or mapped raises
`ParseError`; otherwise such rows are logged and skipped.

## Provider and global configuration

```yaml
default_currency: CNY
default_asset_account: "Assets:Bank:Checking"
skip_header_lines: 4
csv_options:
  delimiter: ","
  encoding: GBK
securities_accounts:
  cash_account: "Assets:Broker:Cash"
  fee_account: "Expenses:Broker:Fee"
output:
  emit_open_directives: true
  booking_method: FIFO
rules:
  - name: coffee
    conditions:
      - field: payee
        contains: coffee
    action:
      debit_account: "Expenses:Food:Coffee"
      tags: [coffee]
```

```python
from beanimport.config import GlobalConfig, ProviderConfig

with open("global.yml", encoding="utf-8") as fh:
    global_config = GlobalConfig.from_yaml(fh.read())
with open("config.yml", encoding="utf-8") as fh:
    provider_config = ProviderConfig.from_yaml(fh.read())
provider_config.merge_with_global(global_config)

provider_config.securities_cash_account()   # "Assets:Broker:Cash"
```

Older spellings such as `cash_account`, `fee_account` or `lot_seed_files` at
the top level are still accepted; the nested `securities_accounts` block wins
when both are given. Invalid documents raise `ConfigError`.

## Rules

Conditions support `equals`, `contains`, `regex`, `starts_with`, `ends_with`,
`greater_than`, `less_than`, `between`, `in`, `not_empty` and `is_empty`, and
are combined with `match_mode: and` (default) or `or`. A rule without
conditions never matches.

Global rules run first, then provider rules. Within each set rules are applied
by ascending `priority`, then by ascending number of conditions, then in file
order; later matches override earlier ones, tags, links and metadata
accumulate, and a rule with `terminal: true` stops matching.

```python
from beanimport.rules import RuleEngine

engine = RuleEngine(provider_config.rules, global_config.global_rules)
result = engine.match_record(records[0])
result.debit_account, result.tags, result.ignore
```

## Writing Beancount

```python
from datetime import date
from decimal import Decimal

from beanimport.amounts import Amount, Posting
from beanimport.config import OutputConfig
from beanimport.transaction import Transaction
from beanimport.writer import BeancountWriter

tx = Transaction(date(2024, 1, 15), "Coffee at Starbucks", payee="Starbucks")
tx.postings.append(Posting("Expenses:Food:Coffee", amount=Amount(Decimal("35.00"), "CNY")))
tx.postings.append(Posting("Assets:Cash"))

print(BeancountWriter(OutputConfig()).render([tx]))
```

```
2024-01-15 * "Starbucks" "Coffee at Starbucks"
  Expenses:Food:Coffee  35.00 CNY
  Assets:Cash
```

`write(transactions, stream)` writes the same text to an open text stream.
With `emit_open_directives` enabled, `open` directives come first (accounts
seen only with fiat currencies list them; accounts holding other commodities
get the booking method, if a valid one is set), followed by `commodity`
directives for every non-fiat commodity posted at a cost or price.

## Providers

Subclass `Provider`, give it a `name`, implement `transform(record,
rule_engine, config)` returning a `Transaction` (or `None` to drop the
record), and register it with a `ProviderRegistry`. Lookups are
case-insensitive and `list_providers()` returns names in sorted order. The
default `parse` reads the statement with `CsvRecordReader` using the
provider's CSV options, header settings and the given strict mode.

## What is not included

- No ready-made providers: no bank, payment-app or broker is built in, so
  `transform` must be written for each source.
- No installed command. `beanimport.cli.parse_args` turns arguments into a
  `Cli` object and `Cli.effective_log_level()` picks the logging level, but
  nothing wires them into a program that loads configuration, reads a
  statement and writes the ledger; that step is left to the caller.
- Configuration is parsed from YAML text (`from_yaml`) or dictionaries
  (`from_dict`); the package does not open `mapping_file` or
  `inventory_seed_files` itself.