import pytest

from beanimport.errors import ConfigError
from beanimport.mapping import DEFAULT_DATE_FORMATS, FieldMapping, FieldSpec


def test_supports_shorthand_string_syntax():
    mapping = FieldMapping.from_yaml('payee: "交易对方"\namount: "金额"\n')
    assert mapping.payee.column == "交易对方"
    assert mapping.amount.column == "金额"


def test_supports_detailed_object_syntax():
    mapping = FieldMapping.from_yaml('amount:\n  column: "金额"\n  transform: abs\n')
    assert mapping.amount.column == "金额"
    assert mapping.amount.transform == "abs"


def test_supports_mixed_syntax_in_one_file():
    text = (
        'date: "交易时间"\n'
        "amount:\n"
        '  column: "金额"\n'
        "  transform: abs\n"
        'payee: "交易对方"\n'
    )
    mapping = FieldMapping.from_yaml(text)
    assert mapping.date.column == "交易时间"
    assert mapping.payee.column == "交易对方"
    assert mapping.amount.transform == "abs"


def test_simple_spec_has_no_extras():
    spec = FieldSpec.from_value("col")
    assert spec == FieldSpec(column="col")
    assert spec.default is None and spec.regex_extract is None


def test_detailed_spec_reads_default_and_regex():
    spec = FieldSpec.from_value({"column": "c", "default": "x", "regex_extract": r"(\d+)"})
    assert spec.default == "x"
    assert spec.regex_extract == r"(\d+)"


@pytest.mark.parametrize("value", [42, {"transform": "abs"}, ["a"], {"column": 3}])
def test_invalid_spec_raises(value):
    with pytest.raises(ConfigError):
        FieldSpec.from_value(value)


def test_default_date_formats_when_missing():
    mapping = FieldMapping.from_yaml("payee: p\n")
    assert mapping.date_formats == list(DEFAULT_DATE_FORMATS)
    assert mapping.date_formats[0] == "%Y-%m-%d"


def test_explicit_date_formats_and_extra_fields():
    mapping = FieldMapping.from_dict(
        {"date_formats": ["%d.%m.%Y"], "extra_fields": {"productAccount": "product"}}
    )
    assert mapping.date_formats == ["%d.%m.%Y"]
    assert mapping.extra_fields == {"productAccount": "product"}


def test_empty_yaml_gives_empty_mapping():
    mapping = FieldMapping.from_yaml("")
    assert all(spec is None for _, spec in mapping.mapped_specs())


def test_invalid_yaml_raises_config_error():
    with pytest.raises(ConfigError):
        FieldMapping.from_yaml("amount: [unclosed\n")


def test_non_mapping_document_raises():
    with pytest.raises(ConfigError):
        FieldMapping.from_yaml("- a\n- b\n")


def test_get_standard_mapping():
    mapping = FieldMapping(fee=FieldSpec("手续费"))
    assert mapping.get_standard_mapping("fee").column == "手续费"
    assert mapping.get_standard_mapping("tax") is None
    assert mapping.get_standard_mapping("extra_fields") is None


def test_mapped_specs_order_and_length():
    mapping = FieldMapping(date=FieldSpec("d"), tax=FieldSpec("t"))
    specs = mapping.mapped_specs()
    assert len(specs) == 14
    assert specs[0] == ("date", FieldSpec("d"))
    assert specs[-1] == ("tax", FieldSpec("t"))