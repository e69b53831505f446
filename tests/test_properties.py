"""Tests for property descriptors, validators and templated values."""

import pytest

from bqbatch.host import FlowFile
from bqbatch.properties import (
    BOOLEAN_VALIDATOR,
    NON_EMPTY_VALIDATOR,
    NON_NEGATIVE_INTEGER_VALIDATOR,
    POSITIVE_INTEGER_VALIDATOR,
    PropertyDescriptor,
    PropertyValue,
)


class TestValidators:

    def test_non_empty(self):
        assert NON_EMPTY_VALIDATOR("Dataset", "raw") is None
        assert NON_EMPTY_VALIDATOR("Dataset", "  ") == "'Dataset' must not be empty"

    @pytest.mark.parametrize("value", ["true", "false", "TRUE", "False"])
    def test_boolean_accepts(self, value):
        assert BOOLEAN_VALIDATOR("Flag", value) is None

    @pytest.mark.parametrize("value", ["yes", "1", ""])
    def test_boolean_rejects(self, value):
        assert BOOLEAN_VALIDATOR("Flag", value) is not None

    def test_non_negative_integer(self):
        assert NON_NEGATIVE_INTEGER_VALIDATOR("Max", "0") is None
        assert NON_NEGATIVE_INTEGER_VALIDATOR("Max", "12") is None
        assert "negative" in NON_NEGATIVE_INTEGER_VALIDATOR("Max", "-1")
        assert "integer" in NON_NEGATIVE_INTEGER_VALIDATOR("Max", "ten")

    def test_positive_integer(self):
        assert POSITIVE_INTEGER_VALIDATOR("Timeout", "30") is None
        assert "positive" in POSITIVE_INTEGER_VALIDATOR("Timeout", "0")


class TestPropertyDescriptor:

    def test_required_missing(self):
        descriptor = PropertyDescriptor(name="bq.dataset", display_name="Dataset", required=True)
        assert descriptor.validate(None) == ["'Dataset' is required"]

    def test_optional_missing(self):
        assert PropertyDescriptor(name="x").validate(None) == []

    def test_allowable_values(self):
        descriptor = PropertyDescriptor(name="fmt", allowable_values=("AVRO", "CSV"))

        assert descriptor.validate("AVRO") == []
        problems = descriptor.validate("PARQUET")
        assert len(problems) == 1
        assert "PARQUET" in problems[0]

    def test_all_validators_run(self):
        descriptor = PropertyDescriptor(
            name="n",
            validators=(NON_EMPTY_VALIDATOR, NON_NEGATIVE_INTEGER_VALIDATOR),
        )
        assert len(descriptor.validate(" ")) == 2

    def test_templated_value_skips_validators(self):
        descriptor = PropertyDescriptor(
            name="bq.table.name",
            expression_language_supported=True,
            validators=(NON_NEGATIVE_INTEGER_VALIDATOR,),
        )
        assert descriptor.validate("${table}") == []

    def test_template_syntax_without_expression_support_is_validated(self):
        descriptor = PropertyDescriptor(name="n", validators=(NON_NEGATIVE_INTEGER_VALIDATOR,))
        assert descriptor.validate("${count}") != []

    def test_label_falls_back_to_name(self):
        assert PropertyDescriptor(name="bq.dataset").label == "bq.dataset"


class TestPropertyValue:

    def test_evaluates_attribute_references(self):
        flow = FlowFile(content=b"", attributes={"source": "trades", "bq.dataset": "raw"})
        value = PropertyValue("${bq.dataset}_${source}", expression_language_supported=True)

        assert value.evaluate_attribute_expressions(flow).value == "raw_trades"

    def test_missing_attribute_evaluates_to_empty(self):
        flow = FlowFile(content=b"", attributes={})
        value = PropertyValue("events_${suffix}", expression_language_supported=True)

        assert value.evaluate_attribute_expressions(flow).value == "events_"

    def test_no_flow_file_evaluates_references_to_empty(self):
        value = PropertyValue("${project}", expression_language_supported=True)
        assert value.evaluate_attribute_expressions().value == ""

    def test_without_expression_support_value_is_literal(self):
        flow = FlowFile(content=b"", attributes={"table": "events"})
        value = PropertyValue("${table}")

        assert value.evaluate_attribute_expressions(flow).value == "${table}"

    def test_unset_value(self):
        value = PropertyValue(None, expression_language_supported=True)

        assert not value.is_set()
        assert value.evaluate_attribute_expressions().value is None
        assert value.as_bool() is None
        assert value.as_int() is None

    def test_as_bool(self):
        assert PropertyValue("true").as_bool() is True
        assert PropertyValue("FALSE").as_bool() is False
        with pytest.raises(ValueError):
            PropertyValue("maybe").as_bool()

    def test_as_int(self):
        assert PropertyValue(" 25 ").as_int() == 25
        with pytest.raises(ValueError):
            PropertyValue("lots").as_int()
