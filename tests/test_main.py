"""Tests for the local command-line runner."""

import json
from unittest.mock import patch

import pytest

from bqbatch import attributes as attrs
from bqbatch.main import main, parse_attributes

from tests.fakes import FakeWarehouse


@pytest.fixture
def properties_file(tmp_path):
    path = tmp_path / "load.yaml"
    path.write_text(
        "bq.dataset: raw\n"
        "bq.table.name: ${filename}\n"
        "bq.load.type: NEWLINE_DELIMITED_JSON\n"
        "bq.load.write_disposition: WRITE_APPEND\n"
    )
    return path


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("bqbatch.main.configure_logging"):
        yield


def output_lines(capsys) -> list[dict]:
    return [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.strip()]


def test_loads_each_file(tmp_path, properties_file, success_result, capsys):
    first = tmp_path / "trades"
    second = tmp_path / "quotes"
    first.write_bytes(b'{"id": 1}\n')
    second.write_bytes(b'{"id": 2}\n')
    warehouse = FakeWarehouse(result=success_result)

    with patch("bqbatch.processor.BigQueryWarehouse.connect", return_value=warehouse):
        exit_code = main(["--properties", str(properties_file), "--attr", "team=markets", str(first), str(second)])

    assert exit_code == 0
    assert [c.settings.table_id for c in warehouse.channels] == ["raw.trades", "raw.quotes"]
    assert [c.written for c in warehouse.channels] == [[b'{"id": 1}\n'], [b'{"id": 2}\n']]

    lines = output_lines(capsys)
    assert [(line["file"], line["relationship"]) for line in lines] == [
        ("trades", "success"),
        ("quotes", "success"),
    ]
    assert lines[0]["attributes"]["team"] == "markets"
    assert lines[0]["attributes"][attrs.JOB_LINK_ATTR] == "https://job/1"


def test_job_error_exits_with_failure(tmp_path, properties_file, error_result, capsys):
    data = tmp_path / "events"
    data.write_bytes(b"{}")

    with patch("bqbatch.processor.BigQueryWarehouse.connect", return_value=FakeWarehouse(result=error_result)):
        exit_code = main(["--properties", str(properties_file), str(data)])

    assert exit_code == 1
    [line] = output_lines(capsys)
    assert line["relationship"] == "failure"
    assert line["penalized"] is True
    assert line["attributes"][attrs.JOB_ERROR_REASON_ATTR] == "invalid"


def test_bad_schema_exits_before_loading(tmp_path, capsys):
    properties = tmp_path / "bad.yaml"
    properties.write_text(
        "bq.dataset: raw\n"
        "bq.table.name: events\n"
        "bq.table.schema: '[{\"name\": \"id\", \"type\": \"BIGINT\", \"mode\": \"REQUIRED\"}]'\n"
    )
    data = tmp_path / "events"
    data.write_bytes(b"{}")

    with patch("bqbatch.processor.BigQueryWarehouse.connect") as connect:
        exit_code = main(["--properties", str(properties), str(data)])

    assert exit_code == 2
    connect.assert_not_called()
    assert output_lines(capsys) == []


def test_parse_attributes():
    assert parse_attributes(["a=1", "b=x=y", "c="]) == {"a": "1", "b": "x=y", "c": ""}
    with pytest.raises(ValueError):
        parse_attributes(["novalue"])


def test_invalid_attr_argument_exits(tmp_path, properties_file):
    data = tmp_path / "events"
    data.write_bytes(b"{}")

    with pytest.raises(SystemExit) as excinfo:
        main(["--properties", str(properties_file), "--attr", "broken", str(data)])

    assert excinfo.value.code == 2
