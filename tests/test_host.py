"""Tests for the in-memory host runtime."""

from bqbatch.host import (
    REL_FAILURE,
    REL_SUCCESS,
    FlowFile,
    InMemoryProcessContext,
    InMemoryProcessSession,
)
from bqbatch.properties import PropertyDescriptor


def test_context_returns_configured_value():
    descriptor = PropertyDescriptor(name="bq.dataset", default_value="${bq.dataset}")
    context = InMemoryProcessContext({"bq.dataset": "raw"})

    assert context.get_property(descriptor).value == "raw"


def test_context_falls_back_to_default():
    descriptor = PropertyDescriptor(name="bq.load.max_badrecords", default_value="0")

    assert InMemoryProcessContext().get_property(descriptor).value == "0"


def test_context_carries_expression_support():
    descriptor = PropertyDescriptor(name="bq.table.name", expression_language_supported=True)
    context = InMemoryProcessContext({"bq.table.name": "${filename}"})
    flow = FlowFile(content=b"", attributes={"filename": "events"})

    assert context.get_property(descriptor).evaluate_attribute_expressions(flow).value == "events"


def test_session_get_is_fifo_and_empty_returns_none():
    first = FlowFile(content=b"1")
    second = FlowFile(content=b"2")
    session = InMemoryProcessSession([first])
    session.enqueue(second)

    assert session.get() is first
    assert session.get() is second
    assert session.get() is None


def test_attribute_updates_return_new_versions():
    flow = FlowFile(content=b"data", attributes={"a": "1", "b": "2"})
    session = InMemoryProcessSession()

    updated = session.put_all_attributes(flow, {"b": "3", "c": "4"})
    trimmed = session.remove_all_attributes(updated, ["a", "missing"])

    assert flow.attributes == {"a": "1", "b": "2"}
    assert updated.attributes == {"a": "1", "b": "3", "c": "4"}
    assert trimmed.attributes == {"b": "3", "c": "4"}
    assert trimmed.id == flow.id
    assert session.read(trimmed) == b"data"


def test_penalize_and_transfer():
    flow = FlowFile(content=b"x")
    session = InMemoryProcessSession()

    penalized = session.penalize(flow)
    session.transfer(penalized, REL_FAILURE)

    assert not flow.penalized
    assert session.transferred(REL_FAILURE) == [penalized]
    assert session.transferred(REL_FAILURE)[0].penalized
    assert session.transferred(REL_SUCCESS) == []


def test_queue_size():
    session = InMemoryProcessSession([FlowFile(content=b""), FlowFile(content=b"")])
    assert session.queue_size == 2
    session.get()
    assert session.queue_size == 1
