"""
Host runtime interfaces for processors.

The processor never talks to the flow engine directly. Everything it needs
from the host goes through two protocols:

- ProcessContext: resolves configured property values
- ProcessSession: hands out flow units and takes them back with updated
  attributes, a penalty flag and a routing decision

The in-memory implementations below back the tests and the local runner.
A real host adapts its own session and context objects to the same shape.
"""

import threading
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Protocol
from uuid import uuid4

from bqbatch.properties import PropertyDescriptor, PropertyValue


@dataclass(frozen=True)
class FlowFile:
    """
    One unit of data flowing through the host.

    Flow files are immutable: every session operation that changes one
    returns a new version, and only the latest version may be transferred.
    """
    content: bytes
    attributes: Mapping[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid4().hex)
    penalized: bool = False


@dataclass(frozen=True)
class Relationship:
    """A named outcome a processor can route flow units to."""
    name: str
    description: str = ""


REL_SUCCESS = Relationship(
    "success",
    "Flow files are routed to this relationship after a successful load job",
)
REL_FAILURE = Relationship(
    "failure",
    "Flow files are routed to this relationship if the load could not be written or the job failed",
)


class ProcessContext(Protocol):
    """Resolves property values for the processor being run."""

    def get_property(self, descriptor: PropertyDescriptor) -> PropertyValue:
        """Return the configured value, falling back to the descriptor default."""
        ...


class ProcessSession(Protocol):
    """
    Unit-of-work with the host for a single trigger.

    Any session backend must implement:
    - get: Take the next queued flow file (or None)
    - read: Return a flow file's content
    - put_all_attributes / remove_all_attributes: Update attributes
    - penalize: Mark a flow file for delayed re-delivery
    - transfer: Route a flow file to a relationship
    """

    def get(self) -> FlowFile | None:
        ...

    def read(self, flow: FlowFile) -> bytes:
        ...

    def put_all_attributes(self, flow: FlowFile, attributes: Mapping[str, str]) -> FlowFile:
        ...

    def remove_all_attributes(self, flow: FlowFile, keys: Iterable[str]) -> FlowFile:
        ...

    def penalize(self, flow: FlowFile) -> FlowFile:
        ...

    def transfer(self, flow: FlowFile, relationship: Relationship) -> None:
        ...


class InMemoryProcessContext:
    """Property values held in a plain dictionary keyed by property name."""

    def __init__(self, properties: Mapping[str, str] | None = None) -> None:
        self.properties = dict(properties or {})

    def get_property(self, descriptor: PropertyDescriptor) -> PropertyValue:
        raw = self.properties.get(descriptor.name, descriptor.default_value)
        return PropertyValue(raw, descriptor.expression_language_supported)


class InMemoryProcessSession:
    """
    Session backed by an in-memory queue.

    Used for local runs and tests. Safe to share between threads so several
    triggers can drain the same queue concurrently.
    """

    def __init__(self, flows: Iterable[FlowFile] = ()) -> None:
        self._queue: deque[FlowFile] = deque(flows)
        self._transfers: dict[str, list[FlowFile]] = {}
        self._lock = threading.Lock()

    def enqueue(self, flow: FlowFile) -> None:
        with self._lock:
            self._queue.append(flow)

    def get(self) -> FlowFile | None:
        with self._lock:
            if not self._queue:
                return None
            return self._queue.popleft()

    def read(self, flow: FlowFile) -> bytes:
        return flow.content

    def put_all_attributes(self, flow: FlowFile, attributes: Mapping[str, str]) -> FlowFile:
        return replace(flow, attributes={**flow.attributes, **attributes})

    def remove_all_attributes(self, flow: FlowFile, keys: Iterable[str]) -> FlowFile:
        drop = set(keys)
        return replace(
            flow,
            attributes={k: v for k, v in flow.attributes.items() if k not in drop},
        )

    def penalize(self, flow: FlowFile) -> FlowFile:
        return replace(flow, penalized=True)

    def transfer(self, flow: FlowFile, relationship: Relationship) -> None:
        with self._lock:
            self._transfers.setdefault(relationship.name, []).append(flow)

    def transferred(self, relationship: Relationship) -> list[FlowFile]:
        """Flow files routed to a relationship, in transfer order."""
        with self._lock:
            return list(self._transfers.get(relationship.name, []))

    @property
    def queue_size(self) -> int:
        with self._lock:
            return len(self._queue)
