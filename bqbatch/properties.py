"""
Processor property descriptors and value resolution.

The host runtime configures a processor through named properties. Each
property is described by a PropertyDescriptor (default, validators,
allowable values, whether ${...} templates are evaluated) and its current
text is wrapped in a PropertyValue.

Templated values reference flow unit attributes:

    ${bq.table.name}        -> value of the "bq.table.name" attribute
    raw_${source}_events    -> "raw_" + value of "source" + "_events"

A reference to a missing attribute evaluates to an empty string.
"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from bqbatch.host import FlowFile


# ${attribute.name} references inside templated property values
EXPRESSION = re.compile(r"\$\{([^{}]+)\}")

# A validator returns an error message, or None when the value is acceptable
Validator = Callable[[str, str], str | None]


def _non_empty(subject: str, value: str) -> str | None:
    if not value.strip():
        return f"'{subject}' must not be empty"
    return None


def _boolean(subject: str, value: str) -> str | None:
    if value.lower() not in ("true", "false"):
        return f"'{subject}' must be 'true' or 'false', got '{value}'"
    return None


def _non_negative_integer(subject: str, value: str) -> str | None:
    try:
        number = int(value)
    except ValueError:
        return f"'{subject}' must be an integer, got '{value}'"
    if number < 0:
        return f"'{subject}' must not be negative, got {number}"
    return None


def _positive_integer(subject: str, value: str) -> str | None:
    try:
        number = int(value)
    except ValueError:
        return f"'{subject}' must be an integer, got '{value}'"
    if number <= 0:
        return f"'{subject}' must be positive, got {number}"
    return None


NON_EMPTY_VALIDATOR: Validator = _non_empty
BOOLEAN_VALIDATOR: Validator = _boolean
NON_NEGATIVE_INTEGER_VALIDATOR: Validator = _non_negative_integer
POSITIVE_INTEGER_VALIDATOR: Validator = _positive_integer


@dataclass(frozen=True)
class PropertyDescriptor:
    """
    Describes one configurable processor property.

    Descriptors are compared by name, so a dynamic descriptor created for a
    user-added property matches the value the host stores under that name.
    """
    name: str
    display_name: str | None = None
    description: str = ""
    required: bool = False
    default_value: str | None = None
    expression_language_supported: bool = False
    allowable_values: tuple[str, ...] = ()
    validators: tuple[Validator, ...] = ()
    dynamic: bool = False

    @property
    def label(self) -> str:
        return self.display_name or self.name

    def validate(self, value: str | None) -> list[str]:
        """
        Check a configured value against this descriptor.

        Templated values are only checked for presence: their final text
        depends on the flow unit they are evaluated against.

        Args:
            value: Configured text, or None if the property is unset

        Returns:
            List of problems (empty if valid)
        """
        if value is None:
            if self.required:
                return [f"'{self.label}' is required"]
            return []

        if self.expression_language_supported and EXPRESSION.search(value):
            return []

        problems = []
        if self.allowable_values and value not in self.allowable_values:
            problems.append(
                f"'{self.label}' must be one of {list(self.allowable_values)}, got '{value}'"
            )

        for validator in self.validators:
            problem = validator(self.label, value)
            if problem:
                problems.append(problem)

        return problems


class PropertyValue:
    """The configured text of a property, with typed accessors."""

    def __init__(self, raw: str | None, expression_language_supported: bool = False) -> None:
        self._raw = raw
        self._expressions = expression_language_supported

    @property
    def value(self) -> str | None:
        return self._raw

    def is_set(self) -> bool:
        return self._raw is not None

    def evaluate_attribute_expressions(self, flow: "FlowFile | None" = None) -> "PropertyValue":
        """
        Resolve ${attribute} references against a flow unit.

        Properties that don't support templating are returned unchanged.
        Without a flow unit every reference evaluates to an empty string.
        """
        if self._raw is None or not self._expressions:
            return self

        attributes = flow.attributes if flow is not None else {}
        evaluated = EXPRESSION.sub(
            lambda match: attributes.get(match.group(1).strip(), ""),
            self._raw,
        )
        return PropertyValue(evaluated)

    def as_bool(self) -> bool | None:
        if self._raw is None:
            return None
        lowered = self._raw.strip().lower()
        if lowered not in ("true", "false"):
            raise ValueError(f"Not a boolean value: '{self._raw}'")
        return lowered == "true"

    def as_int(self) -> int | None:
        if self._raw is None:
            return None
        return int(self._raw.strip())

    def __repr__(self) -> str:
        return f"PropertyValue({self._raw!r})"
