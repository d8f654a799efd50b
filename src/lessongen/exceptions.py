"""Error taxonomy for the lesson generation pipeline.

- CompletionError: anything raised by a completion client
  - ValidationError: model output could not be coerced to the expected schema
  - TransportError: the underlying call failed (network, timeout, quota, ...)
- MarkupParseError: tagged markup had no root element or no valid children
- UnknownUnitTypeError: a unit plan names a type with no registered prompt/schema

Anything the completion client raises is retried by the unit executor. The
other two are deterministic and surface immediately.
"""


class LessonGenerationError(Exception):
    """Base class for all pipeline errors."""


class CompletionError(LessonGenerationError):
    """Raised by a completion client when a call does not produce a result."""


class ValidationError(CompletionError):
    """Model output could not be coerced to the requested schema."""

    def __init__(self, message: str, schema_name: str = ""):
        super().__init__(message)
        self.schema_name = schema_name


class TransportError(CompletionError):
    """The completion call itself failed (network, timeout, quota)."""


class MarkupParseError(LessonGenerationError):
    """Tagged markup is missing its root element or has no valid children."""


class UnknownUnitTypeError(LessonGenerationError):
    """A unit plan names a type with no registered template or schema."""

    def __init__(self, unit_type: str):
        super().__init__(f"Unknown unit type: {unit_type}")
        self.unit_type = unit_type
