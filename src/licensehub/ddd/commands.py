"""Command and query: CQRS markers. Both are validated request schemas (camelCase on the wire)."""
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Primary keys are 32-bit INTEGER columns on PostgreSQL
MAX_ID = 2_147_483_647


def _not_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("must be an integer id, not a boolean")
    return value


Id = Annotated[int, BeforeValidator(_not_bool), Field(gt=0, le=MAX_ID)]


class _Message(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
        frozen=True,
    )


class Command(_Message):
    """Command: intent to change state. One handler per command type."""


class Query(_Message):
    """Query: intent to read. One handler per query type."""
