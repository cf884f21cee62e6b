"""
Progress events emitted by the export pipeline.

``ProgressEvent`` is a closed union discriminated on ``type``; each kind only
declares the payload fields that make sense for it. Events serialize to
camelCase JSON for the SSE transport.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class _EventBase(BaseModel):
    message: str

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class StartEvent(_EventBase):
    type: Literal["start"] = "start"
    selected_date: str


class ProgressUpdateEvent(_EventBase):
    type: Literal["progress"] = "progress"
    request_count: int
    total_posts: int
    filtered_count: int
    rate_limit_remaining: int
    rate_limit_limit: int


class WaitingEvent(_EventBase):
    type: Literal["waiting"] = "waiting"
    wait_seconds: float
    rate_limit_remaining: int
    rate_limit_limit: int


class FilteringEvent(_EventBase):
    type: Literal["filtering"] = "filtering"
    total_posts: int
    filtered_count: int


class GeneratingEvent(_EventBase):
    type: Literal["generating"] = "generating"
    filtered_count: int


class CompleteEvent(_EventBase):
    type: Literal["complete"] = "complete"
    filename: str
    csv_data: str


class ErrorEvent(_EventBase):
    type: Literal["error"] = "error"
    code: str
    details: Optional[str] = None


ProgressEvent = Annotated[
    Union[
        StartEvent,
        ProgressUpdateEvent,
        WaitingEvent,
        FilteringEvent,
        GeneratingEvent,
        CompleteEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

progress_event_adapter: TypeAdapter[ProgressEvent] = TypeAdapter(ProgressEvent)


def parse_event(raw: Union[str, bytes]) -> ProgressEvent:
    """Parse one serialized event back into its concrete class."""
    return progress_event_adapter.validate_json(raw)
