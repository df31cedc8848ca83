"""
Change-Feed Event Models

The remote store pushes one event per row change on a table.

DESIGN DECISION: Each event kind is its own model carrying exactly the
rows that are valid for it:
- INSERT carries the new row only
- UPDATE carries both the new and the old row
- DELETE carries the old row only

A raw payload that does not fit one of these shapes is rejected by
parse_change_event instead of being half-applied.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _ChangeEventBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    table: str = Field(..., min_length=1)

    def rows(self) -> list[dict]:
        """All rows carried by this event, new before old."""
        return [
            row for row in (getattr(self, "new", None), getattr(self, "old", None))
            if row is not None
        ]

    def concerns_user(self, user_id: str) -> bool:
        """True if any carried row belongs to the given user."""
        return any(row.get("user_id") == user_id for row in self.rows())


class InsertEvent(_ChangeEventBase):
    event_type: Literal["INSERT"] = "INSERT"
    new: dict


class UpdateEvent(_ChangeEventBase):
    event_type: Literal["UPDATE"] = "UPDATE"
    new: dict
    old: dict = Field(default_factory=dict)


class DeleteEvent(_ChangeEventBase):
    event_type: Literal["DELETE"] = "DELETE"
    old: dict


ChangeEvent = Annotated[
    Union[InsertEvent, UpdateEvent, DeleteEvent],
    Field(discriminator="event_type"),
]

_change_event_adapter = TypeAdapter(ChangeEvent)


def parse_change_event(payload: dict) -> Union[InsertEvent, UpdateEvent, DeleteEvent]:
    """
    Validate a raw feed payload into its event variant.

    Accepts both snake_case (event_type) and the camelCase eventType
    used by realtime sockets.

    Raises:
        pydantic.ValidationError: If the payload has an illegal shape
    """
    data = dict(payload)
    if "event_type" not in data and "eventType" in data:
        data["event_type"] = data.pop("eventType")
    # Feeds send null for the row that does not apply to the event kind
    for key in ("new", "old"):
        if data.get(key) in (None, {}):
            data.pop(key, None)
    return _change_event_adapter.validate_python(data)
