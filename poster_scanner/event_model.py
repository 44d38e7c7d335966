"""
Edit operations on a scan session.

Sessions are immutable; every operation returns a new session and leaves the
input untouched. Values are stored as given; format checks happen at export.
"""

import logging
from datetime import date
from typing import Union

from pydantic import BaseModel

from .data_models import (
    DEFAULT_LOCATION, NEW_SUB_EVENT_TITLE,
    Event, MultiEventContainer, MultiSession, Session, SingleSession,
)
from .errors import SessionModeError


logger = logging.getLogger(__name__)


class _MainInfo:
    """Addresses the single event, or the container fields in multi mode."""

    def __repr__(self) -> str:
        return "MAIN_INFO"


MAIN_INFO = _MainInfo()

Target = Union[_MainInfo, int]


def _resolve_field(model: type, field: str) -> str:
    """Map a field or alias name (``startTime``) to the attribute name."""
    for name, info in model.model_fields.items():
        if field == name or field == info.alias:
            return name
    raise ValueError(f"{model.__name__} has no field {field!r}")


def _replace(instance: BaseModel, field: str, value: str) -> BaseModel:
    name = _resolve_field(type(instance), field)
    return instance.model_copy(update={name: value})


def _in_range(container: MultiEventContainer, index: int) -> bool:
    if isinstance(index, bool) or not isinstance(index, int):
        return False
    return 0 <= index < len(container.sub_events)


def update_field(session: Session, field: str, value: str,
                 target: Target = MAIN_INFO) -> Session:
    """
    Replace one field on the addressed entity.

    Args:
        session: Current session
        field: Field name, snake_case or camelCase
        value: New value, stored verbatim
        target: MAIN_INFO or a 0-based sub-event index

    Returns:
        Updated session, or the same session if the index is out of range

    Raises:
        ValueError: If the field does not exist on the addressed entity
    """
    if isinstance(session, SingleSession):
        if target is not MAIN_INFO:
            logger.debug(f"Ignoring sub-event index {target} on a single event")
            return session
        return session.model_copy(update={"event": _replace(session.event, field, value)})

    if isinstance(session, MultiSession):
        container = session.container
        if target is MAIN_INFO:
            if _resolve_field(MultiEventContainer, field) == "sub_events":
                raise ValueError("Sub-events are edited through their index")
            return session.model_copy(update={"container": _replace(container, field, value)})

        if not _in_range(container, target):
            logger.debug(f"Ignoring out of range sub-event index {target}")
            return session

        sub_events = list(container.sub_events)
        sub_events[target] = _replace(sub_events[target], field, value)
        return session.model_copy(update={
            "container": container.model_copy(update={"sub_events": tuple(sub_events)})
        })

    raise TypeError(f"Unsupported session type: {type(session).__name__}")


def add_sub_event(session: Session, today: date) -> Session:
    """
    Append a placeholder sub-event.

    The new entry inherits the container venue as its location.

    Raises:
        SessionModeError: If the session holds a single event
    """
    if isinstance(session, SingleSession):
        raise SessionModeError("Sub-events can only be added to a multi-event session")

    if isinstance(session, MultiSession):
        container = session.container
        new_event = Event.placeholder(
            today, title=NEW_SUB_EVENT_TITLE,
            location=container.venue.strip() or DEFAULT_LOCATION,
        )
        return session.model_copy(update={
            "container": container.model_copy(
                update={"sub_events": container.sub_events + (new_event,)}
            )
        })

    raise TypeError(f"Unsupported session type: {type(session).__name__}")


def remove_sub_event(session: Session, index: int) -> Session:
    """Remove the sub-event at ``index``; later entries shift down by one."""
    if isinstance(session, SingleSession):
        return session

    if isinstance(session, MultiSession):
        container = session.container
        if not _in_range(container, index):
            logger.debug(f"Ignoring out of range sub-event index {index}")
            return session
        sub_events = container.sub_events[:index] + container.sub_events[index + 1:]
        return session.model_copy(update={
            "container": container.model_copy(update={"sub_events": sub_events})
        })

    raise TypeError(f"Unsupported session type: {type(session).__name__}")
