"""Typed message content, keyed by the header's message type.

The codec decodes content generically, as a dictionary. This module is the
second pass: it maps the ``msg_type`` tag onto a dataclass for that kind of
content. Tags without a registered kind become :class:`UnknownContent`, so a
dispatch failure is ordinary data rather than an exception unless the caller
asks for one via :func:`dispatch_content`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Optional, Type

from . import fields as tags


class UnknownMessageTypeError(ValueError):
    """No content kind is registered for a message type."""

    def __init__(self, msg_type: str):
        super().__init__(f"unknown message type: {msg_type!r}")
        self.msg_type = msg_type


_kinds: Dict[str, Type["Content"]] = {}


def kind(msg_type: str) -> Callable[[Type["Content"]], Type["Content"]]:
    """Class decorator registering a content kind for *msg_type*."""

    def register(cls):
        cls.msg_type = msg_type
        _kinds[msg_type] = cls
        return cls

    return register


def known_types() -> List[str]:
    return sorted(_kinds)


def _ensure_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {}


def _ensure_str_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return []


def _to_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


@dataclass
class Content:
    """Base class for typed content; ``msg_type`` is set by :func:`kind`."""

    msg_type = ""

    @classmethod
    def from_dict(cls, content: Dict[str, Any]) -> "Content":
        # Lenient: unknown keys are ignored, missing keys keep their default.
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in content.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class UnknownContent(Content):
    """Content whose message type has no registered kind."""

    type: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.raw)


@kind(tags.STREAM)
@dataclass
class Stream(Content):
    name: str = "stdout"
    text: str = ""


@kind(tags.DISPLAY_DATA)
@dataclass
class DisplayData(Content):
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    transient: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, content):
        return cls(
            data=_ensure_dict(content.get("data")),
            metadata=_ensure_dict(content.get("metadata")),
            transient=_ensure_dict(content.get("transient")),
        )

    @property
    def display_id(self) -> Optional[str]:
        return self.transient.get("display_id")


@kind(tags.UPDATE_DISPLAY_DATA)
@dataclass
class UpdateDisplayData(DisplayData):
    pass


@kind(tags.CLEAR_OUTPUT)
@dataclass
class ClearOutput(Content):
    wait: bool = False


@kind(tags.EXECUTE_INPUT)
@dataclass
class ExecuteInput(Content):
    code: str = ""
    execution_count: Optional[int] = None

    @classmethod
    def from_dict(cls, content):
        return cls(
            code=str(content.get("code") or ""),
            execution_count=_to_int(content.get("execution_count")),
        )


@kind(tags.EXECUTE_RESULT)
@dataclass
class ExecuteResult(Content):
    execution_count: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, content):
        return cls(
            execution_count=_to_int(content.get("execution_count")),
            data=_ensure_dict(content.get("data")),
            metadata=_ensure_dict(content.get("metadata")),
        )


@kind(tags.ERROR)
@dataclass
class Error(Content):
    ename: str = ""
    evalue: str = ""
    traceback: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, content):
        return cls(
            ename=str(content.get("ename") or ""),
            evalue=str(content.get("evalue") or ""),
            traceback=_ensure_str_list(content.get("traceback")),
        )


@kind(tags.STATUS)
@dataclass
class Status(Content):
    execution_state: str = ""

    @property
    def idle(self) -> bool:
        return self.execution_state == tags.STATE_IDLE


def parse_content(msg_type: str, content: Optional[Dict[str, Any]]) -> Content:
    """Convert decoded *content* into the typed kind registered for *msg_type*."""

    content = _ensure_dict(content)
    cls = _kinds.get(msg_type)
    if cls is None:
        return UnknownContent(type=msg_type, raw=content)
    return cls.from_dict(content)


def dispatch_content(msg_type: str, content: Optional[Dict[str, Any]]) -> Content:
    """Like :func:`parse_content`, but unknown types raise :class:`UnknownMessageTypeError`."""

    parsed = parse_content(msg_type, content)
    if isinstance(parsed, UnknownContent):
        raise UnknownMessageTypeError(msg_type)
    return parsed
