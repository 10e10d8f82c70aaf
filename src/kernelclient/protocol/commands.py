"""Request and reply payloads for the command channel.

Requests only need to serialize; replies register themselves as content
kinds so a reply envelope can be dispatched the same way as a broadcast
notification.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import fields as tags
from .content import Content, _ensure_dict, _ensure_str_list, _to_int, kind


@dataclass
class ExecuteRequest:
    code: str
    silent: bool = False
    store_history: bool = True
    user_expressions: Dict[str, str] = field(default_factory=dict)
    stop_on_error: bool = True

    msg_type = tags.EXECUTE_REQUEST

    def to_dict(self) -> Dict[str, Any]:
        # Stdin prompting is not supported; a kernel must never wait on it.
        return {
            "code": self.code,
            "silent": self.silent,
            "store_history": self.store_history and not self.silent,
            "user_expressions": dict(self.user_expressions),
            "allow_stdin": False,
            "stop_on_error": self.stop_on_error,
        }


@dataclass
class InspectRequest:
    code: str
    cursor_pos: Optional[int] = None
    detail_level: int = 0

    msg_type = tags.INSPECT_REQUEST

    def to_dict(self) -> Dict[str, Any]:
        cursor_pos = len(self.code) if self.cursor_pos is None else self.cursor_pos
        return {"code": self.code, "cursor_pos": cursor_pos, "detail_level": self.detail_level}


@dataclass
class CompleteRequest:
    code: str
    cursor_pos: Optional[int] = None

    msg_type = tags.COMPLETE_REQUEST

    def to_dict(self) -> Dict[str, Any]:
        cursor_pos = len(self.code) if self.cursor_pos is None else self.cursor_pos
        return {"code": self.code, "cursor_pos": cursor_pos}


@dataclass
class HistoryRequest:
    output: bool = False
    raw: bool = True
    hist_access_type: str = "tail"
    session: int = 0
    start: int = 0
    stop: int = 0
    n: int = 10
    pattern: str = ""
    unique: bool = False

    msg_type = tags.HISTORY_REQUEST

    def to_dict(self) -> Dict[str, Any]:
        if self.hist_access_type not in ("range", "tail", "search"):
            raise ValueError(f"invalid hist_access_type: {self.hist_access_type!r}")

        request: Dict[str, Any] = {
            "output": self.output,
            "raw": self.raw,
            "hist_access_type": self.hist_access_type,
        }
        if self.hist_access_type == "range":
            request.update(session=self.session, start=self.start, stop=self.stop)
        elif self.hist_access_type == "tail":
            request.update(n=self.n)
        else:
            request.update(n=self.n, pattern=self.pattern, unique=self.unique)
        return request


@kind(tags.EXECUTE_REPLY)
@dataclass
class ExecuteReply(Content):
    status: str = ""
    execution_count: Optional[int] = None
    payload: List[Dict[str, Any]] = field(default_factory=list)
    user_expressions: Dict[str, Any] = field(default_factory=dict)
    ename: str = ""
    evalue: str = ""
    traceback: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, content):
        payload = content.get("payload")
        return cls(
            status=str(content.get("status") or ""),
            execution_count=_to_int(content.get("execution_count")),
            payload=list(payload) if isinstance(payload, list) else [],
            user_expressions=_ensure_dict(content.get("user_expressions")),
            ename=str(content.get("ename") or ""),
            evalue=str(content.get("evalue") or ""),
            traceback=_ensure_str_list(content.get("traceback")),
        )

    @property
    def ok(self) -> bool:
        return self.status == tags.STATUS_OK


@kind(tags.INSPECT_REPLY)
@dataclass
class InspectReply(Content):
    status: str = ""
    found: bool = False
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, content):
        return cls(
            status=str(content.get("status") or ""),
            found=bool(content.get("found")),
            data=_ensure_dict(content.get("data")),
            metadata=_ensure_dict(content.get("metadata")),
        )


@kind(tags.COMPLETE_REPLY)
@dataclass
class CompleteReply(Content):
    status: str = ""
    matches: List[str] = field(default_factory=list)
    cursor_start: Optional[int] = None
    cursor_end: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, content):
        return cls(
            status=str(content.get("status") or ""),
            matches=_ensure_str_list(content.get("matches")),
            cursor_start=_to_int(content.get("cursor_start")),
            cursor_end=_to_int(content.get("cursor_end")),
            metadata=_ensure_dict(content.get("metadata")),
        )


@dataclass
class HistoryItem:
    session: int
    line_number: int
    input: str
    output: Any = None

    @classmethod
    def from_list(cls, item) -> "HistoryItem":
        """Parse ``[session, line, input]`` or ``[session, line, [input, output]]``."""

        if not isinstance(item, (list, tuple)) or len(item) < 3:
            raise ValueError(f"invalid history item: {item!r}")

        session = _to_int(item[0]) or 0
        line_number = _to_int(item[1]) or 0
        entry = item[2]
        output = None

        if isinstance(entry, (list, tuple)) and len(entry) == 2:
            entry, output = entry

        return cls(session=session, line_number=line_number, input=str(entry), output=output)

    def to_list(self) -> List[Any]:
        if self.output is None:
            return [self.session, self.line_number, self.input]
        return [self.session, self.line_number, [self.input, self.output]]


@kind(tags.HISTORY_REPLY)
@dataclass
class HistoryReply(Content):
    status: str = ""
    history: List[HistoryItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, content):
        items = content.get("history")
        if not isinstance(items, list):
            items = []
        return cls(
            status=str(content.get("status") or ""),
            history=[HistoryItem.from_list(item) for item in items],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "history": [item.to_list() for item in self.history]}
