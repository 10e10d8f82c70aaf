""" A class representation of a Jupyter kernel message: the header that
    identifies it, and the envelope that carries the header, the header of
    the message that caused it, metadata, and content.
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List

from .fields import PROTOCOL_VERSION


@dataclass
class Header:
    """ The :class:`Header` identifies a single message. The *msg_id* is the
        correlation key: any message caused by this one will carry a copy of
        this header as its parent header.

        A header with every field empty is the zero value; it is used as the
        parent header of top-level commands, and it is falsy.
    """

    msg_id: str = ''
    username: str = ''
    session: str = ''
    date: str = ''
    msg_type: str = ''
    version: str = ''

    def __bool__(self):
        for value in vars(self).values():
            if value:
                return True
        return False


    def to_dict(self) -> Dict[str, str]:
        ''' Return the header as a dictionary suitable for JSON encoding.
            The zero value is represented as an empty dictionary, which is
            how kernels expect an absent parent header to look.
        '''

        if not self:
            return {}

        return dict(vars(self))


    @classmethod
    def from_dict(cls, header) -> 'Header':
        ''' Build a :class:`Header` from a decoded dictionary. Unknown keys
            are ignored, missing keys take the empty default. Kernels are
            not consistent about the type of the date field, so every value
            is normalized to a string.
        '''

        if not header:
            return cls()

        if not isinstance(header, dict):
            raise TypeError('header must be a JSON object, not ' + type(header).__name__)

        values = dict()
        for known in fields(cls):
            value = header.get(known.name)
            if value is None:
                continue
            values[known.name] = str(value)

        return cls(**values)


# end of class Header



@dataclass
class Envelope:
    """ The :class:`Envelope` is the logical message: everything that goes
        on the wire for a single correspondence, in decoded form.

        :ivar content: A dictionary when decoded from the wire. When encoding,
            any object with a ``to_dict()`` method is also accepted.
        :ivar buffers: Raw binary frames trailing the JSON frames. These are
            not covered by the signature.
        :ivar identities: Routing prefix frames that preceded the delimiter.
    """

    header: Header = field(default_factory=Header)
    parent_header: Header = field(default_factory=Header)
    metadata: Dict[str, Any] = field(default_factory=dict)
    content: Any = field(default_factory=dict)
    buffers: List[bytes] = field(default_factory=list)
    identities: List[bytes] = field(default_factory=list)

    @property
    def msg_id(self) -> str:
        return self.header.msg_id

    @property
    def msg_type(self) -> str:
        return self.header.msg_type

    @property
    def parent_id(self) -> str:
        return self.parent_header.msg_id


# end of class Envelope



def new_id() -> str:
    """ Return a new message identifier. These need to be unique for the
        lifetime of the process, since they key the routing of every
        broadcast message; a random UUID is the conventional choice.
    """

    return uuid.uuid4().hex



def utcnow() -> str:
    """ Return the current time as an ISO 8601 string in UTC, formatted the
        way Jupyter kernels format it.
    """

    now = datetime.datetime.now(tz=datetime.timezone.utc)
    return now.isoformat().replace('+00:00', 'Z')



def new_header(msg_type: str, session: str, username: str = '') -> Header:
    """ Return a fresh :class:`Header` for a message of the requested
        *msg_type*, belonging to the specified *session*.
    """

    return Header(
        msg_id=new_id(),
        username=username,
        session=session,
        date=utcnow(),
        msg_type=msg_type,
        version=PROTOCOL_VERSION,
    )


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
