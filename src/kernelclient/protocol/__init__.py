from . import fields
from . import message
from . import codec
from . import content
from . import commands

from .codec import (
    ProtocolError,
    EncodingError,
    DecodingError,
    NotFoundError,
    InvalidSignatureError,
)
from .content import UnknownMessageTypeError, parse_content, dispatch_content
from .message import Envelope, Header


"""
Kernel Protocol Layer
=====================

This package defines the Jupyter kernel messaging protocol as seen by a
client: message structures, the signed multi-part wire codec, and typed
content for each message type.

The protocol layer MUST NOT depend on any transport implementation
(e.g. ZeroMQ).

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

Client Runtime (kernelclient.client)
    Issues commands, drains broadcasts
    - execute()
    - inspect()
    - complete()
    - history()

    │
    ▼
Content (content.py, commands.py)
    Typed payloads keyed by msg_type
    - Stream, DisplayData, Status, ...
    - ExecuteRequest, ExecuteReply, ...
    - UnknownContent for anything else

    │
    ▼
Codec (codec.py)
    Envelope <-> signed wire frames
    - encode()
    - decode()
    - HMAC-SHA256 signing

    │
    ▼
Message Model (message.py)
    - Header
    - Envelope

    │
    ▼
Field Vocabulary (fields.py)
    Canonical message types, states, and the delimiter

---------------------------------------------------------------------

Below the Protocol Layer (for context)
--------------------------------------

Session Layer (kernelclient.transport.session)
    Applies the codec to a transport
    - CommandSession: send(), recv()
    - SubscribeSession: recv()

Transport Layer (kernelclient.transport.zmq)
    Moves frames
    - DEALER socket for commands
    - SUB socket for broadcasts

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
