""" Multi-part framing for Jupyter kernel messages.

    A message on the wire is a sequence of frames::

        identities..., <IDS|MSG>, signature, header, parent_header, metadata, content, buffers...

    The four JSON frames are signed with HMAC-SHA256 using the key shared
    with the kernel; the signature frame holds the hex digest. An empty key
    disables signing, and the signature frame is then empty.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
from typing import Any, List, Sequence

from .. import json
from .fields import DELIMITER
from .message import Envelope, Header


class ProtocolError(Exception):
    """Base class for all message encoding/decoding errors."""


class EncodingError(ProtocolError):
    """A message field could not be serialized."""


class DecodingError(ProtocolError, ValueError):
    """A frame set could not be interpreted as a message."""


class NotFoundError(DecodingError):
    """The delimiter frame is missing from a frame set."""


class InvalidSignatureError(DecodingError):
    """The signature does not match the signed frames."""


def _as_key(key) -> bytes:
    if key is None:
        return b''
    if isinstance(key, str):
        return key.encode('utf-8')
    return bytes(key)


def _pack(value: Any) -> bytes:
    if value is None:
        return b'{}'

    to_dict = getattr(value, 'to_dict', None)
    if to_dict is not None:
        value = to_dict()

    try:
        return json.dumps(value)
    except json.encode_errors as exc:
        raise EncodingError(f"cannot serialize {type(value).__name__}: {exc}") from exc


def _unpack(frame: bytes, name: str) -> dict:
    # Absent optional frames decode to the zero value.
    if not frame:
        return {}

    try:
        value = json.loads(frame)
    except json.decode_errors as exc:
        raise DecodingError(f"invalid JSON in {name} frame: {exc}") from exc

    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodingError(f"{name} frame must be a JSON object, not {type(value).__name__}")
    return value


def sign(frames: Sequence[bytes], key) -> bytes:
    """ Return the hex-encoded HMAC-SHA256 digest of the *frames*, as bytes.
        The empty string is returned if there is no *key*.
    """

    key = _as_key(key)
    if not key:
        return b''

    mac = hmac.new(key, digestmod=hashlib.sha256)
    for frame in frames:
        mac.update(frame)
    return mac.hexdigest().encode('ascii')


def verify(signature: bytes, frames: Sequence[bytes], key) -> None:
    """ Raise :class:`InvalidSignatureError` if the *signature* does not
        match the *frames*. Nothing is checked if there is no *key*.
    """

    key = _as_key(key)
    if not key:
        return

    try:
        provided = binascii.unhexlify(signature)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise InvalidSignatureError(f"malformed signature: {signature!r}") from exc

    mac = hmac.new(key, digestmod=hashlib.sha256)
    for frame in frames:
        mac.update(frame)
    expected = mac.digest()

    # compare_digest also rejects a truncated signature.
    if not hmac.compare_digest(expected, provided):
        raise InvalidSignatureError('invalid message signature')


def encode(envelope: Envelope, key=None) -> List[bytes]:
    """ Serialize the *envelope* into the signature frame followed by the
        four JSON frames and any binary buffers. The delimiter and routing
        identities are not included; prefixing them is the job of whoever
        puts the frames on the wire.
    """

    header = envelope.header
    parent = envelope.parent_header

    if isinstance(header, Header):
        header = header.to_dict()
    if isinstance(parent, Header):
        parent = parent.to_dict()

    message = [
        _pack(header),
        _pack(parent),
        _pack(envelope.metadata),
        _pack(envelope.content),
    ]

    signature = sign(message, key)
    return [signature] + message + list(envelope.buffers or ())


def find_delimiter(frames: Sequence[bytes]) -> int:
    """ Return the index of the delimiter frame, raising
        :class:`NotFoundError` if it is not present.
    """

    for index, frame in enumerate(frames):
        if bytes(frame) == DELIMITER:
            return index

    raise NotFoundError('delimiter not found in message frames')


def decode(frames: Sequence[bytes], key=None) -> Envelope:
    """ Decode a raw multi-part message into an :class:`Envelope`. The
        content is decoded generically, as a dictionary; see
        :func:`kernelclient.protocol.content.parse_content` for the typed
        interpretation.
    """

    frames = [bytes(frame) for frame in frames]
    index = find_delimiter(frames)

    identities = frames[:index]
    signature = frames[index + 1] if len(frames) > index + 1 else b''

    message = frames[index + 2:index + 6]
    while len(message) < 4:
        message.append(b'')

    buffers = frames[index + 6:]

    verify(signature, message, key)

    header = _unpack(message[0], 'header')
    parent = _unpack(message[1], 'parent_header')
    metadata = _unpack(message[2], 'metadata')
    content = _unpack(message[3], 'content')

    return Envelope(
        header=Header.from_dict(header),
        parent_header=Header.from_dict(parent),
        metadata=metadata,
        content=content,
        buffers=buffers,
        identities=identities,
    )


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
