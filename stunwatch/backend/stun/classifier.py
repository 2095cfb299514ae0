"""
stun/classifier.py

Structural STUN classification of raw UDP payloads.

Every function here is pure: no I/O, no shared state, and malformed input
is answered with False rather than an exception.

STUN message layout (RFC 5389):
  bytes 0-1   message type
  bytes 2-3   message length (attributes only, excludes the 20-byte header)
  bytes 4-7   magic cookie 0x2112A442
  bytes 8-19  transaction ID
  bytes 20+   attributes, each:
                type(2) | length(2) | value(length, padded to 4 bytes)
"""

from __future__ import annotations

import struct

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HEADER_SIZE = 20
MAGIC_COOKIE = b"\x21\x12\xa4\x42"

# Message types (first two header bytes)
BINDING_REQUEST = 0x0001
BINDING_RESPONSE = 0x0101
BINDING_ERROR_RESPONSE = 0x0111
BINDING_INDICATION = 0x0011

MESSAGE_TYPE_NAMES = {
    BINDING_REQUEST:        "binding-request",
    BINDING_RESPONSE:       "binding-response",
    BINDING_ERROR_RESPONSE: "binding-error-response",
    BINDING_INDICATION:     "binding-indication",
}

# Attributes that only a server puts in a Binding response
ATTR_MAPPED_ADDRESS = 0x0001
ATTR_XOR_MAPPED_ADDRESS = 0x0020

# STUN/TURN (3478, 5349) and web (80, 443) ports; every port below
# PRIVILEGED_PORT_LIMIT is treated the same way.
KNOWN_SERVER_PORTS = frozenset({80, 443, 3478, 5349})
PRIVILEGED_PORT_LIMIT = 1024

_U16 = struct.Struct("!H")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def is_stun(payload: bytes) -> bool:
    """True if *payload* has a full STUN header carrying the magic cookie."""
    if len(payload) < HEADER_SIZE:
        return False
    return payload[4:8] == MAGIC_COOKIE


def has_attribute(payload: bytes, attr_type: int) -> bool:
    """
    Return True if the STUN message in *payload* carries an attribute
    of type *attr_type*.

    The walk is bounded by both the declared message length and the real
    buffer size: a truncated trailing attribute ends the list. Attribute
    values are never decoded.
    """
    if not is_stun(payload):
        return False

    (msg_len,) = _U16.unpack_from(payload, 2)
    end = HEADER_SIZE + msg_len
    pos = HEADER_SIZE

    while pos < end and pos + 4 <= len(payload):
        current_type, attr_len = struct.unpack_from("!HH", payload, pos)
        if current_type == attr_type:
            return True
        pos += 4 + ((attr_len + 3) & ~3)

    return False


def is_server_originated(payload: bytes) -> bool:
    """True for STUN server replies (MAPPED-ADDRESS or XOR-MAPPED-ADDRESS present)."""
    if not is_stun(payload):
        return False
    return (
        has_attribute(payload, ATTR_MAPPED_ADDRESS)
        or has_attribute(payload, ATTR_XOR_MAPPED_ADDRESS)
    )


def is_known_server_port(port: int) -> bool:
    """True for well-known STUN/TURN/web ports and all privileged ports."""
    return port in KNOWN_SERVER_PORTS or port < PRIVILEGED_PORT_LIMIT


def message_type(payload: bytes) -> int:
    """The 16-bit message type from the first two bytes, or 0 if too short."""
    if len(payload) < 2:
        return 0
    return _U16.unpack_from(payload, 0)[0]


def describe(payload: bytes) -> str:
    """Short human-readable label for debug logs, e.g. 'binding-request'."""
    mtype = message_type(payload)
    return MESSAGE_TYPE_NAMES.get(mtype, f"0x{mtype:04x}")
