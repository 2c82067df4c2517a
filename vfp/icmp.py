"""ICMP wire codec: echo message model, tagged body variants, marshal / parse.

Layout of every ICMP message handled here (both families)::

    type      : 1 byte
    code      : 1 byte
    checksum  : 2 bytes
    body      : echo -> identifier (2) + sequence (2) + payload
                error messages -> 4 unused bytes + original datagram excerpt

The echo ``identifier`` carries the sending node's id, not a session value.
"""

import struct
from dataclasses import dataclass

from vfp.errors import ParseError, TruncatedPacketError

PROTO_ICMP = 1
PROTO_ICMPV6 = 58

# ICMPv4 types
ICMP_ECHO_REPLY = 0
ICMP_DEST_UNREACH = 3
ICMP_ECHO_REQUEST = 8
ICMP_TIME_EXCEEDED = 11

# ICMPv6 types
ICMPV6_DEST_UNREACH = 1
ICMPV6_TIME_EXCEEDED = 3
ICMPV6_ECHO_REQUEST = 128
ICMPV6_ECHO_REPLY = 129

ECHO_REQUEST: dict[int, int] = {
    PROTO_ICMP: ICMP_ECHO_REQUEST,
    PROTO_ICMPV6: ICMPV6_ECHO_REQUEST,
}
ECHO_REPLY: dict[int, int] = {
    PROTO_ICMP: ICMP_ECHO_REPLY,
    PROTO_ICMPV6: ICMPV6_ECHO_REPLY,
}
_DEST_UNREACH: dict[int, int] = {
    PROTO_ICMP: ICMP_DEST_UNREACH,
    PROTO_ICMPV6: ICMPV6_DEST_UNREACH,
}
_TIME_EXCEEDED: dict[int, int] = {
    PROTO_ICMP: ICMP_TIME_EXCEEDED,
    PROTO_ICMPV6: ICMPV6_TIME_EXCEEDED,
}

_HEADER = struct.Struct("!BBH")
_ECHO = struct.Struct("!HH")
HEADER_LEN = _HEADER.size
ECHO_HEADER_LEN = HEADER_LEN + _ECHO.size


# ---------------------------------------------------------------------------
# Body variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Echo:
    """Echo request / reply body.

    Attributes:
        identifier: 16-bit tag; holds the probing node's id.
        sequence: 16-bit sequence number (always 0 for probes we send).
        payload: Arbitrary trailing data.
    """

    identifier: int
    sequence: int = 0
    payload: bytes = b""

    def marshal(self) -> bytes:
        return _ECHO.pack(self.identifier, self.sequence) + self.payload


@dataclass(frozen=True)
class DestinationUnreachable:
    """Destination-unreachable body: excerpt of the offending datagram."""

    data: bytes = b""

    def marshal(self) -> bytes:
        return b"\x00" * 4 + self.data


@dataclass(frozen=True)
class TimeExceeded:
    """Time-exceeded body: excerpt of the offending datagram."""

    data: bytes = b""

    def marshal(self) -> bytes:
        return b"\x00" * 4 + self.data


@dataclass(frozen=True)
class RawBody:
    """Any other message type; the bytes following the 4-byte header."""

    data: bytes = b""

    def marshal(self) -> bytes:
        return self.data


Body = Echo | DestinationUnreachable | TimeExceeded | RawBody


@dataclass(frozen=True)
class Message:
    """A parsed or to-be-sent ICMP message.

    ``checksum`` is what was on the wire for parsed messages; it is ignored
    by :func:`marshal`, which computes it where needed.
    """

    type: int
    code: int
    body: Body
    checksum: int = 0


# ---------------------------------------------------------------------------
# Marshal / parse
# ---------------------------------------------------------------------------


def checksum(data: bytes) -> int:
    """Return the RFC 1071 Internet checksum of *data*."""
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def marshal(message: Message, protocol: int) -> bytes:
    """Serialize *message* to wire bytes for *protocol*.

    ICMPv4 gets its checksum computed here.  ICMPv6 leaves it zero: the
    kernel computes it on raw ICMPv6 sockets, as the pseudo-header needs
    the source address chosen at send time.

    Raises:
        ValueError: If *protocol* is neither ICMP nor ICMPv6.
    """
    if protocol not in (PROTO_ICMP, PROTO_ICMPV6):
        raise ValueError(f"Unsupported ICMP protocol number: {protocol}")

    body = message.body.marshal()
    packet = _HEADER.pack(message.type, message.code, 0) + body
    if protocol == PROTO_ICMP:
        csum = checksum(packet)
        packet = packet[:2] + struct.pack("!H", csum) + packet[4:]
    return packet


def parse_message(protocol: int, data: bytes) -> Message:
    """Parse ICMP bytes (no IP header) into a :class:`Message`.

    The body variant is chosen from the message type for *protocol*;
    types we don't model come back as :class:`RawBody`.

    Raises:
        ParseError: If *protocol* is unsupported.
        TruncatedPacketError: If *data* is too short for its type.
    """
    if protocol not in (PROTO_ICMP, PROTO_ICMPV6):
        raise ParseError(f"Unsupported ICMP protocol number: {protocol}")
    if len(data) < HEADER_LEN:
        raise TruncatedPacketError(
            f"ICMP message too short: {len(data)} bytes, need {HEADER_LEN}"
        )

    msg_type, code, csum = _HEADER.unpack_from(data)

    if msg_type in (ECHO_REQUEST[protocol], ECHO_REPLY[protocol]):
        if len(data) < ECHO_HEADER_LEN:
            raise TruncatedPacketError(
                f"ICMP echo message too short: {len(data)} bytes, "
                f"need {ECHO_HEADER_LEN}"
            )
        identifier, sequence = _ECHO.unpack_from(data, HEADER_LEN)
        body: Body = Echo(identifier, sequence, bytes(data[ECHO_HEADER_LEN:]))
    elif msg_type in (_DEST_UNREACH[protocol], _TIME_EXCEEDED[protocol]):
        if len(data) < ECHO_HEADER_LEN:
            raise TruncatedPacketError(
                f"ICMP error message too short: {len(data)} bytes, "
                f"need {ECHO_HEADER_LEN}"
            )
        excerpt = bytes(data[ECHO_HEADER_LEN:])
        if msg_type == _DEST_UNREACH[protocol]:
            body = DestinationUnreachable(excerpt)
        else:
            body = TimeExceeded(excerpt)
    else:
        body = RawBody(bytes(data[HEADER_LEN:]))

    return Message(type=msg_type, code=code, body=body, checksum=csum)


def echo_request(protocol: int, identifier: int) -> Message:
    """Build the echo request for *protocol* tagged with *identifier*."""
    return Message(
        type=ECHO_REQUEST[protocol],
        code=0,
        body=Echo(identifier=identifier),
    )
