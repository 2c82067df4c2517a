"""Tests for vfp.icmp — echo message marshal / parse."""

import pytest

from vfp import icmp
from vfp.errors import ParseError, TruncatedPacketError
from vfp.icmp import (
    PROTO_ICMP,
    PROTO_ICMPV6,
    DestinationUnreachable,
    Echo,
    Message,
    RawBody,
    TimeExceeded,
)


class TestChecksum:
    """RFC 1071 Internet checksum."""

    def test_rfc1071_example(self) -> None:
        data = bytes.fromhex("0001f203f4f5f6f7")
        assert icmp.checksum(data) == 0x220D

    def test_odd_length_is_padded(self) -> None:
        assert icmp.checksum(b"\x01") == icmp.checksum(b"\x01\x00")

    def test_packet_with_checksum_sums_to_zero(self) -> None:
        packet = icmp.marshal(icmp.echo_request(PROTO_ICMP, 42), PROTO_ICMP)
        assert icmp.checksum(packet) == 0


class TestMarshal:
    """marshal() produces standard echo-request framing."""

    def test_ipv4_echo_request_bytes(self) -> None:
        packet = icmp.marshal(icmp.echo_request(PROTO_ICMP, 1), PROTO_ICMP)
        assert packet == bytes.fromhex("0800f7fe00010000")

    def test_ipv6_echo_request_leaves_checksum_to_kernel(self) -> None:
        packet = icmp.marshal(icmp.echo_request(PROTO_ICMPV6, 1), PROTO_ICMPV6)
        assert packet == bytes.fromhex("8000000000010000")

    def test_identifier_is_node_id(self) -> None:
        message = icmp.echo_request(PROTO_ICMP, 200)
        assert message.type == icmp.ICMP_ECHO_REQUEST
        assert message.code == 0
        assert message.body == Echo(identifier=200, sequence=0)

    def test_payload_is_appended(self) -> None:
        message = Message(type=8, code=0, body=Echo(7, 3, b"hello"))
        packet = icmp.marshal(message, PROTO_ICMP)
        assert packet[4:8] == bytes.fromhex("00070003")
        assert packet[8:] == b"hello"

    def test_unsupported_protocol_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unsupported"):
            icmp.marshal(icmp.echo_request(PROTO_ICMP, 1), 6)


class TestParseMessage:
    """parse_message() returns the right tagged body variant."""

    @pytest.mark.parametrize("protocol", [PROTO_ICMP, PROTO_ICMPV6])
    def test_request_parsed_as_reply_keeps_identifier(self, protocol: int) -> None:
        request = icmp.echo_request(protocol, 17)
        reply = Message(
            type=icmp.ECHO_REPLY[protocol], code=0, body=request.body
        )

        parsed = icmp.parse_message(protocol, icmp.marshal(reply, protocol))

        assert parsed.type == icmp.ECHO_REPLY[protocol]
        assert isinstance(parsed.body, Echo)
        assert parsed.body.identifier == 17

    def test_wire_checksum_is_kept(self) -> None:
        packet = bytes.fromhex("0800f7fe00010000")
        parsed = icmp.parse_message(PROTO_ICMP, packet)
        assert parsed.checksum == 0xF7FE

    def test_destination_unreachable_v4(self) -> None:
        packet = bytes.fromhex("0301000000000000") + b"original"
        parsed = icmp.parse_message(PROTO_ICMP, packet)
        assert parsed.type == icmp.ICMP_DEST_UNREACH
        assert parsed.code == 1
        assert parsed.body == DestinationUnreachable(b"original")

    def test_time_exceeded_v6(self) -> None:
        packet = bytes.fromhex("0300000000000000") + b"x"
        parsed = icmp.parse_message(PROTO_ICMPV6, packet)
        assert parsed.body == TimeExceeded(b"x")

    def test_unmodelled_type_is_raw_body(self) -> None:
        # ICMPv6 neighbor advertisement
        packet = bytes.fromhex("88000000") + b"\xaa" * 20
        parsed = icmp.parse_message(PROTO_ICMPV6, packet)
        assert parsed.type == 136
        assert parsed.body == RawBody(b"\xaa" * 20)

    def test_type_numbers_depend_on_protocol(self) -> None:
        # Type 0 is an echo reply on v4 but not on v6.
        packet = bytes.fromhex("0000000000090000")
        assert isinstance(icmp.parse_message(PROTO_ICMP, packet).body, Echo)
        assert isinstance(icmp.parse_message(PROTO_ICMPV6, packet).body, RawBody)

    @pytest.mark.parametrize("data", [b"", b"\x00", b"\x00\x00\x00"])
    def test_shorter_than_header(self, data: bytes) -> None:
        with pytest.raises(TruncatedPacketError):
            icmp.parse_message(PROTO_ICMP, data)

    def test_truncated_echo(self) -> None:
        with pytest.raises(TruncatedPacketError, match="echo"):
            icmp.parse_message(PROTO_ICMPV6, bytes.fromhex("81000000aa"))

    def test_truncated_is_a_parse_error(self) -> None:
        with pytest.raises(ParseError):
            icmp.parse_message(PROTO_ICMP, b"\x00")

    def test_unsupported_protocol(self) -> None:
        with pytest.raises(ParseError, match="Unsupported"):
            icmp.parse_message(17, bytes(8))
