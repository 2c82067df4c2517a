"""Exception hierarchy for the probe agent."""


class VfpError(Exception):
    """Base class for all vfp errors."""


class ConfigError(VfpError):
    """Raised when a configuration or targets file is malformed or unreadable."""


class SocketSetupError(VfpError):
    """Raised when a raw ICMP socket cannot be opened or bound."""


# ------------------------------------------------------------------
# Per-target errors (Prober)
# ------------------------------------------------------------------


class ProbeError(VfpError):
    """A single probe could not be sent.  Never fatal."""

    def __init__(self, target: str, message: str) -> None:
        super().__init__(f"{target}: {message}")
        self.target = target


class ResolutionError(ProbeError):
    """The target could not be resolved to an IP address."""


class TransmitError(ProbeError):
    """The OS rejected the write of an echo request."""


# ------------------------------------------------------------------
# Per-packet errors (Reply Listener)
# ------------------------------------------------------------------


class ReplyError(VfpError):
    """A received datagram was not a usable echo reply.  Never fatal."""


class ReceiveError(ReplyError):
    """Reading from the socket failed."""


class ParseError(ReplyError):
    """The datagram could not be parsed as an ICMP message."""


class TruncatedPacketError(ParseError):
    """The datagram is shorter than the header it claims to carry."""


class UnexpectedTypeError(ReplyError):
    """The message parsed fine but is not an echo reply."""


class BodyMismatchError(ReplyError):
    """An echo-reply type arrived with a non-echo body."""
