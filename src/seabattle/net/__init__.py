"""Peer-to-peer play: wire protocol, transports and the session control loop."""

from .protocol import ProtocolError, decode_message, encode_message
from .session import MatchSession, SessionEvent
from .transport import LoopbackTransport, PeerTransport, TcpPeerTransport

__all__ = [
    "LoopbackTransport",
    "MatchSession",
    "PeerTransport",
    "ProtocolError",
    "SessionEvent",
    "TcpPeerTransport",
    "decode_message",
    "encode_message",
]
