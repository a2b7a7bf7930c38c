"""Point-to-point transports used by :class:`~seabattle.net.session.MatchSession`.

A transport exposes ``connect(remote_id)``, ``send(message)`` and ``close()``
and reports back through four callbacks: ``on_open()``, ``on_data(raw)``,
``on_close()`` and ``on_error(exc)``. Messages travel as JSON text, one
object per message, over a reliable ordered channel.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

OpenCallback = Callable[[], None]
DataCallback = Callable[[str], None]
CloseCallback = Callable[[], None]
ErrorCallback = Callable[[BaseException], None]


class PeerTransport(Protocol):
    """What the session needs from a connection to the other player."""

    on_open: OpenCallback | None
    on_data: DataCallback | None
    on_close: CloseCallback | None
    on_error: ErrorCallback | None

    def connect(self, remote_id: str) -> None: ...

    def send(self, message: dict[str, Any]) -> None: ...

    def close(self) -> None: ...


class _CallbackMixin:
    """Callback slots shared by the concrete transports."""

    def __init__(self) -> None:
        self.on_open: OpenCallback | None = None
        self.on_data: DataCallback | None = None
        self.on_close: CloseCallback | None = None
        self.on_error: ErrorCallback | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _fire_open(self) -> None:
        if self.on_open is not None:
            self.on_open()

    def _fire_data(self, raw: str) -> None:
        if self.on_data is not None:
            self.on_data(raw)

    def _fire_error(self, exc: BaseException) -> None:
        if self.on_error is not None:
            self.on_error(exc)

    def _fire_close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.on_close is not None:
            self.on_close()


class LoopbackTransport(_CallbackMixin):
    """In-process transport; each call is delivered on the next loop iteration."""

    def __init__(self, name: str = "loopback") -> None:
        super().__init__()
        self.name = name
        self.peer: LoopbackTransport | None = None
        self.sent: list[dict[str, Any]] = []
        self._open = False

    @classmethod
    def pair(cls) -> tuple[LoopbackTransport, LoopbackTransport]:
        """Return two transports wired to each other."""
        host, guest = cls("host"), cls("guest")
        host.peer, guest.peer = guest, host
        return host, guest

    def connect(self, remote_id: str = "") -> None:
        if self.peer is None:
            raise ConnectionError("Loopback transport has no peer.")
        loop = asyncio.get_running_loop()
        for side in (self, self.peer):
            if not side._open:
                side._open = True
                loop.call_soon(side._fire_open)

    def send(self, message: dict[str, Any]) -> None:
        if self._closed or self.peer is None or not self._open:
            logger.warning("loopback_send_dropped", extra={"transport": self.name})
            return
        self.sent.append(message)
        raw = json.dumps(message)
        asyncio.get_running_loop().call_soon(self.peer._fire_data, raw)

    def close(self) -> None:
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        loop.call_soon(self._fire_close)
        if self.peer is not None and not self.peer._closed:
            loop.call_soon(self.peer._fire_close)


class TcpPeerTransport(_CallbackMixin):
    """Newline-delimited JSON over a single TCP connection.

    One side calls :meth:`listen` and waits for the other to :meth:`connect`
    with ``"host:port"``.
    """

    def __init__(self) -> None:
        super().__init__()
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._server: asyncio.AbstractServer | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    async def listen(self, host: str, port: int) -> int:
        """Start accepting a single peer and return the bound port."""
        self._server = await asyncio.start_server(self._accept, host, port)
        bound_port = self._server.sockets[0].getsockname()[1]
        logger.info("tcp_listening", extra={"host": host, "port": bound_port})
        return bound_port

    def connect(self, remote_id: str) -> None:
        host, _, port = remote_id.rpartition(":")
        if not host or not port.isdigit():
            raise ValueError(f"Remote id must look like host:port, got {remote_id!r}")
        self._spawn(self._open_connection(host, int(port)))

    def send(self, message: dict[str, Any]) -> None:
        if self._writer is None or self._closed:
            logger.warning("tcp_send_dropped", extra={"type": message.get("type")})
            return
        self._writer.write(json.dumps(message).encode("utf-8") + b"\n")
        self._spawn(self._drain())

    def close(self) -> None:
        if self._server is not None:
            self._server.close()
            self._server = None
        if self._writer is not None:
            self._writer.close()
        self._fire_close()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _open_connection(self, host: str, port: int) -> None:
        try:
            reader, writer = await asyncio.open_connection(host, port)
        except OSError as exc:
            logger.error("tcp_connect_failed", extra={"host": host, "port": port, "error": str(exc)})
            self._fire_error(exc)
            self._fire_close()
            return
        await self._attach(reader, writer)

    async def _accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if self._writer is not None:
            logger.warning("tcp_extra_peer_rejected")
            writer.close()
            return
        if self._server is not None:
            self._server.close()
            self._server = None
        await self._attach(reader, writer)

    async def _attach(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader, self._writer = reader, writer
        logger.info("tcp_connected", extra={"peer": str(writer.get_extra_info("peername"))})
        self._fire_open()
        await self._read_loop()

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            while not self._closed:
                line = await self._reader.readline()
                if not line:
                    break
                text = line.decode("utf-8").strip()
                if text:
                    self._fire_data(text)
        except (ConnectionError, asyncio.IncompleteReadError) as exc:
            logger.error("tcp_read_failed", extra={"error": str(exc)})
            self._fire_error(exc)
        except ValueError as exc:
            # Undecodable bytes, or a line past the stream limit.
            logger.error("tcp_bad_frame", extra={"error": str(exc)})
            self._fire_error(exc)
            if self._writer is not None:
                self._writer.close()
        self._fire_close()

    async def _drain(self) -> None:
        if self._writer is None:
            return
        try:
            await self._writer.drain()
        except ConnectionError as exc:
            logger.error("tcp_write_failed", extra={"error": str(exc)})
            self._fire_error(exc)
            self.close()
