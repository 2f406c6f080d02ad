from __future__ import annotations

from dataclasses import dataclass, field
import fnmatch
import socket
import socketserver
import threading
from typing import Any, Iterator

import pytest


class _ThreadingTCPServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    daemon_threads = True
    allow_reuse_address = True


@dataclass(slots=True)
class RespServer:
    """Small RESP2 server holding just enough state for driver round trips."""

    keys: dict[str, tuple[str, int]] = field(default_factory=dict)
    properties: dict[str, str] = field(default_factory=dict)
    channels: dict[str, int] = field(default_factory=dict)
    databases: int = 16
    saves: int = 0
    commands: list[list[str]] = field(default_factory=list)
    host: str = "127.0.0.1"
    port: int = 0
    _server: Any = None
    _thread: threading.Thread | None = None

    @property
    def url(self) -> str:
        return f"redis://{self.host}:{self.port}/0"

    def start(self) -> None:
        server = self

        class RespHandler(socketserver.BaseRequestHandler):
            def handle(self) -> None:
                server._handle_client(self.request)

        self._server = _ThreadingTCPServer((self.host, 0), RespHandler)
        self.port = int(self._server.server_address[1])
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None

    def _handle_client(self, conn: socket.socket) -> None:
        conn.settimeout(5.0)
        while True:
            command = self._read_resp_array(conn)
            if not command:
                return
            self.commands.append(command)
            try:
                conn.sendall(self._execute(command))
            except OSError:
                return

    def _execute(self, command: list[str]) -> bytes:
        cmd = command[0].upper()
        args = command[1:]
        if cmd == "PING":
            return b"+PONG\r\n"
        if cmd == "CLIENT":
            return b"+OK\r\n"
        if cmd == "SCAN":
            return self._scan_page(args)
        if cmd == "TYPE":
            return f"+{self.keys.get(args[0], ('none', -2))[0]}\r\n".encode("utf-8")
        if cmd == "TTL":
            return self._integer(self.keys.get(args[0], ("none", -2))[1])
        if cmd == "DBSIZE":
            return self._integer(len(self.keys))
        if cmd == "SAVE":
            self.saves += 1
            return b"+OK\r\n"
        if cmd == "SELECT":
            if not args[0].isdigit() or int(args[0]) >= self.databases:
                return b"-ERR DB index is out of range\r\n"
            return b"+OK\r\n"
        if cmd == "CONFIG" and args and args[0].upper() == "GET":
            items: list[str] = []
            for name, value in self.properties.items():
                if fnmatch.fnmatchcase(name, args[1]):
                    items.extend([name, value])
            return self._array(items)
        if cmd == "CONFIG" and args and args[0].upper() == "SET":
            if args[1] not in self.properties:
                return f"-ERR Unknown option or number of arguments for CONFIG SET - '{args[1]}'\r\n".encode("utf-8")
            self.properties[args[1]] = args[2]
            return b"+OK\r\n"
        if cmd == "PUBSUB" and args and args[0].upper() == "CHANNELS":
            pattern = args[1] if len(args) > 1 else "*"
            return self._array([name for name in self.channels if fnmatch.fnmatchcase(name, pattern)])
        if cmd == "PUBSUB" and args and args[0].upper() == "NUMSUB":
            payload = [f"*{2 * (len(args) - 1)}\r\n".encode("utf-8")]
            for name in args[1:]:
                payload.append(self._bulk(name))
                payload.append(self._integer(self.channels.get(name, 0)))
            return b"".join(payload)
        return f"-ERR unknown command '{command[0]}'\r\n".encode("utf-8")

    def _scan_page(self, args: list[str]) -> bytes:
        cursor = int(args[0])
        pattern = "*"
        count = 10
        options = args[1:]
        for index in range(0, len(options) - 1, 2):
            if options[index].upper() == "MATCH":
                pattern = options[index + 1]
            elif options[index].upper() == "COUNT":
                count = int(options[index + 1])
        names = sorted(self.keys)
        window = names[cursor : cursor + count]
        next_cursor = cursor + count if cursor + count < len(names) else 0
        matched = [name for name in window if fnmatch.fnmatchcase(name, pattern)]
        return b"*2\r\n" + self._bulk(str(next_cursor)) + self._array(matched)

    def _read_resp_array(self, conn: socket.socket) -> list[str] | None:
        first = self._recv_exact(conn, 1)
        if first != b"*":
            return None
        count_line = self._recvline(conn)
        if count_line is None:
            return None
        items: list[str] = []
        for _ in range(int(count_line)):
            if self._recv_exact(conn, 1) != b"$":
                return None
            length_line = self._recvline(conn)
            if length_line is None:
                return None
            data = self._recv_exact(conn, int(length_line) + 2)
            if data is None:
                return None
            items.append(data[:-2].decode("utf-8", errors="replace"))
        return items

    @staticmethod
    def _recv_exact(conn: socket.socket, count: int) -> bytes | None:
        data = bytearray()
        try:
            while len(data) < count:
                chunk = conn.recv(count - len(data))
                if not chunk:
                    return None
                data.extend(chunk)
        except (TimeoutError, OSError):
            return None
        return bytes(data)

    @staticmethod
    def _recvline(conn: socket.socket, limit: int = 4096) -> bytes | None:
        data = bytearray()
        try:
            while len(data) < limit:
                byte = conn.recv(1)
                if not byte:
                    return None
                data.extend(byte)
                if len(data) >= 2 and data[-2:] == b"\r\n":
                    return bytes(data[:-2])
        except (TimeoutError, OSError):
            return None
        return None

    @staticmethod
    def _bulk(value: str) -> bytes:
        encoded = value.encode("utf-8")
        return f"${len(encoded)}\r\n".encode("utf-8") + encoded + b"\r\n"

    @staticmethod
    def _integer(value: int) -> bytes:
        return f":{value}\r\n".encode("utf-8")

    @classmethod
    def _array(cls, items: list[str]) -> bytes:
        return f"*{len(items)}\r\n".encode("utf-8") + b"".join(cls._bulk(item) for item in items)


@pytest.fixture
def resp_server() -> Iterator[RespServer]:
    server = RespServer(
        keys={
            "user:1": ("hash", -1),
            "user:2": ("string", 120),
            "queue:jobs": ("list", -1),
            "tags": ("set", 30),
            "scores": ("zset", -1),
        },
        properties={"maxmemory": "0", "timeout": "300", "maxclients": "10000", "requirepass": ""},
        channels={"news": 3, "chat": 1, "alerts": 0},
    )
    server.start()
    try:
        yield server
    finally:
        server.stop()
