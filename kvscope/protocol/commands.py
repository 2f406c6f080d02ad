"""Command values and pure builders for the driver's protocol commands."""

from __future__ import annotations

from dataclasses import dataclass


LOG_USER = "user"
LOG_INTERNAL = "internal"
VALID_LOGGING_TYPES = {LOG_USER, LOG_INTERNAL}

_ESCAPES_OUT = {
    ord("\\"): b"\\\\",
    ord('"'): b'\\"',
    ord("\n"): b"\\n",
    ord("\r"): b"\\r",
    ord("\t"): b"\\t",
    ord("\a"): b"\\a",
    ord("\b"): b"\\b",
}
_ESCAPES_IN = {
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
    ord("b"): b"\b",
    ord("a"): b"\a",
}
_WHITESPACE = b" \t\n\r\v\f"
_HEX_DIGITS = b"0123456789abcdefABCDEF"
_SECRET_PROPERTIES = {b"requirepass", b"masterauth"}
REDACTED = "***"


Arg = str | bytes | int


@dataclass(frozen=True, slots=True)
class Command:
    args: tuple[bytes, ...]
    logging_type: str = LOG_INTERNAL

    def __post_init__(self) -> None:
        if not self.args:
            raise ValueError("command must have at least one argument")
        if self.logging_type not in VALID_LOGGING_TYPES:
            raise ValueError(f"invalid command logging type '{self.logging_type}'")

    @property
    def name(self) -> str:
        return self.args[0].decode("utf-8", errors="replace").upper()

    @property
    def user_visible(self) -> bool:
        return self.logging_type == LOG_USER

    @property
    def command_line(self) -> str:
        return " ".join(quote_arg(arg) for arg in self.args)

    @property
    def log_line(self) -> str:
        """``command_line`` with password arguments masked."""
        hidden = _secret_positions(self.args)
        return " ".join(REDACTED if index in hidden else quote_arg(arg) for index, arg in enumerate(self.args))

    def __str__(self) -> str:
        return self.log_line


def _secret_positions(args: tuple[bytes, ...]) -> set[int]:
    name = args[0].upper()
    if name == b"AUTH":
        return set(range(1, len(args)))
    if name == b"HELLO":
        for index, arg in enumerate(args):
            if arg.upper() == b"AUTH" and index + 2 < len(args):
                return {index + 2}
        return set()
    if name == b"CONFIG" and len(args) > 3 and args[1].upper() == b"SET":
        return {index + 1 for index in range(2, len(args) - 1, 2) if args[index].lower() in _SECRET_PROPERTIES}
    return set()


def _to_bytes(value: Arg) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, bool):
        raise TypeError("boolean is not a valid command argument")
    if isinstance(value, int):
        return str(value).encode("ascii")
    return value.encode("utf-8")


def make_command(*parts: Arg, logging_type: str = LOG_INTERNAL) -> Command:
    return Command(tuple(_to_bytes(part) for part in parts), logging_type)


def _needs_quotes(arg: bytes) -> bool:
    if not arg:
        return True
    for byte in arg:
        if byte in _WHITESPACE or byte in (ord('"'), ord("'"), ord("\\")):
            return True
        if byte < 0x20 or byte >= 0x7F:
            return True
    return False


def quote_arg(arg: bytes) -> str:
    """Render one argument the way redis-cli expects it on a command line."""
    if not _needs_quotes(arg):
        return arg.decode("ascii")
    out = bytearray(b'"')
    for byte in arg:
        escaped = _ESCAPES_OUT.get(byte)
        if escaped is not None:
            out += escaped
        elif 0x20 <= byte < 0x7F:
            out.append(byte)
        else:
            out += b"\\x%02x" % byte
    out += b'"'
    return out.decode("ascii")


def split_command_line(text: str | bytes) -> list[bytes]:
    """Split a redis-cli style command line into arguments.

    Raises ValueError on unbalanced quotes or a closing quote that is not
    followed by whitespace.
    """
    data = _to_bytes(text)
    args: list[bytes] = []
    index = 0
    length = len(data)
    while True:
        while index < length and data[index] in _WHITESPACE:
            index += 1
        if index >= length:
            return args
        current = bytearray()
        in_double = False
        in_single = False
        while True:
            if in_double:
                if index >= length:
                    raise ValueError("unbalanced double quotes in command line")
                byte = data[index]
                if (
                    byte == ord("\\")
                    and index + 3 < length
                    and data[index + 1] == ord("x")
                    and data[index + 2] in _HEX_DIGITS
                    and data[index + 3] in _HEX_DIGITS
                ):
                    current.append(int(data[index + 2 : index + 4], 16))
                    index += 3
                elif byte == ord("\\") and index + 1 < length:
                    index += 1
                    current += _ESCAPES_IN.get(data[index], bytes([data[index]]))
                elif byte == ord('"'):
                    if index + 1 < length and data[index + 1] not in _WHITESPACE:
                        raise ValueError("closing quote must be followed by a space")
                    index += 1
                    break
                else:
                    current.append(byte)
            elif in_single:
                if index >= length:
                    raise ValueError("unbalanced single quotes in command line")
                byte = data[index]
                if byte == ord("\\") and index + 1 < length and data[index + 1] == ord("'"):
                    index += 1
                    current.append(ord("'"))
                elif byte == ord("'"):
                    if index + 1 < length and data[index + 1] not in _WHITESPACE:
                        raise ValueError("closing quote must be followed by a space")
                    index += 1
                    break
                else:
                    current.append(byte)
            else:
                if index >= length or data[index] in _WHITESPACE:
                    break
                byte = data[index]
                if byte == ord('"'):
                    in_double = True
                elif byte == ord("'"):
                    in_single = True
                else:
                    current.append(byte)
            index += 1
        args.append(bytes(current))


def from_text(text: str | bytes, logging_type: str = LOG_USER) -> Command:
    args = split_command_line(text)
    if not args:
        raise ValueError("empty command")
    return Command(tuple(args), logging_type)


def _require_name(value: Arg, what: str) -> bytes:
    encoded = _to_bytes(value)
    if not encoded:
        raise ValueError(f"{what} must not be empty")
    return encoded


def scan(cursor: int, pattern: Arg = "*", count: int | None = None) -> Command:
    if cursor < 0:
        raise ValueError("scan cursor must not be negative")
    parts: list[Arg] = ["SCAN", cursor]
    if pattern:
        parts.extend(["MATCH", pattern])
    if count is not None:
        if count <= 0:
            raise ValueError("scan count must be greater than zero")
        parts.extend(["COUNT", count])
    return make_command(*parts)


def key_type(key: Arg) -> Command:
    return make_command("TYPE", _require_name(key, "key name"))


def key_ttl(key: Arg) -> Command:
    return make_command("TTL", _require_name(key, "key name"))


def db_size() -> Command:
    return make_command("DBSIZE")


def config_get(pattern: Arg = "*") -> Command:
    return make_command("CONFIG", "GET", _require_name(pattern, "config pattern"))


def config_set(name: Arg, value: Arg) -> Command:
    return make_command("CONFIG", "SET", _require_name(name, "property name"), value)


def set_password(password: Arg) -> Command:
    return config_set("requirepass", password)


def set_max_connections(max_connections: int) -> Command:
    if max_connections <= 0:
        raise ValueError("max connections must be greater than zero")
    return config_set("maxclients", max_connections)


def pubsub_channels(pattern: Arg = "") -> Command:
    if pattern:
        return make_command("PUBSUB", "CHANNELS", pattern)
    return make_command("PUBSUB", "CHANNELS")


def pubsub_numsub(channel: Arg) -> Command:
    return make_command("PUBSUB", "NUMSUB", _require_name(channel, "channel name"))


def save() -> Command:
    return make_command("SAVE")


def select(db: Arg) -> Command:
    return make_command("SELECT", _require_name(db, "database name"))
