"""Protocol values: replies, commands and reply decoders."""

from . import commands
from .commands import Command, LOG_INTERNAL, LOG_USER, from_text, quote_arg, split_command_line
from .normalize import (
    KEY_TYPES,
    ScanPage,
    decode_numeric,
    decode_numsub,
    decode_property_list,
    decode_scan,
    decode_string_list,
    decode_ttl,
    decode_type,
)
from .reply import ReplyValue, from_raw, to_python

__all__ = [
    "Command",
    "KEY_TYPES",
    "LOG_INTERNAL",
    "LOG_USER",
    "ReplyValue",
    "ScanPage",
    "commands",
    "decode_numeric",
    "decode_numsub",
    "decode_property_list",
    "decode_scan",
    "decode_string_list",
    "decode_ttl",
    "decode_type",
    "from_raw",
    "from_text",
    "quote_arg",
    "split_command_line",
    "to_python",
]
