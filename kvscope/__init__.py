"""kvscope: introspection and bulk-scan engine for Redis-protocol servers."""

__version__ = "0.1.0"
