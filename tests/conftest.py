from __future__ import annotations

import os


# Default-config test runs must never reach a real server: port 0 refuses
# every connection immediately.
os.environ.setdefault("KVSCOPE_REDIS_URL", "redis://127.0.0.1:0/0")
os.environ.setdefault("KVSCOPE_EVENT_BUS_URL", "redis://127.0.0.1:0/1")
os.environ.pop("KVSCOPE_CONFIG", None)
