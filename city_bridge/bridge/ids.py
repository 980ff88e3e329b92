"""Identifier and clock helpers shared by the mailboxes."""

import time
from uuid import uuid4


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_id(prefix: str) -> str:
    return f"{prefix}_{now_ms()}_{uuid4().hex[:6]}"
