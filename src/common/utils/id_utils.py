"""Stock identifier helpers (24 hex characters, ObjectId-style)."""

import os
import re
import time

STOCK_ID_PATTERN = re.compile(r"[0-9a-fA-F]{24}")


def is_valid_stock_id(value: object) -> bool:
    """Checks that a value is a well-formed 24-hex-character identifier."""
    return isinstance(value, str) and STOCK_ID_PATTERN.fullmatch(value) is not None


def generate_stock_id() -> str:
    """Generates a new identifier: 4-byte seconds timestamp followed by 8 random bytes."""
    timestamp = int(time.time()).to_bytes(4, "big")
    return (timestamp + os.urandom(8)).hex()
