"""Shared helpers for ledger commands."""

import math
import uuid
from numbers import Real


def new_id(prefix: str) -> str:
    """Generate a unique entity ID such as ``pos_3f9c0a1b2d4e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def is_positive_number(value) -> bool:
    """Check that a value is a finite number greater than zero."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value) and value > 0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))
