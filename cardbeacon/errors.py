# cardbeacon/errors.py
from __future__ import annotations


class FacilityError(RuntimeError):
    """The radio scan facility refused a subscribe/trigger/unsubscribe/read."""


class InvariantViolation(AssertionError):
    """Internal contract broken (programmer error); not recoverable."""
