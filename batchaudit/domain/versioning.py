"""
Random version tokens for optimistic concurrency.

Tokens are drawn uniformly from a range close to the signed 64-bit maximum so
they fit a BIGINT column and are not predictable from the previous value.
"""

from __future__ import annotations

import random
from typing import Any, Optional

MAX_VERSION_TOKEN = 9_223_372_036_854_775_806


class VersionTokenGenerator:
    """
    Produce fresh version tokens.

    Not cryptographically secure by requirement, but the default source is
    `random.SystemRandom` so two processes initialising records at the same
    instant do not share a seed. The generator keeps no history: across a
    63-bit range a repeat is only possible by coincidence, and the one repeat
    that would defeat the version guard, redrawing a record's current token,
    is ruled out by passing that token as `current`.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.SystemRandom()

    def next(self, current: Any = None) -> int:
        token = self._rng.randint(0, MAX_VERSION_TOKEN)
        while current is not None and str(token) == str(current):
            token = self._rng.randint(0, MAX_VERSION_TOKEN)
        return token


_default_generator = VersionTokenGenerator()


def next_version() -> int:
    """Draw a token from the process-wide default generator."""
    return _default_generator.next()


__all__ = ["MAX_VERSION_TOKEN", "VersionTokenGenerator", "next_version"]
