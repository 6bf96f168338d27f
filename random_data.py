"""
Random data helpers for seeding demo data and building test fixtures.

The generator is process-wide state: ``init_random`` seeds it once at
process start (application import or test session) and every helper only
reads from it afterwards.
"""

import random
import string
from typing import Optional

from currencies import SUPPORTED_CURRENCIES

_rng = random.Random()


def init_random(seed: Optional[int] = None) -> None:
    """Seed the shared generator. Call once at process start."""
    _rng.seed(seed)


def random_int(min_value: int, max_value: int) -> int:
    """Random integer in [min_value, max_value]."""
    return _rng.randint(min_value, max_value)


def random_string(n: int) -> str:
    return "".join(_rng.choice(string.ascii_lowercase) for _ in range(n))


def random_owner() -> str:
    return random_string(6)


def random_money() -> int:
    return random_int(0, 1000)


def random_currency() -> str:
    return _rng.choice(sorted(SUPPORTED_CURRENCIES))


def random_email() -> str:
    return f"{random_string(6)}@email.com"
