"""Seeded, stateless pseudo-randomness.

Values are pure functions of ``(seed, index)`` so any frame can be re-rendered
without replaying earlier frames. Seeds come from scene content through a
stable digest; Python's ``hash`` is salted per process and is never used.
"""
from __future__ import annotations

import hashlib
import math


def seed_from_text(text: str, *, salt: str = "") -> int:
    """Derive a 32-bit seed from text content."""
    digest = hashlib.blake2b(f"{salt}\x00{text or ''}".encode("utf-8"), digest_size=4).digest()
    return int.from_bytes(digest, "big")


def hash_unit(seed: int, index: float) -> float:
    """Sine-hash of ``(seed, index)`` mapped into ``[0, 1)``."""
    # Keep the sine argument small so float precision does not collapse the hash
    base = (seed % 100_003) * 0.0137
    value = math.sin(base * 12.9898 + float(index) * 78.233) * 43758.5453
    return value - math.floor(value)


def signed_noise(seed: int, index: float) -> float:
    """Like :func:`hash_unit` but in ``[-1, 1)``."""
    return hash_unit(seed, index) * 2.0 - 1.0


def smooth_noise(seed: int, t: float) -> float:
    """Cosine-interpolated value noise in ``[-1, 1]``; continuous in ``t``."""
    left = math.floor(t)
    fraction = t - left
    a = signed_noise(seed, left)
    b = signed_noise(seed, left + 1)
    weight = (1.0 - math.cos(fraction * math.pi)) / 2.0
    return a * (1.0 - weight) + b * weight


def scatter(seed: int, index: int, low: float, high: float) -> float:
    """Deterministic value in ``[low, high)`` for item ``index``."""
    return low + (high - low) * hash_unit(seed, index)
