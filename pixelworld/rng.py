"""
Deterministic RNG utilities for pixel world simulation.

Uses SHA256 hashing to derive stable seeds from hierarchical components
(world_seed, round_index, stream_name). All randomness in a run flows
through a single numpy.random.Generator(PCG64) handle so that a fixed
seed and a fixed initial grid reproduce the same tick sequence.
"""

import hashlib
import numpy as np
from typing import Any, Sequence, TypeVar

T = TypeVar('T')


def make_seed(*components: Any) -> int:
    """
    Generate deterministic 64-bit seed from hierarchical components.

    Uses SHA256 to hash components into stable seed value.

    Args:
        *components: Seed components (world_seed, round_index, stream name, etc.)

    Returns:
        64-bit integer seed for numpy RNG

    Example:
        run_seed = make_seed(world_seed, round_index)
        rng = make_rng(make_seed(run_seed, "engine"))
    """
    # Join all components with colon separator
    hash_input = ":".join(str(c) for c in components)

    # SHA256 hash and extract 64-bit integer
    hash_bytes = hashlib.sha256(hash_input.encode('utf-8')).digest()
    seed = int.from_bytes(hash_bytes[:8], byteorder='big')

    return seed


def make_rng(seed: int) -> np.random.Generator:
    """
    Build the generator handle threaded through every stochastic call.

    Args:
        seed: RNG seed (from make_seed())

    Returns:
        numpy Generator backed by PCG64
    """
    return np.random.Generator(np.random.PCG64(seed))


def roll(rng: np.random.Generator, probability: float) -> bool:
    """Draw uniform [0, 1) and report whether it fell below probability."""
    return rng.random() < probability


def random_choice(rng: np.random.Generator, items: Sequence[T]) -> T:
    """
    Pick one element uniformly from a non-empty sequence.

    Indexes with rng.integers instead of rng.choice so that tuples of
    coordinates come back untouched (no numpy array conversion).
    """
    return items[int(rng.integers(len(items)))]


def random_int(rng: np.random.Generator, low: int, high: int) -> int:
    """Uniform integer in the inclusive range [low, high]."""
    return int(rng.integers(low, high, endpoint=True))


def signed_unit(rng: np.random.Generator) -> float:
    """Uniform float in [-1, 1)."""
    return rng.random() * 2.0 - 1.0
