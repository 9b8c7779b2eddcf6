"""
rng.py
------

Random number utilities for psystair.

All randomness in a run (trial shuffling, staircase selection, simulated
observers) is drawn from a single RandomSequenceProvider owned by the
handler that needs it. The provider wraps a JAX PRNG key and splits it on
every draw, so the values it returns are a pure function of the seed and
of the order of the calls.

Examples
--------
>>> from psystair.utils.rng import RandomSequenceProvider
>>> rng = RandomSequenceProvider(42)
>>> rng.shuffle([0, 1, 2, 3])  # doctest: +SKIP
[2, 0, 3, 1]
>>> rng.choice(["A", "B"])  # doctest: +SKIP
'B'
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import MutableSequence, Sequence
from typing import Any, TypeVar

import jax
import jax.random as jr

T = TypeVar("T")

# keeps seeds inside int32 so jr.PRNGKey accepts them with x64 disabled
_SEED_MODULUS = 2**31


def seed(seed_value: int) -> jax.Array:
    """
    Create a new PRNG key from an integer seed.

    Parameters
    ----------
    seed_value : int
        Seed for random number generation.

    Returns
    -------
    jax.Array
        New PRNG key.
    """
    return jr.PRNGKey(seed_value)


def split(key: jax.Array, num: int = 2):
    """
    Split a PRNG key into multiple independent keys.

    Parameters
    ----------
    key : jax.Array
        RNG key to split.
    num : int, default=2
        Number of new keys to return.

    Returns
    -------
    jax.Array
        Stacked independent PRNG keys (unpackable as a tuple).
    """
    return jr.split(key, num=num)


def entropy_seed() -> int:
    """Draw a fresh integer seed from system entropy."""
    return secrets.randbits(31)


def normalize_seed(seed_value: int | str) -> int:
    """
    Map an int or str seed onto the range accepted by jr.PRNGKey.

    Strings are hashed with SHA-256 so that e.g. a participant ID can be
    used directly as a reproducible seed.
    """
    if isinstance(seed_value, bool):
        raise ValueError("seed must be an int or a str, got a bool")
    if isinstance(seed_value, str):
        digest = hashlib.sha256(seed_value.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % _SEED_MODULUS
    if isinstance(seed_value, int):
        return abs(seed_value) % _SEED_MODULUS
    raise ValueError(f"seed must be an int or a str, got {type(seed_value).__name__}")


class RandomSequenceProvider:
    """
    Deterministic source of random draws for shuffling and selection.

    Parameters
    ----------
    seed_value : int | str | None
        Seed of the generator. None draws one from system entropy; the
        seed actually used is kept on ``seed_value`` so a run can be replayed.
    key : jax.Array, optional
        Start from an existing PRNG key instead of a seed.

    Notes
    -----
    The provider is stateful: each draw consumes a subkey. Two providers
    built from the same seed produce identical sequences as long as the
    same methods are called in the same order.
    """

    def __init__(self, seed_value: int | str | None = None, *, key: jax.Array | None = None):
        if key is None:
            if seed_value is None:
                seed_value = entropy_seed()
            key = seed(normalize_seed(seed_value))
        self.seed_value = seed_value
        self._key = key

    def key(self) -> jax.Array:
        """Return a fresh subkey and advance the internal state."""
        self._key, subkey = split(self._key)
        return subkey

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return float(jr.uniform(self.key()))

    def randint(self, n: int) -> int:
        """Uniform integer in [0, n)."""
        if n <= 0:
            raise ValueError(f"n must be positive, got {n}")
        return int(jr.randint(self.key(), (), 0, n))

    def shuffle(self, items: MutableSequence[T]) -> MutableSequence[T]:
        """
        Shuffle ``items`` in place (Fisher–Yates) and return it.

        Every permutation is equally likely given the generator state.
        """
        for i in range(len(items) - 1, 0, -1):
            j = self.randint(i + 1)
            items[i], items[j] = items[j], items[i]
        return items

    def choice(self, items: Sequence[T]) -> T:
        """Return one element of ``items`` chosen uniformly at random."""
        if len(items) == 0:
            raise ValueError("cannot choose from an empty sequence")
        return items[self.randint(len(items))]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(seed_value={self.seed_value!r})"


def as_provider(rng: Any = None, seed_value: int | str | None = None) -> RandomSequenceProvider:
    """Return ``rng`` if given, otherwise a new provider seeded with ``seed_value``."""
    if rng is None:
        return RandomSequenceProvider(seed_value)
    if not isinstance(rng, RandomSequenceProvider):
        raise TypeError(f"rng must be a RandomSequenceProvider, got {type(rng).__name__}")
    return rng
