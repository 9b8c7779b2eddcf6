"""
utils
=====

Shared utility functions and helpers for psystair.

This subpackage provides:
- errors : structured exceptions (origin / context / error) and enum coercion.
- rng : JAX-backed random number handling for reproducible runs.
"""

from .errors import (
    ConditionsError,
    ConfigurationError,
    InvalidResponseError,
    PsyStairError,
    coerce_option,
)
from .rng import RandomSequenceProvider, as_provider, normalize_seed, seed, split

__all__ = [
    # errors
    "PsyStairError",
    "ConfigurationError",
    "ConditionsError",
    "InvalidResponseError",
    "coerce_option",
    # rng
    "RandomSequenceProvider",
    "as_provider",
    "normalize_seed",
    "seed",
    "split",
]
