"""Deterministic random streams for bootstrap iterations.

Every iteration owns an independent ``numpy.random.Generator`` derived from
``(entropy, iteration_index)`` through :class:`numpy.random.SeedSequence`.
No global RNG state is read or written, so an iteration produces the same
draws whether it runs first, last, in a thread or in another process.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ..config.constants import MAX_SEED_VALUE
from ..errors import RandomnessError

__all__ = [
    "MAX_SEED_VALUE",
    "resolve_entropy",
    "iteration_rng",
    "register_seed_logging",
]


def resolve_entropy(seed: Optional[int] = None) -> int:
    """Return the root entropy for a run.

    With an explicit ``seed`` the entropy is the seed itself. Without one,
    fresh entropy is pulled from the operating system: the run is then not
    reproducible unless the returned value is fed back as the seed.
    """
    if seed is None:
        return int(np.random.SeedSequence().entropy)
    if seed < 0:
        raise RandomnessError(f"seed must be non-negative, got {seed}")
    return int(seed)


def iteration_rng(entropy: int, index: int) -> np.random.Generator:
    """Return the generator owned by iteration ``index`` of a run seeded with ``entropy``.

    Raises
    ------
    RandomnessError
        If the sub-stream cannot be derived (negative or non-integer inputs).
    """
    try:
        sequence = np.random.SeedSequence(entropy, spawn_key=(int(index),))
        return np.random.Generator(np.random.PCG64(sequence))
    except (TypeError, ValueError) as exc:
        raise RandomnessError(
            f"Cannot derive random stream for iteration {index} from entropy {entropy!r}"
        ) from exc


def register_seed_logging(logger: logging.Logger, seed: Optional[int], entropy: int) -> None:
    """Log the seed in use for audit and reproducibility."""
    if seed is None:
        logger.warning(
            "No seed supplied; run is not reproducible (entropy=%d)", entropy
        )
    else:
        logger.info("Run using seed: %d", seed)
