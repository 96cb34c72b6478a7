"""Shared utilities: logging helpers, parallelism, seeds.

Exposed components
------------------
- `logging_config` → module loggers and key=value event lines.
- `parallel` → order-preserving parallel map with bounded submission.
- `seed` → deterministic per-iteration random streams.

Import via ``from medfit.utils import ...`` to keep coupling low.
"""

from .logging_config import get_logger, log_dict
from .parallel import parallel_map, resolve_workers
from .seed import iteration_rng, register_seed_logging, resolve_entropy

__all__ = [
    "get_logger",
    "log_dict",
    "parallel_map",
    "resolve_workers",
    "iteration_rng",
    "register_seed_logging",
    "resolve_entropy",
]
