from .scheduler import EnrichmentScheduler
from .wrappers import with_abort, with_timeout

__all__ = [
    "EnrichmentScheduler",
    "with_abort",
    "with_timeout",
]
