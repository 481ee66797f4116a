"""
Provider Credential Pools

One immutable pool of API keys per LLM vendor. Pools are loaded once
at startup and shared read-only by every concurrent call.
"""

import random
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class ProviderKeyPool:
    """Ordered credentials for one vendor."""
    provider: str
    keys: Tuple[str, ...] = ()

    def __post_init__(self):
        # Accept any iterable but always store a tuple
        object.__setattr__(self, "keys", tuple(self.keys))

    def __len__(self) -> int:
        return len(self.keys)

    @property
    def is_configured(self) -> bool:
        """At least one credential exists."""
        return bool(self.keys)

    def shuffled(self, rng: Optional[random.Random] = None) -> List[str]:
        """
        Return a randomised copy of the keys for one call.

        The pool itself is never reordered.
        """
        order = list(self.keys)
        (rng or random).shuffle(order)
        return order


def mask_key(key: str) -> str:
    """Loggable prefix of a credential."""
    return f"{key[:8]}..."
