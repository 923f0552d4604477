"""Deterministic random number generation with isolated streams.

Every generation run owns an ``RNGProvider`` built from the run's seed. Each
consumer inside the run (cell selection and collapse, region layout, ...)
asks the provider for its own named stream, derived from the master seed.
This ensures that:

1. A run is fully reproducible from its seed
2. Consuming more numbers in one stream never shifts another stream
3. Independent runs never share generator state, so they can run on
   separate threads

Usage:
    provider = RNGProvider(seed)
    collapse_rng = provider.get("wfc.collapse")
    cell = collapse_rng.choice(candidates)

Domain naming convention (hierarchical):
    - "wfc.collapse"    selection tie-breaks and weighted collapse draws
    - "regions.layout"  region sizes and seeds in batch generation
"""

from __future__ import annotations

import zlib
from collections.abc import Sequence
from random import Random
from typing import TypeAlias, TypeVar

from tessera.types import RandomSeed

T = TypeVar("T")


def derive_seed(master_seed: RandomSeed, domain: str) -> int:
    """Derive a stable 32-bit seed for ``domain`` from ``master_seed``.

    Uses crc32 rather than hash(): hash() is randomized per Python session
    via PYTHONHASHSEED, which would break cross-session determinism.
    """
    return zlib.crc32(f"{master_seed}:{domain}".encode())


class RNGStream:
    """Proxy that delegates to the provider's current RNG for a domain.

    Callers may keep a reference across ``RNGProvider.reset()``; the
    underlying Random instance is looked up fresh on every call.
    """

    def __init__(self, provider: RNGProvider, domain: str) -> None:
        self._provider = provider
        self._domain = domain

    @property
    def domain(self) -> str:
        return self._domain

    def _rng(self) -> Random:
        return self._provider._get_raw(self._domain)

    def random(self) -> float:
        """Return random float in [0.0, 1.0)."""
        return self._rng().random()

    def randint(self, a: int, b: int) -> int:
        """Return random integer N such that a <= N <= b."""
        return self._rng().randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        """Return random element from non-empty sequence."""
        return self._rng().choice(seq)

    def choices(
        self,
        population: Sequence[T],
        weights: Sequence[float] | None = None,
        *,
        cum_weights: Sequence[float] | None = None,
        k: int = 1,
    ) -> list[T]:
        """Return k-sized list of elements chosen with replacement."""
        return self._rng().choices(
            population, weights=weights, cum_weights=cum_weights, k=k
        )

    def getrandbits(self, k: int) -> int:
        """Return an integer with k random bits."""
        return self._rng().getrandbits(k)


# Type alias for functions that accept either Random or RNGStream.
# Use this in type hints: `def foo(rng: RNG) -> int:`
RNG: TypeAlias = Random | RNGStream


class RNGProvider:
    """Provides isolated RNG streams for one generation run.

    Each domain gets its own Random instance derived deterministically
    from the master seed. A ``None`` seed gives non-deterministic streams.
    """

    def __init__(self, master_seed: RandomSeed = None) -> None:
        self._master_seed = master_seed
        self._streams: dict[str, Random] = {}
        self._proxies: dict[str, RNGStream] = {}

    @property
    def master_seed(self) -> RandomSeed:
        return self._master_seed

    def get(self, domain: str) -> RNGStream:
        """Get an RNG stream for the named domain.

        Args:
            domain: Hierarchical name like "wfc.collapse".

        Returns:
            An RNGStream proxy with the subset of the Random interface
            the solver uses.
        """
        if domain not in self._proxies:
            self._proxies[domain] = RNGStream(self, domain)
        return self._proxies[domain]

    def _get_raw(self, domain: str) -> Random:
        if domain not in self._streams:
            if self._master_seed is None:
                self._streams[domain] = Random()
            else:
                self._streams[domain] = Random(
                    derive_seed(self._master_seed, domain)
                )
        return self._streams[domain]

    def reset(self, master_seed: RandomSeed = None) -> None:
        """Restart all streams from a new master seed.

        Existing RNGStream proxies remain valid and will use the new streams.
        """
        self._master_seed = master_seed
        self._streams.clear()
