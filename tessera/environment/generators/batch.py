"""Generate several independent regions from one catalog.

Each region gets its own grid, its own random stream and its own driver, and
only the read-only catalog is shared. That makes regions safe to solve on a
thread pool, and a region's result depends only on its size and seed, never
on how many workers ran or in what order they finished.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from tessera import config
from tessera.environment.directions import Direction
from tessera.environment.prototypes import PrototypeCatalog
from tessera.events import EventBus
from tessera.types import GridSize
from tessera.util.rng import RNGProvider

from .boundary import ALL_OPEN_FACES
from .driver import RunResult, WFCDriver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegionRequest:
    """One region to generate."""

    index: int
    size: GridSize
    seed: int


@dataclass(frozen=True, slots=True)
class RegionResult:
    request: RegionRequest
    result: RunResult
    attempted_seeds: tuple[int, ...]

    @property
    def succeeded(self) -> bool:
        return self.result.succeeded


@dataclass(frozen=True, slots=True)
class RegionBatchStats:
    total: int
    collapsed: int
    failed: int
    total_elapsed_ms: float

    @property
    def mean_elapsed_ms(self) -> float:
        return self.total_elapsed_ms / self.total if self.total else 0.0

    @classmethod
    def from_results(cls, results: Sequence[RegionResult]) -> RegionBatchStats:
        collapsed = sum(1 for r in results if r.succeeded)
        return cls(
            total=len(results),
            collapsed=collapsed,
            failed=len(results) - collapsed,
            total_elapsed_ms=sum(r.result.elapsed_ms for r in results),
        )


def plan_regions(
    count: int = config.DEFAULT_REGION_COUNT,
    base_seed: int = config.RANDOM_SEED,
    min_size: GridSize = config.REGION_MIN_SIZE,
    max_size: GridSize = config.REGION_MAX_SIZE,
    use_random_seeds: bool = True,
) -> list[RegionRequest]:
    """Lay out ``count`` regions with sizes drawn between the two bounds.

    Sizes (and, with ``use_random_seeds``, seeds) come from the base seed's
    region layout stream, so the same base seed always gives the same plan.
    Without random seeds region ``i`` uses ``base_seed + i``.

    Raises:
        ValueError: If ``count`` is negative or a minimum exceeds its maximum.
    """
    if count < 0:
        raise ValueError(f"Region count must be non-negative, got {count}")
    if any(lo > hi for lo, hi in zip(min_size, max_size, strict=True)):
        raise ValueError(f"min_size {min_size} exceeds max_size {max_size}")

    rng = RNGProvider(base_seed).get(config.REGION_RNG_DOMAIN)
    requests: list[RegionRequest] = []
    for index in range(count):
        sx, sy, sz = (
            rng.randint(lo, hi) for lo, hi in zip(min_size, max_size, strict=True)
        )
        seed = rng.randint(0, 2**31 - 1) if use_random_seeds else base_seed + index
        requests.append(RegionRequest(index, (sx, sy, sz), seed))
    return requests


class RegionBatchGenerator:
    """Solves many regions of one catalog, optionally on worker threads."""

    def __init__(
        self,
        catalog: PrototypeCatalog,
        *,
        open_faces: Iterable[Direction] = ALL_OPEN_FACES,
        max_workers: int = config.REGION_MAX_WORKERS,
        max_attempts: int = 1,
        skip_empty: bool = False,
        event_bus: EventBus | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        self.catalog = catalog
        self.open_faces = frozenset(open_faces)
        self.max_workers = max_workers
        self.max_attempts = max_attempts
        self.skip_empty = skip_empty
        self.event_bus = event_bus

    def _generate_one(self, request: RegionRequest) -> RegionResult:
        driver = WFCDriver(
            self.catalog,
            request.size,
            open_faces=self.open_faces,
            skip_empty=self.skip_empty,
            event_bus=self.event_bus,
        )
        result, attempted = driver.run_with_retries(request.seed, self.max_attempts)
        return RegionResult(request, result, tuple(attempted))

    def generate(self, requests: Sequence[RegionRequest]) -> list[RegionResult]:
        """Solve every request. Results are in request order."""
        if self.max_workers == 1 or len(requests) <= 1:
            results = [self._generate_one(r) for r in requests]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(self._generate_one, requests))

        stats = RegionBatchStats.from_results(results)
        logger.info(
            "Generated %d regions: %d collapsed, %d failed, %.1f ms total",
            stats.total,
            stats.collapsed,
            stats.failed,
            stats.total_elapsed_ms,
        )
        return results


def generate_regions(
    catalog: PrototypeCatalog,
    requests: Sequence[RegionRequest],
    *,
    max_workers: int = config.REGION_MAX_WORKERS,
    max_attempts: int = 1,
    open_faces: Iterable[Direction] = ALL_OPEN_FACES,
    skip_empty: bool = False,
) -> list[RegionResult]:
    """Functional form of ``RegionBatchGenerator(...).generate(requests)``."""
    generator = RegionBatchGenerator(
        catalog,
        max_workers=max_workers,
        max_attempts=max_attempts,
        open_faces=open_faces,
        skip_empty=skip_empty,
    )
    return generator.generate(requests)
