"""Command line entry point: solve one seed or a batch of regions.

Examples:
    python -m tessera prototype_data.json --seed 9 --size 8 3 8
    python -m tessera --sample --preset large --retries 10 --format json
    python -m tessera --sample --regions 10 --workers 4
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from . import config
from .environment.errors import DataFormatError
from .environment.generators import (
    ALL_OPEN_FACES,
    GROUNDED_OPEN_FACES,
    RegionBatchGenerator,
    RegionBatchStats,
    RunResult,
    WFCDriver,
    plan_regions,
)
from .environment.prototypes import (
    PrototypeCatalog,
    load_catalog,
    read_records,
    remap_rotations,
)
from .environment.tilesets import island_tileset

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_DATA_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tessera", description="Seeded 3D Wave Function Collapse tile solver"
    )
    parser.add_argument(
        "prototypes",
        nargs="?",
        type=Path,
        help="Prototype JSON file keyed by prototype id",
    )
    parser.add_argument(
        "--sample",
        action="store_true",
        help="Use the built-in island tileset instead of a file",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=config.RANDOM_SEED,
        help=f"Run seed (default: {config.RANDOM_SEED})",
    )
    size_group = parser.add_mutually_exclusive_group()
    size_group.add_argument(
        "--size",
        type=int,
        nargs=3,
        metavar=("X", "Y", "Z"),
        help="Grid size; Y is the number of layers",
    )
    size_group.add_argument(
        "--preset",
        choices=sorted(config.GRID_SIZE_PRESETS),
        help="Named grid size",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=1,
        help="Try this many consecutive seeds until one collapses (default: 1)",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        help="Stop after this many collapses",
    )
    parser.add_argument(
        "--grounded",
        action="store_true",
        help="Do not require void compatibility on the bottom face",
    )
    parser.add_argument(
        "--remap-rotations",
        action="store_true",
        help="Convert mesh_rotation from the authoring tool's convention",
    )
    parser.add_argument(
        "--strict-symmetry",
        action="store_true",
        help="Reject prototype data with unmirrored neighbour relations",
    )
    parser.add_argument(
        "--format",
        choices=("summary", "json", "snapshot"),
        default="summary",
        help="Output format (default: summary)",
    )
    parser.add_argument(
        "--skip-empty",
        action="store_true",
        help="Leave empty-prototype cells out of the placements",
    )
    parser.add_argument(
        "--spacing",
        type=float,
        default=config.DEFAULT_SPACING,
        help=f"World distance between cells (default: {config.DEFAULT_SPACING})",
    )
    parser.add_argument(
        "--regions",
        type=int,
        help="Generate this many independent regions instead of one grid",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=config.REGION_MAX_WORKERS,
        help="Worker threads for region generation",
    )
    parser.add_argument(
        "--log-level",
        default=config.LOG_LEVEL,
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help=f"Logging level (default: {config.LOG_LEVEL})",
    )
    return parser


def _source_name(args: argparse.Namespace) -> str:
    return "the sample tileset" if args.sample else str(args.prototypes)


def _load(args: argparse.Namespace) -> PrototypeCatalog:
    source = island_tileset() if args.sample else args.prototypes
    if args.remap_rotations:
        source = remap_rotations(read_records(source))
    return load_catalog(source, strict_symmetry=args.strict_symmetry)


def _print_result(result: RunResult, args: argparse.Namespace) -> None:
    match args.format:
        case "summary":
            print(f"seed:      {result.seed}")
            print(f"size:      {'x'.join(str(n) for n in result.size)}")
            print(f"outcome:   {result.outcome.name.lower()}")
            print(f"steps:     {result.steps}")
            print(f"placed:    {len(result.projection.placements)}")
            print(f"elapsed:   {result.elapsed_ms:.1f} ms")
            if result.contradiction is not None:
                print(f"failed at: {result.contradiction.position}")
        case "json":
            payload = result.snapshot()
            payload.pop("cells", None)
            payload["placements"] = [
                p.to_dict(args.spacing) for p in result.projection.placements
            ]
            print(json.dumps(payload, indent=2))
        case "snapshot":
            print(json.dumps(result.snapshot(), indent=2))


def _run_single(catalog: PrototypeCatalog, args: argparse.Namespace) -> int:
    if args.size is not None:
        size = tuple(args.size)
    elif args.preset is not None:
        size = config.GRID_SIZE_PRESETS[args.preset]
    else:
        size = config.DEFAULT_GRID_SIZE

    driver = WFCDriver(
        catalog,
        size,
        open_faces=GROUNDED_OPEN_FACES if args.grounded else ALL_OPEN_FACES,
        max_steps=args.max_steps,
        skip_empty=args.skip_empty,
    )
    result, attempted = driver.run_with_retries(args.seed, args.retries)
    if len(attempted) > 1:
        logger.info("Tried seeds %s", ", ".join(str(s) for s in attempted))

    _print_result(result, args)
    return EXIT_OK if result.succeeded else EXIT_FAILED


def _run_regions(catalog: PrototypeCatalog, args: argparse.Namespace) -> int:
    requests = plan_regions(args.regions, base_seed=args.seed)
    generator = RegionBatchGenerator(
        catalog,
        open_faces=GROUNDED_OPEN_FACES if args.grounded else ALL_OPEN_FACES,
        max_workers=args.workers,
        max_attempts=args.retries,
        skip_empty=args.skip_empty,
    )
    results = generator.generate(requests)

    if args.format == "summary":
        for region in results:
            size = "x".join(str(n) for n in region.request.size)
            print(
                f"region {region.request.index:>3}: {size:>9} "
                f"seed {region.result.seed:>10} "
                f"{region.result.outcome.name.lower():>13} "
                f"{region.result.elapsed_ms:8.1f} ms"
            )
        stats = RegionBatchStats.from_results(results)
        print(
            f"{stats.collapsed}/{stats.total} collapsed, "
            f"mean {stats.mean_elapsed_ms:.1f} ms"
        )
    else:
        payload = [
            {
                "index": region.request.index,
                "attempted_seeds": list(region.attempted_seeds),
                **region.result.snapshot(),
            }
            for region in results
        ]
        print(json.dumps(payload, indent=2))

    return EXIT_OK if all(r.succeeded for r in results) else EXIT_FAILED


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.sample and args.prototypes is None:
        parser.error("a prototype file or --sample is required")
    if args.retries < 1:
        parser.error("--retries must be at least 1")
    if args.size is not None and min(args.size) < 1:
        parser.error("--size values must be positive")
    if args.max_steps is not None and args.max_steps < 0:
        parser.error("--max-steps must be non-negative")
    if args.regions is not None and args.regions < 1:
        parser.error("--regions must be at least 1")
    if args.workers < 1:
        parser.error("--workers must be at least 1")

    logging.basicConfig(
        level=args.log_level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        catalog = _load(args)
    except DataFormatError as exc:
        logger.error("Invalid prototype data in %s: %s", _source_name(args), exc)
        return EXIT_DATA_ERROR
    except OSError as exc:
        logger.error("Cannot read prototype data: %s", exc)
        return EXIT_DATA_ERROR

    if args.regions is not None:
        return _run_regions(catalog, args)
    return _run_single(catalog, args)


if __name__ == "__main__":
    sys.exit(main())
