import argparse
import logging
import sys

from voxelgen.config import ChunkRegion, WorldConfig
from voxelgen.constants import DEFAULT_CHUNKS_CACHED
from voxelgen.debug.log import setup_logging
from voxelgen.debug.profiler import GenerationProfiler
from voxelgen.errors import ConfigError, PregenerationError
from voxelgen.world.pregen import start_world

logger = logging.getLogger("voxelgen.main")


def _print_progress(done: int, total: int) -> None:
    width = 40
    filled = width * done // total
    bar = "#" * filled + "-" * (width - filled)
    end = "\n" if done == total else "\r"
    print(f"[{bar}] {done}/{total} Pregenerating chunks...", end=end, flush=True)


def build_config(args: argparse.Namespace) -> WorldConfig:
    if args.pregen_start is not None or args.pregen_end is not None:
        if args.pregen_start is None or args.pregen_end is None:
            raise ConfigError("--pregen-start and --pregen-end must be given together")
        region = ChunkRegion(tuple(args.pregen_start), tuple(args.pregen_end))
    else:
        region = ChunkRegion.around((0, 0), args.pregen_radius)
    return WorldConfig(
        seed=args.seed,
        chunks_cached=args.cache_size,
        pregen_start=region.start,
        pregen_end=region.end,
        spawn=tuple(args.spawn) if args.spawn is not None else None,
        workers=args.workers,
    )


def run(config: WorldConfig, profile: bool = False, show_progress: bool = True) -> int:
    profiler = GenerationProfiler(enabled=profile)
    if profile:
        profiler.clear_previous_reports("profiling")
    try:
        world, report, spawn = start_world(config, progress=_print_progress if show_progress else None, profiler=profiler)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    except PregenerationError as exc:
        logger.error("%s", exc)
        return 1

    with world:
        print(f"Seed: {world.seed}")
        print(f"Generated {report.generated} chunks ({report.total} in region) in {report.elapsed_seconds:.2f}s")
        print(f"Spawn: {spawn[0]:.1f} {spawn[1]:.1f} {spawn[2]:.1f}")
        if profile:
            report_paths = profiler.write_report()
            if report_paths is not None:
                txt_path, json_path = report_paths
                print(f"[profiler] wrote generation report: {txt_path}")
                print(f"[profiler] wrote generation report: {json_path}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Voxel terrain chunk generator")
    parser.add_argument("--seed", type=int, default=None, help="World seed (omit for a random seed)")
    parser.add_argument("--cache-size", type=int, default=DEFAULT_CHUNKS_CACHED, help="Number of chunks kept in memory")
    parser.add_argument("--pregen-radius", type=int, default=12, help="Pregenerate a square of this radius around the origin")
    parser.add_argument("--pregen-start", type=int, nargs=2, metavar=("X", "Z"), help="First corner of the pregeneration rectangle")
    parser.add_argument("--pregen-end", type=int, nargs=2, metavar=("X", "Z"), help="Last corner of the pregeneration rectangle")
    parser.add_argument("--spawn", type=float, nargs=3, metavar=("X", "Y", "Z"), help="Explicit spawn position")
    parser.add_argument("--workers", type=int, default=None, help="Chunk worker threads")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("--profile", action="store_true", help="Write a generation timing report to ./profiling")
    args = parser.parse_args()

    setup_logging(args.log_level.upper(), args.log_file)
    try:
        config = build_config(args)
    except ConfigError as exc:
        parser.error(str(exc))
    sys.exit(run(config, profile=args.profile))
