"""Command line entry point.

python -m scansim positions.txt -c config.json -m raster
"""

from __future__ import annotations

import argparse
import sys
from typing import get_args

from pydantic import ValidationError

from scansim import __version__
from scansim._logger import configure_logging, logger
from scansim.errors import ScanSimError
from scansim.schema import ModeName, ScanConfig
from scansim.simulate import run_scan


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="scansim",
        description="Simulate the photon counts of a scanning fluorescence "
        "microscope over a particle trajectory.",
    )
    parser.add_argument("trajectory", help="Trajectory file (positions per step).")
    parser.add_argument(
        "-c", "--config", required=True, help="JSON configuration file."
    )
    parser.add_argument(
        "-m",
        "--mode",
        required=True,
        choices=get_args(ModeName),
        help="Scan mode to simulate.",
    )
    parser.add_argument(
        "-o", "--output-dir", default=None, help="Directory for the output files."
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Seed of the random generator."
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Hide the progress bar."
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging()
    try:
        config = ScanConfig.from_file(args.config)
        if args.seed is not None:
            config.settings.random_seed = args.seed
        if args.no_progress:
            config.settings.show_progress = False
        summary = run_scan(config, args.mode, args.trajectory, args.output_dir)
    except ValidationError as e:
        logger.error(f"Invalid configuration file {args.config}:\n{e}")
        return 1
    except (ScanSimError, OSError) as e:
        logger.error(str(e))
        return 1

    for path in summary.outputs:
        logger.info(f"Wrote {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
