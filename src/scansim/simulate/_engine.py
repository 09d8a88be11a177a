from __future__ import annotations

from contextlib import ExitStack
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple

from tqdm import tqdm

from scansim._logger import logger, logging_indented

from ._channels import ChannelFilter
from ._drivers import DRIVERS, ScanContext
from ._trajectory import Position, TrajectoryReader

if TYPE_CHECKING:
    from collections.abc import Mapping

    import numpy as np

    from scansim.schema import ModeName, ScanConfig


class ScanSummary(NamedTuple):
    """What a completed run consumed and produced."""

    mode: str
    n_positions: int
    n_steps: int
    outputs: list[Path]


def _sink_paths(sinks: Mapping[Any, Any]) -> list[Path]:
    paths = []
    for sink in sinks.values():
        for s in sink if isinstance(sink, list) else [sink]:
            paths.append(s.path)
    return paths


def run_scan(
    config: ScanConfig,
    mode: ModeName,
    trajectory: str | Path,
    output_dir: str | Path | None = None,
    rng: np.random.Generator | None = None,
) -> ScanSummary:
    """Simulate one acquisition of `mode` over a trajectory file.

    The trajectory is consumed in a single pass; every completed sample, scanline
    or frame is written as soon as its step boundary is read.

    Parameters
    ----------
    config : ScanConfig
        Validated configuration; must contain the block for `mode`.
    mode : str
        One of ``point, multi, line, raster, stack, orbit, spim``.
    trajectory : str | Path
        Path of the trajectory file.
    output_dir : str | Path, optional
        Directory for relative output names.  Defaults to the current directory.
    rng : np.random.Generator, optional
        Generator for every stochastic draw.  Defaults to one seeded from
        ``config.settings.random_seed``.

    Returns
    -------
    ScanSummary
        Counts of consumed events and the paths of the files written.

    Raises
    ------
    MissingConfigurationError
        If the configuration has no block for `mode`.
    ParameterValidationError
        If the trajectory time step is too coarse for the PSF, or too coarse for
        the orbit period or camera frame time.  No output file is created in that
        case.
    TrajectoryParseError
        If a record of the trajectory is malformed.
    """
    scan = config.mode(mode)
    driver_cls = DRIVERS[mode]
    if rng is None:
        rng = config.settings.rng()
    out = Path.cwd() if output_dir is None else Path(output_dir)

    n_positions = n_steps = 0
    with ExitStack() as stack:
        reader = stack.enter_context(TrajectoryReader(trajectory))
        header = reader.header
        config.common.check_time_step(header.time_step, header.max_diffusion)

        channels = ChannelFilter(config.common)
        ctx = ScanContext.create(config.common, header, channels, rng)
        driver_cls.check_parameters(scan, ctx)
        out.mkdir(parents=True, exist_ok=True)
        sinks = driver_cls.open_sinks(scan, ctx, out, stack)
        driver = driver_cls(scan, ctx, sinks)  # type: ignore[call-arg]

        logger.info(f"Scan mode: {mode}")
        with logging_indented():
            logger.info(f"Simulation time step: {header.time_step:g} s")
            logger.info(
                f"Maximum diffusion coefficient: {header.max_diffusion:g} cm^2/s"
            )
            logger.info(f"Random seed: {config.settings.random_seed}")
            driver.log_parameters()

        pbar = stack.enter_context(
            tqdm(unit="step", disable=not config.settings.show_progress)
        )
        for event in reader:
            if isinstance(event, Position):
                driver.on_position(event)
                n_positions += 1
                continue
            driver.on_step(event)
            n_steps += 1
            if pbar.total is None and event.total > 0:
                pbar.total = int(event.total)
            pbar.update()
            if driver.finished:
                logger.info(f"Scan complete after {n_steps} steps")
                break
        driver.finish()

        outputs = _sink_paths(sinks)

    logger.info(f"Processed {n_positions} positions over {n_steps} steps")
    return ScanSummary(mode, n_positions, n_steps, outputs)
