"""Scan geometry drivers.

A driver owns the scan cursor of one acquisition mode.  Between two step boundaries
it supplies the reference point(s) against which every molecule position is
evaluated; at each step boundary it decides whether the current unit (sample,
pixel, line, frame or slice) is complete, flushes it to the sinks and advances the
cursor.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, NamedTuple

import numpy as np

from scansim._logger import logger
from scansim.errors import ParameterValidationError
from scansim.schema import ChannelId
from scansim.util import centered_coords, orbit_coords

from ._accumulate import MAX_GRAY, PhotonAccumulator, ScanlineBuffer
from ._psf import axial_psf, detect_photons, gaussian_psf
from ._sinks import CarpetSink, FrameSink, TextSink, write_index

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from contextlib import ExitStack

    import numpy.typing as npt

    from scansim.schema import (
        CommonParameters,
        LineScan,
        MultiPointScan,
        OrbitScan,
        PointScan,
        RasterScan,
        SpimScan,
        StackScan,
    )

    from ._channels import ChannelFilter
    from ._sinks import ImageSink, ScalarSink
    from ._trajectory import Position, StepBoundary, TrajectoryHeader


class ScanContext(NamedTuple):
    """Run-wide quantities shared by every driver."""

    time_step: float
    n_events: int
    w_xy: float
    w_z: float
    noise: bool
    channels: ChannelFilter
    rng: np.random.Generator

    @classmethod
    def create(
        cls,
        common: CommonParameters,
        header: TrajectoryHeader,
        channels: ChannelFilter,
        rng: np.random.Generator,
    ) -> ScanContext:
        return cls(
            time_step=header.time_step,
            n_events=common.sub_events(header.time_step),
            w_xy=common.w_xy,
            w_z=common.w_z,
            noise=common.noise,
            channels=channels,
            rng=rng,
        )


class ScanDriver(ABC):
    mode: ClassVar[str]

    def __init__(
        self,
        ctx: ScanContext,
        n_points: int = 1,
        channels: Sequence[ChannelId] | None = None,
    ) -> None:
        self.ctx = ctx
        if channels is None:
            channels = ctx.channels.channels
        self.accumulator = PhotonAccumulator(
            channels, n_points, noise=ctx.noise, rng=ctx.rng
        )
        self.finished = False

    @classmethod
    def check_parameters(cls, scan: Any, ctx: ScanContext) -> None:
        """Raise `ParameterValidationError` if `scan` cannot run at this time step.

        Called before any output file is created.
        """

    @classmethod
    @abstractmethod
    def open_sinks(
        cls, scan: Any, ctx: ScanContext, output_dir: Path, stack: ExitStack
    ) -> Mapping[ChannelId, Any]:
        """Create the output files of every enabled channel.

        Sinks are registered on `stack` so they are closed however the run ends.
        """

    @abstractmethod
    def reference_points(self) -> npt.NDArray[np.float64]:
        """(N, 3) PSF centers for the current cursor position."""

    @abstractmethod
    def on_step(self, event: StepBoundary) -> None:
        """Handle the end of a simulation step."""

    def on_position(self, event: Position) -> None:
        """Sample photons from one molecule position into the current unit."""
        g = None
        for cid, q in self.ctx.channels.matches(event.molecule):
            if g is None:
                g = gaussian_psf(
                    (event.x, event.y, event.z),
                    self.reference_points(),
                    self.ctx.w_xy,
                    self.ctx.w_z,
                )
            photons = detect_photons(g, self.ctx.n_events, q, self.ctx.rng)
            self.accumulator.add(cid, photons)

    def finish(self) -> None:
        """Called once the input is exhausted or the scan is finished."""

    def log_parameters(self) -> None:
        logger.info(f"Waist in XY plane (w_xy): {self.ctx.w_xy:g} um")
        logger.info(f"Waist in Z plane (w_z): {self.ctx.w_z:g} um")
        logger.info(f"Sub-events per step: {self.ctx.n_events}")


def _out_path(output_dir: Path, stem: str, suffix: str) -> Path:
    # absolute stems ignore output_dir
    return Path(output_dir, stem + suffix)


# ---------------------------------------------------------------- point / multi


class PointDriver(ScanDriver):
    """Fixed observation volume, one sample per simulation step."""

    mode = "point"

    def __init__(
        self,
        scan: PointScan,
        ctx: ScanContext,
        sinks: Mapping[ChannelId, ScalarSink],
    ) -> None:
        super().__init__(ctx)
        self.scan = scan
        self.sinks = sinks
        self._center = np.array([[scan.center_x, scan.center_y, scan.center_z]])

    @classmethod
    def open_sinks(
        cls, scan: PointScan, ctx: ScanContext, output_dir: Path, stack: ExitStack
    ) -> dict[ChannelId, TextSink]:
        return {
            cid: stack.enter_context(
                TextSink(_out_path(output_dir, scan.prefix, f"{cid.suffix}.txt"))
            )
            for cid in ctx.channels.channels
        }

    def reference_points(self) -> npt.NDArray[np.float64]:
        return self._center

    def on_step(self, event: StepBoundary) -> None:
        for cid, sink in self.sinks.items():
            sink.append_scalar(int(self.accumulator.flush(cid)[0]))

    def log_parameters(self) -> None:
        super().log_parameters()
        s = self.scan
        logger.info(
            f"Center of PSF [X Y Z]: [{s.center_x:.2f} {s.center_y:.2f} "
            f"{s.center_z:.2f}] um"
        )


class MultiPointDriver(ScanDriver):
    """Grid of independent observation volumes, each with its own output file.

    Volumes are numbered x-major: volume ``i * ny + j`` sits at column `i` and row
    `j` of the grid.
    """

    mode = "multi"

    def __init__(
        self,
        scan: MultiPointScan,
        ctx: ScanContext,
        sinks: Mapping[ChannelId, Sequence[ScalarSink]],
    ) -> None:
        super().__init__(ctx, n_points=scan.n_points)
        self.scan = scan
        self.sinks = sinks
        self.centers = self.grid(scan)

    @staticmethod
    def grid(scan: MultiPointScan) -> npt.NDArray[np.float64]:
        """(nx * ny, 3) centers of the observation volumes."""
        cx = centered_coords(scan.nx, scan.dx)
        cy = centered_coords(scan.ny, scan.dy)
        xx, yy = np.meshgrid(cx, cy, indexing="ij")
        zz = np.full(xx.size, scan.center_z, dtype=float)
        return np.column_stack([xx.ravel(), yy.ravel(), zz])

    @classmethod
    def open_sinks(
        cls,
        scan: MultiPointScan,
        ctx: ScanContext,
        output_dir: Path,
        stack: ExitStack,
    ) -> dict[ChannelId, list[TextSink]]:
        centers = cls.grid(scan)
        index_path = _out_path(output_dir, scan.prefix, "").parent / "index.txt"
        write_index(index_path, [(x, y) for x, y, _ in centers])
        return {
            cid: [
                stack.enter_context(
                    TextSink(
                        _out_path(output_dir, scan.prefix, f"_{n:03d}{cid.suffix}.txt")
                    )
                )
                for n in range(len(centers))
            ]
            for cid in ctx.channels.channels
        }

    def reference_points(self) -> npt.NDArray[np.float64]:
        return self.centers

    def on_step(self, event: StepBoundary) -> None:
        for cid, sinks in self.sinks.items():
            counts = self.accumulator.flush(cid)
            for sink, value in zip(sinks, counts, strict=True):
                sink.append_scalar(int(value))

    def log_parameters(self) -> None:
        super().log_parameters()
        logger.info(f"Observation volumes: {self.scan.nx} x {self.scan.ny}")
        logger.info(f"Volume spacing [X Y]: [{self.scan.dx:g} {self.scan.dy:g}] um")


# ------------------------------------------------------------- line-based scans


class _DeadTimeDriver(ScanDriver):
    """Pixel-by-pixel scan where every line is followed by idle dead time.

    A step belongs to column ``step % dummy_window`` of its line; steps past the
    active width fall in the dead time and their photons are thrown away.
    """

    def __init__(
        self,
        scan: LineScan | RasterScan | StackScan,
        ctx: ScanContext,
        sinks: Mapping[ChannelId, ImageSink],
    ) -> None:
        super().__init__(ctx)
        self.sinks = sinks
        self.width = scan.active_width
        self.dummy_window = scan.dummy_window(ctx.time_step)
        self.line = ScanlineBuffer(ctx.channels.channels, self.width)
        self.column = 0
        self.row = 0

    def on_step(self, event: StepBoundary) -> None:
        if event.step % self.dummy_window >= self.width:
            self.accumulator.discard()
            return

        for cid in self.sinks:
            self.line.put(cid, self.column, self.accumulator.flush(cid)[0])

        if self.column < self.width - 1:
            self.column += 1
            return

        for cid, sink in self.sinks.items():
            sink.write_scanline(self.line.row(cid), self.row)
        self.column = 0
        self._end_of_line()

    def _end_of_line(self) -> None:
        self.row += 1

    def log_parameters(self) -> None:
        super().log_parameters()
        line_ms = 1000 * self.dummy_window * self.ctx.time_step
        logger.info(f"Line time: {line_ms:.2f} ms")


class LineDriver(_DeadTimeDriver):
    """Repeated scan of one line; the output image grows one row per line."""

    mode = "line"

    def __init__(
        self, scan: LineScan, ctx: ScanContext, sinks: Mapping[ChannelId, ImageSink]
    ) -> None:
        super().__init__(scan, ctx, sinks)
        self.scan = scan
        offsets = centered_coords(scan.n_columns, scan.shift)
        self.centers = np.column_stack(
            [
                offsets - scan.center_x,
                np.full(scan.n_columns, scan.center_y, dtype=float),
                np.full(scan.n_columns, scan.center_z, dtype=float),
            ]
        )

    @classmethod
    def open_sinks(
        cls, scan: LineScan, ctx: ScanContext, output_dir: Path, stack: ExitStack
    ) -> dict[ChannelId, CarpetSink]:
        return {
            cid: stack.enter_context(
                CarpetSink(
                    _out_path(output_dir, scan.tiffname, f"{cid.suffix}.tif"),
                    scan.n_columns,
                )
            )
            for cid in ctx.channels.channels
        }

    def reference_points(self) -> npt.NDArray[np.float64]:
        return self.centers[self.column : self.column + 1]

    def log_parameters(self) -> None:
        super().log_parameters()
        s = self.scan
        logger.info(
            f"Center of line [X Y Z]: [{s.center_x:.2f} {s.center_y:.2f} "
            f"{s.center_z:.2f}] um"
        )
        logger.info(f"Number of columns: {s.n_columns}")
        logger.info(f"Line length: {s.n_columns * s.shift:.2f} um")


class RasterDriver(_DeadTimeDriver):
    """Repeated 2D raster; every `height` lines complete one frame (page)."""

    mode = "raster"

    def __init__(
        self,
        scan: RasterScan | StackScan,
        ctx: ScanContext,
        sinks: Mapping[ChannelId, ImageSink],
    ) -> None:
        super().__init__(scan, ctx, sinks)
        self.scan = scan
        self.height = scan.height
        self.center_x = centered_coords(scan.width, scan.pixel)
        self.center_y = centered_coords(scan.height, scan.pixel)
        self.n_frames = 0

    @classmethod
    def open_sinks(
        cls,
        scan: RasterScan | StackScan,
        ctx: ScanContext,
        output_dir: Path,
        stack: ExitStack,
    ) -> dict[ChannelId, FrameSink]:
        return {
            cid: stack.enter_context(
                FrameSink(
                    _out_path(output_dir, scan.tiffname, f"{cid.suffix}.tif"),
                    scan.width,
                    scan.height,
                )
            )
            for cid in ctx.channels.channels
        }

    @property
    def center_z(self) -> float:
        return self.scan.center_z  # type: ignore[union-attr]

    def reference_points(self) -> npt.NDArray[np.float64]:
        return np.array(
            [[self.center_x[self.column], self.center_y[self.row], self.center_z]]
        )

    def _end_of_line(self) -> None:
        if self.row < self.height - 1:
            self.row += 1
            return
        for sink in self.sinks.values():
            sink.finish_frame()
        self.row = 0
        self.n_frames += 1
        self._end_of_frame()

    def _end_of_frame(self) -> None:
        pass

    def log_parameters(self) -> None:
        super().log_parameters()
        s = self.scan
        logger.info(f"Image width: {s.width * s.pixel:.2f} um")
        logger.info(f"Image height: {s.height * s.pixel:.2f} um")
        logger.info(f"Pixel size: {s.pixel:.3f} um")
        frame_s = self.dummy_window * s.height * self.ctx.time_step
        logger.info(f"Frame time: {frame_s:.2f} s")


class StackDriver(RasterDriver):
    """Raster frames taken at successive Z planes, from top to bottom.

    Each completed frame moves the focus down by one `step`.  The run ends once
    every plane was acquired, or once the step index reaches the nominal stack
    duration.
    """

    mode = "stack"

    def __init__(
        self, scan: StackScan, ctx: ScanContext, sinks: Mapping[ChannelId, ImageSink]
    ) -> None:
        super().__init__(scan, ctx, sinks)
        self.n_slices = scan.n_slices
        self.z_positions = scan.top_z - np.arange(self.n_slices) * scan.step
        self.total_steps = scan.total_steps(ctx.time_step)
        self.slice = 0

    @property
    def center_z(self) -> float:
        return float(self.z_positions[self.slice])

    def on_step(self, event: StepBoundary) -> None:
        if event.step >= self.total_steps:
            self.finished = True
            return
        super().on_step(event)

    def _end_of_frame(self) -> None:
        self.slice += 1
        if self.slice >= self.n_slices:
            self.finished = True

    def log_parameters(self) -> None:
        super().log_parameters()
        s: StackScan = self.scan  # type: ignore[assignment]
        logger.info(f"Z range: {s.top_z:.2f} to {s.bot_z:.2f} um, step {s.step:g} um")
        logger.info(f"Number of slices: {self.n_slices}")


# ------------------------------------------------------------------------ orbit


class OrbitDriver(ScanDriver):
    """Circular scan around a fixed center, one output row per revolution."""

    mode = "orbit"

    def __init__(
        self, scan: OrbitScan, ctx: ScanContext, sinks: Mapping[ChannelId, ImageSink]
    ) -> None:
        self.check_parameters(scan, ctx)
        super().__init__(ctx)
        self.scan = scan
        self.sinks = sinks
        self.n_pixels = scan.n_pixels(ctx.time_step)
        x, y = orbit_coords(self.n_pixels, scan.radius)
        self.centers = np.column_stack(
            [
                x - scan.center_x,
                y - scan.center_y,
                np.full(self.n_pixels, scan.center_z, dtype=float),
            ]
        )
        self.line = ScanlineBuffer(ctx.channels.channels, self.n_pixels)
        self.pixel = 0
        self.row = 0

    @classmethod
    def check_parameters(cls, scan: OrbitScan, ctx: ScanContext) -> None:
        if scan.n_pixels(ctx.time_step) < 1:
            raise ParameterValidationError(
                f"Orbit period ({scan.period:g} s) is shorter than one pixel "
                f"({ctx.time_step:g} s per step)."
            )

    @classmethod
    def open_sinks(
        cls, scan: OrbitScan, ctx: ScanContext, output_dir: Path, stack: ExitStack
    ) -> dict[ChannelId, CarpetSink]:
        n_pixels = scan.n_pixels(ctx.time_step)
        return {
            cid: stack.enter_context(
                CarpetSink(
                    _out_path(output_dir, scan.tiffname, f"{cid.suffix}.tif"), n_pixels
                )
            )
            for cid in ctx.channels.channels
        }

    def reference_points(self) -> npt.NDArray[np.float64]:
        return self.centers[self.pixel : self.pixel + 1]

    def on_step(self, event: StepBoundary) -> None:
        for cid in self.sinks:
            self.line.put(cid, self.pixel, self.accumulator.flush(cid)[0])
        if self.pixel < self.n_pixels - 1:
            self.pixel += 1
            return
        for cid, sink in self.sinks.items():
            sink.write_scanline(self.line.row(cid), self.row)
        self.pixel = 0
        self.row += 1

    def log_parameters(self) -> None:
        super().log_parameters()
        s = self.scan
        logger.info(
            f"Center of orbit [X Y Z]: [{s.center_x:.2f} {s.center_y:.2f} "
            f"{s.center_z:.2f}] um"
        )
        logger.info(f"Number of pixels along orbit: {self.n_pixels}")
        logger.info(f"Orbit radius: {s.radius:.2f} um")
        logger.info(f"Orbit period: {s.period * 1000:.2f} ms")


# ------------------------------------------------------------------------- spim


class SpimDriver(ScanDriver):
    """Camera detection of a light sheet.

    Each position of a channel 0 molecule is blurred by a diffraction-limited
    random offset and binned straight into the camera pixel it lands on; the sheet
    profile along Z sets the excitation probability.  Every `frame_steps` steps
    the camera frame is written and cleared.
    """

    mode = "spim"
    channel = ChannelId.C0

    def __init__(
        self, scan: SpimScan, ctx: ScanContext, sinks: Mapping[ChannelId, FrameSink]
    ) -> None:
        self.check_parameters(scan, ctx)
        super().__init__(
            ctx, n_points=scan.width * scan.height, channels=(self.channel,)
        )
        self.scan = scan
        self.sink = sinks[self.channel]
        self.shape = (scan.height, scan.width)
        self.jitter = scan.jitter_radius
        self.half_x, self.half_y = scan.half_extent
        self.frame_steps = scan.frame_steps(ctx.time_step)
        self.elapsed = 0
        self.n_frames = 0

    @classmethod
    def check_parameters(cls, scan: SpimScan, ctx: ScanContext) -> None:
        if cls.channel not in ctx.channels:
            raise ParameterValidationError("SPIM mode records channel 0, which is off.")
        if scan.frame_steps(ctx.time_step) < 1:
            raise ParameterValidationError(
                f"Frame time ({scan.frame_time:g} s) is shorter than one simulation "
                f"step ({ctx.time_step:g} s)."
            )

    @classmethod
    def open_sinks(
        cls, scan: SpimScan, ctx: ScanContext, output_dir: Path, stack: ExitStack
    ) -> dict[ChannelId, FrameSink]:
        path = _out_path(output_dir, scan.tiffname, ".tif")
        sink = stack.enter_context(FrameSink(path, scan.width, scan.height))
        return {cls.channel: sink}

    @property
    def ccd(self) -> npt.NDArray[np.int64]:
        """Counts of the frame being exposed, (height, width)."""
        return self.accumulator.counts[self.channel].reshape(self.shape)

    def reference_points(self) -> npt.NDArray[np.float64]:
        return np.array([[0.0, 0.0, self.scan.center_z]])

    def pixel_index(self, x: float, y: float) -> tuple[int, int] | None:
        """Return (row, column) of the camera pixel at (x, y), or None if outside."""
        if not (-self.half_x < x < self.half_x and -self.half_y < y < self.half_y):
            return None
        col = math.floor((x + self.half_x) / self.scan.pixel)
        row = math.floor((y + self.half_y) / self.scan.pixel)
        # x just below half_x can round up onto the far edge
        return min(row, self.shape[0] - 1), min(col, self.shape[1] - 1)

    def on_position(self, event: Position) -> None:
        probabilities = self.ctx.channels.probabilities(self.channel, event.molecule)
        if not probabilities:
            return
        rng = self.ctx.rng
        x = event.x + self.jitter * rng.standard_normal()
        y = event.y + self.jitter * rng.standard_normal()
        if (idx := self.pixel_index(x, y)) is None:
            return
        g = axial_psf(event.z, self.scan.center_z, self.scan.waist)
        flat = idx[0] * self.shape[1] + idx[1]
        for q in probabilities:
            self.accumulator.add_at(
                self.channel, flat, int(detect_photons(g, self.ctx.n_events, q, rng))
            )

    def on_step(self, event: StepBoundary) -> None:
        self.elapsed += 1
        if self.elapsed < self.frame_steps:
            return
        self._write_frame()
        self.sink.finish_frame()
        self.elapsed = 0
        self.n_frames += 1

    def _write_frame(self) -> None:
        frame = self.accumulator.flush(self.channel).reshape(self.shape)
        self.sink.write_frame(np.minimum(frame, MAX_GRAY).astype(np.uint8))

    def finish(self) -> None:
        # the sink writes the pending frame when it is closed
        if self.elapsed:
            self._write_frame()

    def log_parameters(self) -> None:
        s = self.scan
        logger.info(f"Emission wavelength: {s.wavelength:.1f} nm")
        logger.info(f"Numerical aperture: {s.numerical_aperture:.2f}")
        logger.info(f"Sheet waist in Z: {s.waist:g} um")
        logger.info(f"Image width: {s.width * s.pixel:.2f} um")
        logger.info(f"Image height: {s.height * s.pixel:.2f} um")
        logger.info(f"Pixel size: {s.pixel:.3f} um")
        logger.info(f"Frame time: {s.frame_time:.3f} s")
        logger.info(f"Z center of image: {s.center_z:.2f} um")


DRIVERS: dict[str, type[ScanDriver]] = {
    d.mode: d
    for d in (
        PointDriver,
        MultiPointDriver,
        LineDriver,
        RasterDriver,
        StackDriver,
        OrbitDriver,
        SpimDriver,
    )
}
