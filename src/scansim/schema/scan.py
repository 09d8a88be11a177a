"""Geometry blocks, one per scan mode.

Lengths are in um, times in seconds.  Each block carries a ``type`` literal naming
its mode.
"""

from abc import ABC, abstractmethod
from typing import Annotated, Literal

from annotated_types import Ge, Gt, Interval
from pydantic import Field, model_validator

from scansim.util import round_half_up

from ._base_model import ScanBaseModel

PositiveFloat = Annotated[float, Gt(0)]
NonNegativeFloat = Annotated[float, Ge(0)]
PositiveInt = Annotated[int, Gt(0)]


class _TextOutput(ScanBaseModel):
    prefix: str = Field(description="Output path prefix; `_cN.txt` is appended.")


class _TiffOutput(ScanBaseModel):
    tiffname: str = Field(description="Output path stem; `.tif` is appended.")


class PointScan(_TextOutput):
    type: Literal["point"] = "point"
    center_x: float = Field(0, alias="centerx")
    center_y: float = Field(0, alias="centery")
    center_z: float = Field(0, alias="centerz")


class MultiPointScan(_TextOutput):
    """A fixed grid of ``nx * ny`` independent observation volumes."""

    type: Literal["multi"] = "multi"
    center_z: float = Field(0, alias="centerz")
    nx: PositiveInt = Field(alias="nPSFX")
    ny: PositiveInt = Field(alias="nPSFY")
    dx: NonNegativeFloat
    dy: NonNegativeFloat

    @property
    def n_points(self) -> int:
        return self.nx * self.ny


class _DeadTimeScan(_TiffOutput, ABC):
    deadtime: NonNegativeFloat = Field(
        0, description="Idle time appended after every line (s)."
    )

    @property
    @abstractmethod
    def active_width(self) -> int:
        """Number of recorded pixels per line."""

    def dummy_window(self, time_step: float) -> int:
        """Length of one line including dead time, in simulation steps."""
        return self.active_width + round_half_up(self.deadtime / time_step)


class LineScan(_DeadTimeScan):
    type: Literal["line"] = "line"
    center_x: float = Field(0, alias="centerx")
    center_y: float = Field(0, alias="centery")
    center_z: float = Field(0, alias="centerz")
    n_columns: PositiveInt
    shift: PositiveFloat = Field(description="Distance between adjacent columns.")

    @property
    def active_width(self) -> int:
        return self.n_columns


class RasterScan(_DeadTimeScan):
    type: Literal["raster"] = "raster"
    pixel: PositiveFloat
    width: PositiveInt
    height: PositiveInt
    center_z: float = Field(0, alias="centerz")

    @property
    def active_width(self) -> int:
        return self.width


class StackScan(_DeadTimeScan):
    """A raster repeated over Z planes, from `top_z` down to `bot_z`."""

    type: Literal["stack"] = "stack"
    pixel: PositiveFloat
    width: PositiveInt
    height: PositiveInt
    top_z: float
    bot_z: float
    step: PositiveFloat

    @property
    def active_width(self) -> int:
        return self.width

    @model_validator(mode="after")
    def _check_bounds(self) -> "StackScan":
        if self.bot_z > self.top_z:
            raise ValueError("bot_z position is greater than top_z position.")
        if self.step > self.top_z - self.bot_z:
            raise ValueError("Z step is greater than stack height.")
        return self

    @property
    def n_slices(self) -> int:
        return round_half_up((self.top_z - self.bot_z) / self.step)

    def total_steps(self, time_step: float) -> int:
        """Number of simulation steps needed to acquire the whole stack."""
        return self.dummy_window(time_step) * self.height * self.n_slices


class OrbitScan(_TiffOutput):
    type: Literal["orbit"] = "orbit"
    center_x: float = Field(0, alias="centerx")
    center_y: float = Field(0, alias="centery")
    center_z: float = Field(0, alias="centerz")
    radius: PositiveFloat
    period: PositiveFloat = Field(description="Time for one revolution (s).")

    def n_pixels(self, time_step: float) -> int:
        return round_half_up(self.period / time_step)


class SpimScan(_TiffOutput):
    """Wide-field detection of a light-sheet illuminated plane."""

    type: Literal["spim"] = "spim"
    numerical_aperture: Annotated[float, Interval(gt=0, le=1.7)] = Field(alias="NA")
    wavelength: PositiveFloat = Field(alias="lambda", description="Emission (nm).")
    center_z: float = Field(0, alias="centerz")
    waist: PositiveFloat = Field(description="Sheet 1/e^2 half thickness (um).")
    pixel: PositiveFloat
    frame_time: PositiveFloat = Field(alias="frame_t")
    width: PositiveInt
    height: PositiveInt

    @property
    def jitter_radius(self) -> float:
        """Diffraction-limited lateral localization spread (um)."""
        return 0.61 * (self.wavelength / 1000) / (2 * self.numerical_aperture)

    @property
    def half_extent(self) -> tuple[float, float]:
        """Half width and half height of the camera field, in um."""
        return self.width * self.pixel / 2, self.height * self.pixel / 2

    def frame_steps(self, time_step: float) -> int:
        return round_half_up(self.frame_time / time_step)


ScanBlock = (
    PointScan | MultiPointScan | LineScan | RasterScan | StackScan | OrbitScan | SpimScan
)
ModeName = Literal["point", "multi", "line", "raster", "stack", "orbit", "spim"]
