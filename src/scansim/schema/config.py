from pathlib import Path
from typing import TYPE_CHECKING, get_args

from pydantic import Field

from scansim.errors import MissingConfigurationError

from ._base_model import ScanBaseModel
from .common import CommonParameters
from .scan import (
    LineScan,
    ModeName,
    MultiPointScan,
    OrbitScan,
    PointScan,
    RasterScan,
    ScanBlock,
    SpimScan,
    StackScan,
)
from .settings import Settings

if TYPE_CHECKING:
    from typing import Self


class ScanConfig(ScanBaseModel):
    """Top level configuration of a scan simulation.

    A configuration file holds the common block plus the geometry of any number of
    scan modes; the mode to run is picked at run time with `mode`.

    Examples
    --------
    >>> cfg = ScanConfig.from_file("fcs.json")
    >>> cfg.mode("point")
    PointScan(type='point', prefix='fcs', center_x=0.0, ...)
    """

    common: CommonParameters
    point: PointScan | None = None
    multi: MultiPointScan | None = None
    line: LineScan | None = None
    raster: RasterScan | None = Field(None, alias="image")
    stack: StackScan | None = None
    orbit: OrbitScan | None = Field(None, alias="orbital")
    spim: SpimScan | None = None
    settings: Settings = Field(default_factory=Settings)

    @classmethod
    def from_file(cls, path: str | Path) -> "Self":
        """Load and validate a JSON configuration file."""
        return cls.model_validate_json(Path(path).read_text())

    def mode(self, name: ModeName) -> ScanBlock:
        """Return the geometry block for mode `name`."""
        if name not in get_args(ModeName):
            raise ValueError(f"Unknown scan mode {name!r}")
        block = getattr(self, name)
        if block is None:
            raise MissingConfigurationError(
                f"Missing {name!r} block in configuration file."
            )
        return block  # type: ignore[no-any-return]
