from ._accumulate import PhotonAccumulator, ScanlineBuffer
from ._channels import ChannelFilter
from ._drivers import DRIVERS, ScanContext, ScanDriver
from ._engine import ScanSummary, run_scan
from ._psf import axial_psf, detect_photons, detector_noise, gaussian_psf
from ._sinks import CarpetSink, FrameSink, TextSink, write_index
from ._trajectory import (
    Position,
    StepBoundary,
    TrajectoryHeader,
    TrajectoryReader,
    parse_record,
)

__all__ = [
    "DRIVERS",
    "CarpetSink",
    "ChannelFilter",
    "FrameSink",
    "PhotonAccumulator",
    "Position",
    "ScanContext",
    "ScanDriver",
    "ScanSummary",
    "ScanlineBuffer",
    "StepBoundary",
    "TextSink",
    "TrajectoryHeader",
    "TrajectoryReader",
    "axial_psf",
    "detect_photons",
    "detector_noise",
    "gaussian_psf",
    "parse_record",
    "run_scan",
    "write_index",
]
