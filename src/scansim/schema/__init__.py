from .channel import Channel, ChannelId
from .common import CommonParameters
from .config import ScanConfig
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

__all__ = [
    "Channel",
    "ChannelId",
    "CommonParameters",
    "LineScan",
    "ModeName",
    "MultiPointScan",
    "OrbitScan",
    "PointScan",
    "RasterScan",
    "ScanBlock",
    "ScanConfig",
    "Settings",
    "SpimScan",
    "StackScan",
]
