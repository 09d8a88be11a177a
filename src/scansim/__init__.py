"""Scanning fluorescence microscopy photon-count simulation in python."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("scansim")
except PackageNotFoundError:
    __version__ = "uninstalled"

from .schema import ScanConfig, Settings
from .simulate import run_scan

__all__ = ["ScanConfig", "Settings", "__version__", "run_scan"]
