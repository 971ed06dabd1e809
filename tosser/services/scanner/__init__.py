# Directory listing and the periodic scan loop that drives it.
from .directory_scanner import DirectoryScanner
from .scan_scheduler import ScanScheduler

__all__ = [
    "DirectoryScanner",
    "ScanScheduler",
]
