"""Media library: filename metadata inference and filesystem scanning."""

from library.parser import ParsedMetadata, parse_metadata
from library.scanner import ScannedMedia, ScanResult, scan_paths

__all__ = [
    "ParsedMetadata",
    "parse_metadata",
    "ScannedMedia",
    "ScanResult",
    "scan_paths",
]
