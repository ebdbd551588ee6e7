"""Filesystem scanner -- walks library roots and emits one record per video file.

The scan only reads the filesystem. Persisting the records is the caller's
job (see db.library.upsert_media_items).
"""

import glob
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from typing import Optional

from error_handler import ScanWalkError
from library.parser import parse_metadata

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS: frozenset[str] = frozenset({
    ".mkv",
    ".mp4",
    ".avi",
    ".mov",
    ".wmv",
    ".flv",
    ".m4v",
    ".ts",
    ".m2ts",
    ".webm",
})

SUBTITLE_EXTENSIONS: frozenset[str] = frozenset({
    ".srt",
    ".ass",
    ".ssa",
    ".vtt",
    ".sub",
})


@dataclass
class ScannedMedia:
    """Identity record for one video file found on disk."""

    media_type: str
    title: str
    file_path: str
    has_subtitle: bool
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ScanResult:
    """Records from every root that walked cleanly, plus per-root failures."""

    items: list[ScannedMedia] = field(default_factory=list)
    errors: list[ScanWalkError] = field(default_factory=list)

    @property
    def scanned_video_files(self) -> int:
        return len(self.items)

    @property
    def missing_subtitle_files(self) -> int:
        return sum(1 for item in self.items if not item.has_subtitle)


def is_video_file(path: str) -> bool:
    """True if the path has a recognized video extension (case-insensitive)."""
    return os.path.splitext(path)[1].lower() in VIDEO_EXTENSIONS


def has_local_subtitle(video_path: str) -> bool:
    """Check for a sidecar subtitle next to a video.

    Any file in the same directory named ``<video base>.<ext>`` with a
    subtitle extension counts, including language-tagged names such as
    ``movie.en.srt``.
    """
    directory, filename = os.path.split(video_path)
    base = os.path.splitext(filename)[0]
    pattern = os.path.join(glob.escape(directory), glob.escape(base) + ".*")
    for match in glob.iglob(pattern):
        if os.path.splitext(match)[1].lower() in SUBTITLE_EXTENSIONS:
            return True
    return False


def _is_storable_path(path: str) -> bool:
    """False for names os.walk could only decode with surrogate escapes."""
    try:
        path.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _build_record(path: str) -> ScannedMedia:
    meta = parse_metadata(os.path.basename(path))
    return ScannedMedia(
        media_type=meta.media_type,
        title=meta.title,
        year=meta.year,
        season=meta.season,
        episode=meta.episode,
        file_path=path,
        has_subtitle=has_local_subtitle(path),
    )


def _walk_root(root: str, seen: set, deadline: Optional[float]) -> list[ScannedMedia]:
    """Collect records below one root.

    Unreadable subdirectories are skipped. An unreadable root or an expired
    deadline raises ScanWalkError and the root contributes nothing.
    """
    root_errors: list[OSError] = []

    def _on_error(err: OSError) -> None:
        if os.path.abspath(err.filename or "") == os.path.abspath(root):
            root_errors.append(err)
        else:
            logger.debug("Skipping unreadable path %s: %s", err.filename, err)

    if os.path.isfile(root):
        walker = [(os.path.dirname(root), [], [os.path.basename(root)])]
    else:
        walker = os.walk(root, onerror=_on_error)

    records = []
    claimed = []
    for dirpath, _dirs, files in walker:
        for filename in files:
            if deadline is not None and time.monotonic() > deadline:
                seen.difference_update(claimed)
                raise ScanWalkError(root, TimeoutError("scan deadline exceeded"))
            if os.path.splitext(filename)[1].lower() not in VIDEO_EXTENSIONS:
                continue
            abs_path = os.path.abspath(os.path.join(dirpath, filename))
            if abs_path in seen:
                continue
            if not _is_storable_path(abs_path):
                logger.debug("Skipping file with undecodable name: %r", abs_path)
                continue
            try:
                record = _build_record(abs_path)
            except OSError as e:
                logger.debug("Skipping unreadable file %s: %s", abs_path, e)
                continue
            seen.add(abs_path)
            claimed.append(abs_path)
            records.append(record)

    if root_errors:
        seen.difference_update(claimed)
        raise ScanWalkError(root, root_errors[0])
    return records


def scan_paths(paths, deadline: Optional[float] = None) -> ScanResult:
    """Scan library roots for video files.

    Blank and missing roots are skipped silently. A path reached through
    two overlapping roots is reported once. A failing root is recorded in
    ``ScanResult.errors`` while the remaining roots still complete, except
    that an expired deadline stops the whole scan.

    Args:
        paths: Root directories to walk.
        deadline: Optional ``time.monotonic()`` value after which the scan
            is abandoned.

    Returns:
        ScanResult with items sorted by file path.
    """
    result = ScanResult()
    seen: set[str] = set()

    for root in paths:
        root = (root or "").strip()
        if not root:
            continue
        if not os.path.exists(root):
            logger.debug("Library root does not exist, skipping: %s", root)
            continue
        try:
            result.items.extend(_walk_root(root, seen, deadline))
        except ScanWalkError as e:
            logger.warning("Scan of %s failed: %s", root, e.cause)
            result.errors.append(e)
            if isinstance(e.cause, TimeoutError):
                break

    result.items.sort(key=lambda item: item.file_path)
    logger.info(
        "Scan finished: %d video files, %d missing subtitles, %d failed roots",
        result.scanned_video_files, result.missing_subtitle_files, len(result.errors),
    )
    return result
