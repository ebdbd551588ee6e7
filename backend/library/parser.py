"""Filename metadata parser -- infers media identity from a video filename.

A deliberately small heuristic: an ``SxxEyy`` marker makes a file an
episode, the first 19xx/20xx token is the year, and the title is whatever
precedes the marker. Titles may be imprecise; providers do fuzzy matching.
"""

import os
import re
from dataclasses import dataclass
from typing import Optional

# Applied to the space-padded normalized name so a leading marker still has a separator
_RE_EPISODE = re.compile(r"[.\s_\-]s(\d{1,2})e(\d{1,2})[.\s_\-]?", re.IGNORECASE | re.ASCII)
_RE_YEAR = re.compile(r"\b(19|20)\d{2}\b", re.ASCII)
_RE_SEPARATORS = re.compile(r"[._\-]")


@dataclass(frozen=True)
class ParsedMetadata:
    """Identity fields inferred from a filename."""

    media_type: str  # "movie" or "episode"
    title: str
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None


def normalize_name(name: str) -> str:
    """Turn dots, underscores and hyphens into spaces and collapse whitespace."""
    return " ".join(_RE_SEPARATORS.sub(" ", name).split())


def parse_metadata(filename: str) -> ParsedMetadata:
    """Infer media type, title, year, season and episode from a filename.

    Never raises; a name with no recognizable structure yields a movie
    titled with the extension-less name.

    Args:
        filename: Base filename (a full path works too; only the last
            component's extension is stripped).

    Returns:
        ParsedMetadata with season/episode set only for episodes.
    """
    name, _ext = os.path.splitext(filename)
    normalized = normalize_name(name)
    padded = f" {normalized} "

    media_type = "movie"
    season = None
    episode = None
    marker = _RE_EPISODE.search(padded)
    if marker:
        media_type = "episode"
        season = int(marker.group(1))
        episode = int(marker.group(2))

    year = None
    year_match = _RE_YEAR.search(normalized)
    if year_match:
        year = int(year_match.group(0))

    title = normalized
    if marker:
        before = padded[:marker.start()].strip()
        if before:
            title = before
    if year is not None:
        title = title.replace(str(year), "").strip()
    if not title:
        title = normalized or name

    return ParsedMetadata(
        media_type=media_type,
        title=title,
        year=year,
        season=season,
        episode=episode,
    )
