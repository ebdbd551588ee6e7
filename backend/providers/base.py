"""Abstract base class for subtitle providers and shared data models.

Every catalog implements the same capability: search for subtitles that
match a media item and, optionally, download one of the results. Providers
are stateless between calls; the credential and query arrive with each call.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Optional

from error_handler import TransportError
from providers.scoring import normalize_language, score_by_language


class ProviderError(TransportError):
    """Base exception for provider errors (auth, rate-limit, network)."""


class ProviderAuthError(ProviderError):
    """Authentication or authorization failed."""

    code = "PROV_AUTH"


class ProviderRateLimitError(ProviderError):
    """Provider rate limit exceeded."""

    code = "PROV_RATE"
    http_status = 429


class ProviderTimeoutError(ProviderError):
    """Provider request or task timed out."""

    code = "PROV_TIMEOUT"
    http_status = 504


class ProviderCancelledError(ProviderError):
    """The search was cancelled before the provider finished."""

    code = "PROV_CANCELLED"


@dataclass(frozen=True)
class SearchQuery:
    """What to search for. Built from a stored media item; never mutated."""

    title: str
    media_type: str = "movie"
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    media_id: Optional[int] = None
    file_path: str = ""
    limit: int = 20
    language_priority: tuple[str, ...] = ()

    @classmethod
    def from_media(cls, media: dict, language_priority, limit: int = 20) -> "SearchQuery":
        return cls(
            title=(media.get("title") or "").strip(),
            media_type=media.get("media_type") or "movie",
            year=media.get("year"),
            season=media.get("season"),
            episode=media.get("episode"),
            media_id=media.get("id"),
            file_path=media.get("file_path") or "",
            limit=limit,
            language_priority=tuple(language_priority or ()),
        )

    @property
    def is_episode(self) -> bool:
        return (
            self.media_type == "episode"
            and self.season is not None
            and self.episode is not None
        )

    def build_query_text(self, include_year: bool = False) -> str:
        """Free-text query: title, then SxxEyy for episodes, then the year if asked."""
        text = self.title.strip()
        if self.is_episode:
            text = f"{text} S{self.season:02d}E{self.episode:02d}"
        if include_year and self.year is not None:
            text = f"{text} {self.year}"
        return text.strip()


@dataclass
class CandidateResult:
    """A subtitle offered by one provider."""

    provider: str
    candidate_id: str
    title: str = ""
    release_name: str = ""
    language: str = "unknown"
    language_text: str = ""
    score: float = 0.0
    relevance: float = 0.0  # Provider-side signal (votes, downloads, trust)
    details: str = ""
    raw: dict = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DownloadResult:
    """Subtitle bytes fetched from a provider."""

    data: bytes = field(repr=False)
    file_name: str
    note: str = ""


def first_non_empty(*values) -> str:
    for value in values:
        if value and str(value).strip():
            return str(value).strip()
    return ""


class SubtitleProvider(ABC):
    """Abstract base class for subtitle providers.

    Class-level attributes read by ProviderManager:
        display_name: Human-readable catalog name.
        note: Short operator hint shown in the provider list.
        credential_fields: Credential keys the provider understands.
        supports_download: Whether download() is implemented.
    """

    name: str = "unknown"
    display_name: str = ""
    note: str = ""
    credential_fields: tuple[str, ...] = ()
    supports_search: bool = True
    supports_download: bool = False

    def __init__(self, session=None, request_timeout: int = 20):
        self.session = session
        self.request_timeout = request_timeout
        self._session_lock = threading.Lock()

    def _session(self):
        """Shared HTTP session, created once even under concurrent searches."""
        if self.session is None:
            with self._session_lock:
                if self.session is None:
                    from providers.http_session import create_session
                    self.session = create_session(timeout=self.request_timeout)
        return self.session

    @abstractmethod
    def search(self, cancel_event: threading.Event, credential: dict,
               query: SearchQuery) -> list[CandidateResult]:
        """Search the catalog.

        Args:
            cancel_event: Set by the caller when the result is no longer wanted.
            credential: Decrypted credential map for this provider.
            query: Immutable query built from the media item.

        Returns:
            At most ``query.limit`` candidates, scored but unsorted.
        """
        ...

    def download(self, cancel_event: threading.Event, credential: dict,
                 candidate: dict) -> DownloadResult:
        """Fetch the subtitle file for a stored candidate."""
        raise ProviderError(f"{self.name} does not support downloads")

    @staticmethod
    def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ProviderCancelledError("search cancelled")

    def make_candidate(self, query: SearchQuery, candidate_id, raw_language: str,
                       relevance: float = 0.0, **fields) -> CandidateResult:
        """Build a candidate with normalized language and score."""
        code, display = normalize_language(raw_language)
        return CandidateResult(
            provider=self.name,
            candidate_id=str(candidate_id),
            language=code,
            language_text=display,
            relevance=relevance,
            score=score_by_language(query.language_priority, code) + relevance,
            **fields,
        )
