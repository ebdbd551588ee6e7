"""Subtitle provider system -- search and download subtitles from multiple catalogs.

The ProviderManager fans a search out to every credentialed provider in
parallel, tolerates individual provider failures, ranks the merged
results by language priority and provider relevance, and persists them
as the media item's new candidate set.

Usage:
    from providers import get_provider_manager

    manager = get_provider_manager()
    outcome = manager.search_media(media, settings)
    if outcome.candidates:
        saved = manager.download_candidate(media, outcome_candidate_dict, settings)
"""

import hashlib
import logging
import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional

from error_handler import (
    CredentialError,
    FoursubsError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from providers.base import (
    CandidateResult,
    ProviderError,
    ProviderTimeoutError,
    SearchQuery,
    SubtitleProvider,
)
from providers.scoring import rank_candidates

logger = logging.getLogger(__name__)

# Provider registry -- maps name to class
_PROVIDER_CLASSES: dict[str, type[SubtitleProvider]] = {}

# Singleton manager
_manager: Optional["ProviderManager"] = None
_provider_manager_lock = threading.Lock()


def register_provider(cls: type[SubtitleProvider]) -> type[SubtitleProvider]:
    """Decorator to register a provider class.

    The first class registered under a name wins; duplicates are logged
    and skipped.
    """
    if cls.name in _PROVIDER_CLASSES:
        logger.warning(
            "Provider name collision: '%s' already registered by %s, skipping %s",
            cls.name,
            _PROVIDER_CLASSES[cls.name].__name__,
            cls.__name__,
        )
        return cls
    _PROVIDER_CLASSES[cls.name] = cls
    return cls


def _load_builtin_providers() -> None:
    """Import built-in provider modules so their @register_provider runs."""
    from providers import assrt, opensubtitles  # noqa: F401


def get_provider_classes() -> dict[str, type[SubtitleProvider]]:
    _load_builtin_providers()
    return dict(_PROVIDER_CLASSES)


def get_provider_names() -> list[str]:
    """Registered provider names in registration order."""
    return list(get_provider_classes())


def get_provider_manager() -> "ProviderManager":
    """Get or create the singleton ProviderManager (thread-safe)."""
    global _manager
    if _manager is None:
        with _provider_manager_lock:
            if _manager is None:
                _manager = ProviderManager()
    return _manager


def invalidate_manager() -> None:
    """Drop the singleton so the next call rebuilds it (after config changes)."""
    global _manager
    with _provider_manager_lock:
        _manager = None


def _stored_credential_blob(name: str) -> Optional[str]:
    from db.providers import get_credential_blob
    return get_credential_blob(name)


def _store_candidates(media_id, candidates: list[dict]) -> int:
    from db.candidates import replace_candidates
    return replace_candidates(media_id, candidates)


@dataclass
class SearchOutcome:
    """Merged result of one fan-out search."""

    media_id: Optional[int]
    candidates: list[CandidateResult] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    providers_run: int = 0

    def to_dict(self) -> dict:
        return {
            "media_id": self.media_id,
            "count": len(self.candidates),
            "candidates": [c.to_dict() for c in self.candidates],
            "errors": dict(self.errors),
            "providers_run": self.providers_run,
        }


@dataclass
class SavedSubtitle:
    """A downloaded subtitle written below the output directory."""

    file_path: str
    provider: str
    language: str
    note: str = ""
    record: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "file_path": self.file_path,
            "provider": self.provider,
            "language": self.language,
            "note": self.note,
            "subtitle_file": self.record,
        }


class ProviderManager:
    """Fans searches out to registered providers and ranks the merged results.

    Collaborators are injectable for tests: ``providers`` (instances),
    ``credential_source`` (name -> stored blob or None) and
    ``candidate_store`` ((media_id, candidate dicts) -> count).
    """

    def __init__(self, providers=None, credential_source: Callable = None,
                 candidate_store: Callable = None, settings=None):
        from config import get_settings

        self.settings = settings or get_settings()
        if providers is None:
            providers = self._init_providers()
        self._providers: dict[str, SubtitleProvider] = {p.name: p for p in providers}
        self._credential_source = credential_source or _stored_credential_blob
        self._candidate_store = candidate_store or _store_candidates

    def _init_providers(self) -> list[SubtitleProvider]:
        timeout = self.settings.provider_request_timeout
        providers = []
        for name, cls in get_provider_classes().items():
            try:
                providers.append(cls(request_timeout=timeout))
            except Exception as e:
                logger.error("Failed to initialize provider %s: %s", name, e)
        logger.info("Providers initialized: %s", ", ".join(p.name for p in providers))
        return providers

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    def get_provider(self, name: str) -> SubtitleProvider:
        provider = self._providers.get(name)
        if provider is None:
            raise NotFoundError(f"unknown provider: {name}", context={"provider": name})
        return provider

    # ---- Credentials ----

    def resolve_credential(self, name: str) -> dict:
        """Decrypt and parse the stored credential of a provider.

        Returns an empty dict when the provider is not configured.

        Raises:
            CredentialError: The stored blob cannot be read.
        """
        from credential_vault import parse_credential

        try:
            blob = self._credential_source(name)
        except FoursubsError:
            raise
        except Exception as e:
            raise CredentialError(f"credential lookup failed: {e}") from e
        if blob is None:
            return {}
        return parse_credential(blob, self.settings.app_secret, name)

    # ---- Search ----

    def search_media(self, media: dict, settings: dict,
                     cancel_event: Optional[threading.Event] = None) -> SearchOutcome:
        """Search every credentialed provider in parallel for a media item.

        Args:
            media: Media item dict (id, title, media_type, year, season, episode).
            settings: Runtime settings dict; its language_priority drives scoring.
            cancel_event: Optional parent cancellation. When set, providers
                still running are abandoned and leave no entry.

        Returns:
            SearchOutcome with candidates sorted best first and a
            provider -> error message map.

        Raises:
            ValidationError: The media item has no usable title.
            StorageError: Persisting the candidate set failed.
        """
        priority = list(settings.get("language_priority") or [])
        query = SearchQuery.from_media(
            media, priority, limit=self.settings.search_result_limit
        )
        if not query.title:
            raise ValidationError("media title is empty; cannot build a search query",
                                  context={"media_id": query.media_id})

        outcome = SearchOutcome(media_id=query.media_id)
        parent = cancel_event or threading.Event()

        runnable = []
        for name, provider in self._providers.items():
            if not provider.supports_search:
                continue
            try:
                credential = self.resolve_credential(name)
            except FoursubsError as e:
                logger.warning("Provider %s credential error: %s", name, e)
                outcome.errors[name] = str(e)
                outcome.providers_run += 1
                continue
            if not credential:
                logger.debug("Provider %s not configured, skipping", name)
                continue
            runnable.append((provider, credential))

        merged = self._fan_out(runnable, query, parent, outcome)
        outcome.candidates = rank_candidates(merged, priority)

        self._candidate_store(query.media_id, [c.to_dict() for c in outcome.candidates])
        logger.info(
            "Search for media %s (%r): %d candidates from %d providers, %d errors",
            query.media_id, query.title, len(outcome.candidates),
            outcome.providers_run, len(outcome.errors),
        )

        from events import emit_event
        emit_event("candidates_updated", {
            "media_id": query.media_id,
            "count": len(outcome.candidates),
            "errors": dict(outcome.errors),
        })
        return outcome

    def _fan_out(self, runnable, query: SearchQuery, parent: threading.Event,
                 outcome: SearchOutcome) -> list[CandidateResult]:
        """Run one search task per provider and gather their results.

        Each task gets its own cancel event and deadline. Tasks that
        outlive their deadline are recorded as timed out; tasks still
        pending when the parent is cancelled or its deadline passes are
        dropped without an entry.
        """
        merged: list[CandidateResult] = []
        if not runnable:
            return merged

        task_timeout = float(self.settings.provider_search_timeout)
        started = time.monotonic()
        parent_deadline = started + float(self.settings.search_timeout)

        executor = ThreadPoolExecutor(
            max_workers=len(runnable), thread_name_prefix="provider-search"
        )
        pending = {}
        try:
            for provider, credential in runnable:
                child = threading.Event()
                future = executor.submit(provider.search, child, dict(credential), query)
                pending[future] = (provider.name, child, started + task_timeout)

            while pending:
                now = time.monotonic()
                if parent.is_set() or now >= parent_deadline:
                    logger.warning(
                        "Search abandoned with %d providers still running: %s",
                        len(pending), ", ".join(n for n, _c, _d in pending.values()),
                    )
                    break

                next_deadline = min(d for _n, _c, d in pending.values())
                wake = min(next_deadline, parent_deadline, now + 0.25) - now
                done, _ = wait(list(pending), timeout=max(wake, 0), return_when=FIRST_COMPLETED)

                for future in done:
                    name, _child, _deadline = pending.pop(future)
                    outcome.providers_run += 1
                    try:
                        results = future.result()
                    except Exception as e:
                        logger.warning("Provider %s search failed: %s", name, e)
                        outcome.errors[name] = str(e) or type(e).__name__
                        continue
                    logger.debug("Provider %s returned %d results", name, len(results))
                    merged.extend(results[:query.limit] if query.limit > 0 else results)

                now = time.monotonic()
                for future, (name, child, deadline) in list(pending.items()):
                    if now >= deadline:
                        child.set()
                        future.cancel()
                        del pending[future]
                        outcome.providers_run += 1
                        err = ProviderTimeoutError(f"timed out after {task_timeout:g}s")
                        logger.warning("Provider %s search %s", name, err)
                        outcome.errors[name] = str(err)
        finally:
            for _name, child, _deadline in pending.values():
                child.set()
            executor.shutdown(wait=False, cancel_futures=True)
        return merged

    # ---- Download ----

    def download_candidate(self, media: dict, candidate: dict, settings: dict,
                           cancel_event: Optional[threading.Event] = None) -> SavedSubtitle:
        """Download a stored candidate and save it next to the other subtitles.

        Raises:
            NotFoundError: Unknown provider.
            ProviderError: The provider cannot download or the download failed.
            CredentialError: Provider not configured or credential unreadable.
        """
        provider = self.get_provider(candidate.get("provider", ""))
        if not provider.supports_download:
            raise ProviderError(f"{provider.name} does not support downloads")
        credential = self.resolve_credential(provider.name)
        if not credential:
            raise CredentialError(f"{provider.name} is not configured")

        result = provider.download(cancel_event or threading.Event(), credential, candidate)
        if not result.data:
            raise ProviderError(f"{provider.name} returned an empty subtitle file")

        output_dir = settings.get("subtitle_output_path") or self.settings.subtitle_output_path
        path = self.save_subtitle(result.data, output_dir, _subtitle_file_name(media, result.file_name))

        from db.library import record_subtitle_file
        try:
            record = record_subtitle_file(
                media["id"],
                candidate.get("language") or "unknown",
                provider.name,
                path,
                release_name=candidate.get("release_name") or "",
                checksum=hashlib.sha256(result.data).hexdigest(),
            )
        except FoursubsError:
            _remove_quietly(path)
            raise

        saved = SavedSubtitle(
            file_path=path,
            provider=provider.name,
            language=candidate.get("language") or "unknown",
            note=result.note,
            record=record,
        )
        from events import emit_event
        emit_event("subtitle_downloaded", {
            "media_id": media["id"],
            "provider": saved.provider,
            "language": saved.language,
            "file_name": os.path.basename(path),
        })
        return saved

    def save_subtitle(self, data: bytes, output_dir: str, file_name: str) -> str:
        """Write subtitle bytes below output_dir without replacing existing files.

        When the name is taken a numeric suffix is added (``name.1.srt``).

        Raises:
            ValidationError: The target would land outside output_dir.
            StorageError: Directory creation or the write failed.
        """
        from security_utils import is_safe_path

        try:
            os.makedirs(output_dir, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create subtitle directory: {e}") from e

        target = os.path.join(output_dir, file_name)
        if not is_safe_path(target, output_dir):
            raise ValidationError(f"subtitle path {file_name!r} is outside the output directory")

        base, ext = os.path.splitext(target)
        counter = 0
        while True:
            try:
                with open(target, "xb") as f:
                    f.write(data)
                break
            except FileExistsError:
                counter += 1
                target = f"{base}.{counter}{ext}"
            except OSError as e:
                logger.error("Failed to write subtitle to %s: %s", target, e)
                raise StorageError(f"Cannot write subtitle file: {e}") from e

        logger.info("Saved subtitle: %s (%d bytes)", target, len(data))
        return target

    # ---- Status ----

    def get_provider_status(self) -> list[dict]:
        """Provider list for the API: capabilities and whether credentials are stored."""
        from db.providers import list_credential_rows

        rows = {row["name"]: row for row in list_credential_rows()}
        status = []
        for name in sorted(self._providers):
            provider = self._providers[name]
            status.append({
                "name": name,
                "display_name": provider.display_name or name.upper(),
                "configured": rows.get(name, {}).get("configured", False),
                "enabled": True,
                "supports_search": provider.supports_search,
                "supports_download": provider.supports_download,
                "credential_fields": list(provider.credential_fields),
                "note": provider.note,
            })
        return status


def _subtitle_file_name(media: dict, provider_file_name: str) -> str:
    """Name a saved subtitle after its video, keeping the provider's extension."""
    ext = os.path.splitext(provider_file_name)[1].lower() or ".srt"
    video = os.path.basename(media.get("file_path") or "")
    stem = os.path.splitext(video)[0]
    if not stem:
        return provider_file_name
    return f"{stem}{ext}"


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        logger.warning("Could not remove orphaned subtitle %s: %s", path, e)
