"""ASSRT (射手网) subtitle provider.

Chinese-focused catalog with a token-authenticated JSON API. Search and
detail responses carry an application-level ``status`` field that must be 0.

API docs: https://assrt.net/api/doc
"""

import logging

from error_handler import DecodeError
from providers import register_provider
from providers.base import (
    CandidateResult,
    DownloadResult,
    ProviderAuthError,
    ProviderError,
    SearchQuery,
    SubtitleProvider,
    first_non_empty,
)
from providers.http_session import raise_for_status
from security_utils import sanitize_filename

logger = logging.getLogger(__name__)

API_BASE = "https://api.assrt.net/v1"
SEARCH_URL = f"{API_BASE}/sub/search"
DETAIL_URL = f"{API_BASE}/sub/detail"


def _decode(resp, what: str) -> dict:
    try:
        payload = resp.json()
    except ValueError as e:
        raise DecodeError(f"{what}: invalid JSON response") from e
    if not isinstance(payload, dict):
        raise DecodeError(f"{what}: unexpected response shape")
    status = payload.get("status")
    if status != 0:
        raise ProviderError(f"{what} status {status}")
    return payload


def _subs(payload: dict) -> list:
    sub = payload.get("sub") or {}
    subs = sub.get("subs") if isinstance(sub, dict) else None
    return subs if isinstance(subs, list) else []


@register_provider
class AssrtProvider(SubtitleProvider):
    """ASSRT token API provider."""

    name = "assrt"
    display_name = "ASSRT"
    note = "ASSRT free tier starts at 20 req/min per token+IP"
    credential_fields = ("token",)
    supports_download = True

    @staticmethod
    def _token(credential: dict) -> str:
        token = (credential.get("token") or "").strip()
        if not token:
            raise ProviderAuthError("assrt token is empty")
        return token

    def search(self, cancel_event, credential: dict, query: SearchQuery) -> list[CandidateResult]:
        token = self._token(credential)
        text = query.build_query_text(include_year=True)
        if not text:
            raise ProviderError("empty search query")
        limit = query.limit if query.limit > 0 else 20

        self.check_cancelled(cancel_event)
        resp = self._session().get(SEARCH_URL, params={"token": token, "q": text, "cnt": limit})
        raise_for_status(resp, "assrt search")
        payload = _decode(resp, "assrt search")
        self.check_cancelled(cancel_event)

        results = []
        for item in _subs(payload)[:limit]:
            if not isinstance(item, dict) or item.get("id") is None:
                continue
            lang = item.get("lang") or {}
            try:
                votes = float(item.get("vote_score") or 0)
            except (TypeError, ValueError):
                votes = 0.0
            results.append(self.make_candidate(
                query,
                item["id"],
                lang.get("desc", "") if isinstance(lang, dict) else "",
                relevance=votes,
                title=first_non_empty(item.get("native_name"), item.get("videoname"), query.title),
                release_name=item.get("videoname") or "",
                details=item.get("detail") or "",
                raw=item,
            ))

        logger.debug("assrt: %d results for %r", len(results), text)
        return results

    def download(self, cancel_event, credential: dict, candidate: dict) -> DownloadResult:
        token = self._token(credential)
        candidate_id = str(candidate.get("candidate_id") or "").strip()
        if not candidate_id:
            raise ProviderError("candidate id is empty")

        self.check_cancelled(cancel_event)
        resp = self._session().get(DETAIL_URL, params={"token": token, "id": candidate_id})
        raise_for_status(resp, "assrt detail")
        subs = _subs(_decode(resp, "assrt detail"))
        if not subs or not isinstance(subs[0], dict):
            raise ProviderError("no subtitle detail found")

        item = subs[0]
        download_url = (item.get("url") or "").strip()
        file_name = (item.get("filename") or "").strip()
        for entry in item.get("filelist") or []:
            url = (entry.get("url") or "").strip() if isinstance(entry, dict) else ""
            if not url:
                continue
            download_url = url
            if (entry.get("f") or "").strip():
                file_name = entry["f"].strip()
            break
        if not download_url:
            raise ProviderError("assrt detail missing download url")

        self.check_cancelled(cancel_event)
        file_resp = self._session().get(download_url)
        raise_for_status(file_resp, "assrt file download")

        fallback = f"assrt_{candidate_id}.srt"
        return DownloadResult(
            data=file_resp.content,
            file_name=sanitize_filename(file_name, fallback),
            note="assrt detail download",
        )
