"""OpenSubtitles.com REST API v1 provider.

Uses the REST API (not the legacy XML-RPC). Requires an API key; a user
token (given directly or obtained by logging in with username/password)
is needed for downloads and raises search limits.

API docs: https://opensubtitles.stoplight.io/docs/opensubtitles-api/
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
from providers.http_session import DEFAULT_USER_AGENT, raise_for_status
from security_utils import sanitize_filename

logger = logging.getLogger(__name__)

API_BASE = "https://api.opensubtitles.com/api/v1"
SEARCH_LANGUAGES = "zh-cn,zh-tw,zh,en"


def _json(resp, what: str) -> dict:
    try:
        payload = resp.json()
    except ValueError as e:
        raise DecodeError(f"{what}: invalid JSON response") from e
    if not isinstance(payload, dict):
        raise DecodeError(f"{what}: unexpected response shape")
    return payload


def _int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@register_provider
class OpenSubtitlesProvider(SubtitleProvider):
    """OpenSubtitles.com REST API provider."""

    name = "opensubtitles"
    display_name = "OpenSubtitles.com"
    note = "OpenSubtitles.com API only"
    credential_fields = ("api_key", "username", "password", "token", "user_agent")
    supports_download = True

    @staticmethod
    def _headers(credential: dict, token: str = "") -> dict:
        api_key = (credential.get("api_key") or "").strip()
        if not api_key:
            raise ProviderAuthError("opensubtitles api_key is empty")
        headers = {
            "Api-Key": api_key,
            "User-Agent": (credential.get("user_agent") or "").strip() or DEFAULT_USER_AGENT,
            "Content-Type": "application/json",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _login(self, headers: dict, username: str, password: str) -> str:
        resp = self._session().post(
            f"{API_BASE}/login",
            json={"username": username, "password": password},
            headers=headers,
        )
        raise_for_status(resp, "opensubtitles login")
        token = (_json(resp, "opensubtitles login").get("token") or "").strip()
        if not token:
            raise ProviderAuthError("empty login token")
        logger.info("OpenSubtitles: logged in as %s", username)
        return token

    def _resolve_token(self, credential: dict, headers: dict) -> str:
        """Stored token, else a fresh login token, else "" when no user is configured."""
        token = (credential.get("token") or "").strip()
        if token:
            return token
        username = (credential.get("username") or "").strip()
        password = (credential.get("password") or "").strip()
        if not username or not password:
            return ""
        return self._login(headers, username, password)

    def search(self, cancel_event, credential: dict, query: SearchQuery) -> list[CandidateResult]:
        headers = self._headers(credential)

        # Anonymous search still works with the API key alone
        try:
            token = self._resolve_token(credential, headers)
        except (ProviderError, DecodeError) as e:
            logger.warning("OpenSubtitles login failed, searching without user token: %s", e)
            token = ""
        self.check_cancelled(cancel_event)

        text = query.build_query_text(include_year=False)
        if not text:
            raise ProviderError("empty search query")

        params = {
            "query": text,
            "languages": SEARCH_LANGUAGES,
            "order_by": "download_count",
            "order_direction": "desc",
        }
        if query.year is not None:
            params["year"] = query.year
        if query.media_type == "episode":
            if query.season is not None:
                params["season_number"] = query.season
            if query.episode is not None:
                params["episode_number"] = query.episode

        resp = self._session().get(
            f"{API_BASE}/subtitles", params=params, headers=self._headers(credential, token)
        )
        raise_for_status(resp, "opensubtitles search")
        data = _json(resp, "opensubtitles search").get("data") or []
        self.check_cancelled(cancel_event)

        limit = query.limit if query.limit > 0 else 20
        results = []
        for item in data[:limit]:
            if not isinstance(item, dict):
                continue
            attrs = item.get("attributes") or {}
            files = attrs.get("files") or []
            first_file = files[0] if files and isinstance(files[0], dict) else {}

            candidate_id = str(item.get("id") or "").strip()
            if _int(first_file.get("file_id")) > 0:
                candidate_id = str(_int(first_file.get("file_id")))

            downloads = _int(attrs.get("download_count"))
            trusted = bool(attrs.get("from_trusted"))
            relevance = downloads / 200.0 + (2.0 if trusted else 0.0)
            feature = attrs.get("feature_details") or {}

            results.append(self.make_candidate(
                query,
                candidate_id,
                attrs.get("language") or "",
                relevance=relevance,
                title=first_non_empty(feature.get("title"), query.title),
                release_name=attrs.get("release") or first_file.get("file_name") or "",
                details=f"downloads={downloads} trusted={'true' if trusted else 'false'}",
                raw=item,
            ))

        logger.debug("opensubtitles: %d results for %r", len(results), text)
        return results

    def download(self, cancel_event, credential: dict, candidate: dict) -> DownloadResult:
        headers = self._headers(credential)
        token = self._resolve_token(credential, headers)
        if not token:
            raise ProviderAuthError("opensubtitles requires authenticated user for download")

        file_id = _int(str(candidate.get("candidate_id") or "").strip())
        if file_id <= 0:
            raise ProviderError(f"invalid file id: {candidate.get('candidate_id')}")

        self.check_cancelled(cancel_event)
        resp = self._session().post(
            f"{API_BASE}/download",
            json={"file_id": file_id},
            headers=self._headers(credential, token),
        )
        raise_for_status(resp, "opensubtitles download request")
        payload = _json(resp, "opensubtitles download request")

        link = (payload.get("link") or "").strip()
        if not link:
            message = (payload.get("message") or "").strip()
            if message:
                raise ProviderError(f"opensubtitles download error: {message}")
            raise ProviderError("opensubtitles download response missing link")

        self.check_cancelled(cancel_event)
        file_resp = self._session().get(link)
        raise_for_status(file_resp, "opensubtitles file download")

        fallback = f"opensubtitles_{file_id}.srt"
        name = first_non_empty(payload.get("file_name"), candidate.get("release_name"), fallback)
        return DownloadResult(
            data=file_resp.content,
            file_name=sanitize_filename(name, fallback),
            note=f"requests={_int(payload.get('requests'))} remaining={_int(payload.get('remaining'))}",
        )
