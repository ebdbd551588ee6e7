"""Tests for the catalog providers and their HTTP session (mocked HTTP)."""

import threading
import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from error_handler import DecodeError
from providers.assrt import SEARCH_URL, AssrtProvider
from providers.base import (
    ProviderAuthError,
    ProviderCancelledError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    SearchQuery,
)
from providers.http_session import RetryingSession, raise_for_status
from providers.opensubtitles import API_BASE, OpenSubtitlesProvider
from tests.fixtures.provider_responses import (
    ASSRT_DETAIL_RESPONSE,
    ASSRT_SEARCH_RESPONSE,
    ASSRT_STATUS_ERROR_RESPONSE,
    OPENSUBTITLES_DOWNLOAD_RESPONSE,
    OPENSUBTITLES_EMPTY_RESPONSE,
    OPENSUBTITLES_LOGIN_RESPONSE,
    OPENSUBTITLES_QUOTA_RESPONSE,
    OPENSUBTITLES_SEARCH_RESPONSE,
    SRT_BODY,
)

PRIORITY = ("bilingual", "zh-cn", "zh-tw")


def _response(status=200, json_data=None, content=b"", headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = json_data
    resp.content = content
    resp.text = str(json_data) if json_data is not None else content.decode("utf-8", "replace")
    resp.headers = headers or {}
    return resp


def _episode_query(**overrides):
    fields = dict(title="Breaking Bad", media_type="episode", season=1, episode=2,
                  media_id=7, limit=20, language_priority=PRIORITY)
    fields.update(overrides)
    return SearchQuery(**fields)


class TestSearchQuery:

    def test_episode_query_text(self):
        q = _episode_query(year=2008)
        assert q.build_query_text() == "Breaking Bad S01E02"
        assert q.build_query_text(include_year=True) == "Breaking Bad S01E02 2008"

    def test_movie_without_season_is_not_an_episode(self):
        q = SearchQuery(title="Heat", media_type="episode", season=None, episode=3)
        assert q.is_episode is False
        assert q.build_query_text() == "Heat"

    def test_from_media(self):
        media = {"id": 3, "title": " Heat ", "media_type": "movie", "year": 1995,
                 "season": None, "episode": None, "file_path": "/m/Heat.mkv"}
        q = SearchQuery.from_media(media, ["zh-cn"], limit=5)
        assert q.title == "Heat"
        assert q.media_id == 3
        assert q.limit == 5
        assert q.language_priority == ("zh-cn",)


class TestAssrtProvider:

    def test_search_builds_scored_candidates(self):
        session = MagicMock()
        session.get.return_value = _response(json_data=ASSRT_SEARCH_RESPONSE)
        provider = AssrtProvider(session=session)

        results = provider.search(threading.Event(), {"token": "tok"}, _episode_query())

        session.get.assert_called_once_with(
            SEARCH_URL, params={"token": "tok", "q": "Breaking Bad S01E02", "cnt": 20}
        )
        assert [r.candidate_id for r in results] == ["602333", "602334"]
        first, second = results
        assert first.provider == "assrt"
        assert first.language == "bilingual"
        assert first.language_text == "双语"
        assert first.title == "绝命毒师"
        assert first.release_name == "Breaking.Bad.S01E02.720p.BluRay.x264"
        assert first.details == "resolution=720p"
        assert first.score == 34
        assert second.language == "zh-tw"
        assert second.title == "Breaking.Bad.S01E02.HDTV"
        assert second.score == 11.5

    def test_search_includes_year(self):
        session = MagicMock()
        session.get.return_value = _response(json_data={"status": 0, "sub": {"subs": []}})
        provider = AssrtProvider(session=session)

        provider.search(threading.Event(), {"token": "tok"},
                        SearchQuery(title="Heat", year=1995, limit=5))

        assert session.get.call_args.kwargs["params"]["q"] == "Heat 1995"
        assert session.get.call_args.kwargs["params"]["cnt"] == 5

    def test_status_field_must_be_zero(self):
        session = MagicMock()
        session.get.return_value = _response(json_data=ASSRT_STATUS_ERROR_RESPONSE)
        with pytest.raises(ProviderError, match="status 101"):
            AssrtProvider(session=session).search(threading.Event(), {"token": "t"}, _episode_query())

    def test_http_error_carries_body(self):
        session = MagicMock()
        session.get.return_value = _response(status=500, content=b"upstream broke")
        with pytest.raises(ProviderError, match="assrt search failed: 500 upstream broke"):
            AssrtProvider(session=session).search(threading.Event(), {"token": "t"}, _episode_query())

    def test_invalid_json_is_decode_error(self):
        session = MagicMock()
        resp = _response()
        resp.json.side_effect = ValueError("no json")
        session.get.return_value = resp
        with pytest.raises(DecodeError):
            AssrtProvider(session=session).search(threading.Event(), {"token": "t"}, _episode_query())

    def test_empty_token_rejected(self):
        session = MagicMock()
        with pytest.raises(ProviderAuthError):
            AssrtProvider(session=session).search(threading.Event(), {"token": " "}, _episode_query())
        session.get.assert_not_called()

    def test_cancelled_before_request(self):
        session = MagicMock()
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ProviderCancelledError):
            AssrtProvider(session=session).search(cancel, {"token": "t"}, _episode_query())
        session.get.assert_not_called()

    def test_download_prefers_filelist_entry(self):
        session = MagicMock()
        session.get.side_effect = [
            _response(json_data=ASSRT_DETAIL_RESPONSE),
            _response(content=SRT_BODY),
        ]
        result = AssrtProvider(session=session).download(
            threading.Event(), {"token": "tok"}, {"candidate_id": "602333"}
        )

        assert result.data == SRT_BODY
        assert result.file_name == "Breaking.Bad.S01E02.chs&eng.srt"
        assert session.get.call_args_list[1].args[0] == (
            "https://file.assrt.net/onthefly/602333/1/sub.srt"
        )

    def test_download_falls_back_to_generated_name(self):
        detail = {"status": 0, "sub": {"subs": [{"id": 9, "url": "https://x/9.srt"}]}}
        session = MagicMock()
        session.get.side_effect = [_response(json_data=detail), _response(content=SRT_BODY)]
        result = AssrtProvider(session=session).download(
            threading.Event(), {"token": "tok"}, {"candidate_id": "9"}
        )
        assert result.file_name == "assrt_9.srt"


class TestOpenSubtitlesProvider:

    def test_anonymous_search_with_api_key(self):
        session = MagicMock()
        session.get.return_value = _response(json_data=OPENSUBTITLES_SEARCH_RESPONSE)
        provider = OpenSubtitlesProvider(session=session)

        results = provider.search(threading.Event(), {"api_key": "key"}, _episode_query(year=2008))

        session.post.assert_not_called()
        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        headers = session.get.call_args.kwargs["headers"]
        assert url == f"{API_BASE}/subtitles"
        assert params["query"] == "Breaking Bad S01E02"
        assert params["order_by"] == "download_count"
        assert params["year"] == 2008
        assert params["season_number"] == 1
        assert params["episode_number"] == 2
        assert headers["Api-Key"] == "key"
        assert "Authorization" not in headers

        first, second = results
        assert first.candidate_id == "67890"
        assert first.language == "zh-cn"
        assert first.title == "Cat's in the Bag..."
        assert first.details == "downloads=1000 trusted=true"
        assert first.score == 27
        assert second.candidate_id == "12346"
        assert second.title == "Breaking Bad"
        assert second.release_name == "Breaking.Bad.S01E02.en.srt"
        assert second.details == "downloads=200 trusted=false"
        assert second.score == 4

    def test_search_logs_in_with_username_and_password(self):
        session = MagicMock()
        session.post.return_value = _response(json_data=OPENSUBTITLES_LOGIN_RESPONSE)
        session.get.return_value = _response(json_data=OPENSUBTITLES_EMPTY_RESPONSE)
        credential = {"api_key": "key", "username": "u", "password": "p"}

        results = OpenSubtitlesProvider(session=session).search(
            threading.Event(), credential, _episode_query()
        )

        assert results == []
        assert session.post.call_args.args[0] == f"{API_BASE}/login"
        assert session.post.call_args.kwargs["json"] == {"username": "u", "password": "p"}
        assert session.get.call_args.kwargs["headers"]["Authorization"] == "Bearer user-jwt-token"

    def test_failed_login_still_searches_anonymously(self):
        session = MagicMock()
        session.post.return_value = _response(status=500, content=b"down")
        session.get.return_value = _response(json_data=OPENSUBTITLES_EMPTY_RESPONSE)
        credential = {"api_key": "key", "username": "u", "password": "p"}

        OpenSubtitlesProvider(session=session).search(threading.Event(), credential, _episode_query())

        assert "Authorization" not in session.get.call_args.kwargs["headers"]

    def test_results_capped_at_limit(self):
        session = MagicMock()
        session.get.return_value = _response(json_data=OPENSUBTITLES_SEARCH_RESPONSE)
        results = OpenSubtitlesProvider(session=session).search(
            threading.Event(), {"api_key": "key"}, _episode_query(limit=1)
        )
        assert len(results) == 1

    def test_api_key_required(self):
        with pytest.raises(ProviderAuthError):
            OpenSubtitlesProvider(session=MagicMock()).search(
                threading.Event(), {"username": "u"}, _episode_query()
            )

    def test_download_with_stored_token(self):
        session = MagicMock()
        session.post.return_value = _response(json_data=OPENSUBTITLES_DOWNLOAD_RESPONSE)
        session.get.return_value = _response(content=SRT_BODY)

        result = OpenSubtitlesProvider(session=session).download(
            threading.Event(), {"api_key": "key", "token": "tok"}, {"candidate_id": "67890"}
        )

        assert session.post.call_args.args[0] == f"{API_BASE}/download"
        assert session.post.call_args.kwargs["json"] == {"file_id": 67890}
        assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"
        assert result.data == SRT_BODY
        assert result.file_name == "Breaking.Bad.S01E02.720p.BluRay.x264.srt"
        assert result.note == "requests=3 remaining=97"

    def test_download_quota_message_is_reported(self):
        session = MagicMock()
        session.post.return_value = _response(json_data=OPENSUBTITLES_QUOTA_RESPONSE)
        with pytest.raises(ProviderError, match="allowed 100 subtitles"):
            OpenSubtitlesProvider(session=session).download(
                threading.Event(), {"api_key": "key", "token": "tok"}, {"candidate_id": "1"}
            )

    def test_download_requires_user(self):
        with pytest.raises(ProviderAuthError, match="authenticated user"):
            OpenSubtitlesProvider(session=MagicMock()).download(
                threading.Event(), {"api_key": "key"}, {"candidate_id": "1"}
            )

    def test_download_rejects_invalid_file_id(self):
        with pytest.raises(ProviderError, match="invalid file id"):
            OpenSubtitlesProvider(session=MagicMock()).download(
                threading.Event(), {"api_key": "key", "token": "t"}, {"candidate_id": "abc"}
            )


class TestRetryingSession:

    @patch("requests.Session.request")
    def test_default_timeout_applied(self, mock_request):
        mock_request.return_value = _response()
        RetryingSession(timeout=7).get("https://example.test/x")
        assert mock_request.call_args.kwargs["timeout"] == 7

    @patch("requests.Session.request")
    def test_rate_limit_sets_backoff(self, mock_request):
        mock_request.return_value = _response(status=429, headers={"Retry-After": "30"})
        session = RetryingSession()

        with pytest.raises(ProviderRateLimitError):
            session.get("https://example.test/search?token=secret")
        with pytest.raises(ProviderRateLimitError, match="retry in"):
            session.get("https://example.test/search")
        assert mock_request.call_count == 1

    @patch("requests.Session.request")
    def test_auth_failure(self, mock_request):
        mock_request.return_value = _response(status=401)
        with pytest.raises(ProviderAuthError, match="HTTP 401"):
            RetryingSession().get("https://example.test/login")

    @patch("requests.Session.request")
    def test_timeout_mapped(self, mock_request):
        mock_request.side_effect = requests.Timeout("slow")
        with pytest.raises(ProviderTimeoutError):
            RetryingSession().get("https://example.test/slow")

    @patch("requests.Session.request")
    def test_network_error_hides_query_string(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ProviderError) as excinfo:
            RetryingSession().get("https://example.test/search?token=secret")
        assert "secret" not in str(excinfo.value)

    def test_raise_for_status(self):
        raise_for_status(_response(status=200), "ok")
        with pytest.raises(ProviderError, match="thing failed: 404"):
            raise_for_status(_response(status=404, content=b"nope"), "thing")


class TestProviderSession:

    def test_injected_session_is_used(self):
        session = MagicMock()
        assert AssrtProvider(session=session)._session() is session

    def test_lazy_session_created_once_under_concurrency(self):
        created = []

        def _slow_create(timeout=20):
            time.sleep(0.05)
            session = MagicMock(default_timeout=timeout)
            created.append(session)
            return session

        provider = OpenSubtitlesProvider(request_timeout=7)
        barrier = threading.Barrier(8)
        seen = []

        def _worker():
            barrier.wait()
            seen.append(provider._session())

        with patch("providers.http_session.create_session", side_effect=_slow_create):
            threads = [threading.Thread(target=_worker) for _ in range(8)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert len(created) == 1
        assert all(s is created[0] for s in seen)
        assert created[0].default_timeout == 7
