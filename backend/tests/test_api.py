"""API tests for the /api/v1 blueprints (Flask test client, temp database)."""

import os

import pytest

from providers.base import DownloadResult, ProviderError, SubtitleProvider
from tests.fixtures.provider_responses import SRT_BODY

API = "/api/v1"


class StubProvider(SubtitleProvider):
    """In-process catalog used in place of the HTTP providers."""

    supports_download = True

    def __init__(self, name, rows=(), error=None):
        super().__init__()
        self.name = name
        self.rows = list(rows)
        self.error = error

    def search(self, cancel_event, credential, query):
        if self.error is not None:
            raise self.error
        return [self.make_candidate(query, cid, lang, relevance=rel, title=query.title)
                for cid, lang, rel in self.rows]

    def download(self, cancel_event, credential, candidate):
        return DownloadResult(data=SRT_BODY, file_name=f"{candidate['candidate_id']}.srt")


@pytest.fixture
def stub_manager(app, monkeypatch):
    from providers import ProviderManager

    manager = ProviderManager(providers=[
        StubProvider("assrt", rows=[("a1", "简体", 0.0), ("a2", "双语", 0.5)]),
        StubProvider("opensubtitles", error=ProviderError("opensubtitles search failed: 503")),
    ])
    monkeypatch.setattr("providers.get_provider_manager", lambda: manager)
    return manager


@pytest.fixture
def media_item(app):
    from db.library import list_media_items, upsert_media_items

    upsert_media_items([{
        "media_type": "episode",
        "title": "Breaking Bad",
        "year": None,
        "season": 1,
        "episode": 2,
        "file_path": "/media/tv/Breaking.Bad.S01E02.mkv",
        "has_subtitle": False,
    }])
    return list_media_items()[0]


def _configure(client, name, **fields):
    resp = client.post(f"{API}/providers/{name}/credential", json=fields)
    assert resp.status_code == 200
    return resp


class TestSystem:

    def test_health(self, client):
        resp = client.get(f"{API}/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "ok"
        assert data["service"] == "4subs"
        assert data["storage"] == "sqlite"
        assert data["job_queue"]["type"] == "memory"

    def test_unknown_api_route_is_404(self, client):
        assert client.post(f"{API}/does-not-exist").status_code in (404, 405)


class TestSettingsApi:

    def test_get_settings(self, client):
        data = client.get(f"{API}/settings").get_json()
        assert data["language_priority"] == ["bilingual", "zh-cn", "zh-tw"]
        assert data["auto_replace_existing"] is False

    def test_put_settings(self, client):
        resp = client.put(f"{API}/settings", json={
            "language_priority": ["zh-tw", "zh-cn"],
            "subtitle_output_path": "/subs",
            "auto_replace_existing": True,
        })
        assert resp.status_code == 200
        assert resp.get_json()["auto_replace_existing"] is False
        assert client.get(f"{API}/settings").get_json()["language_priority"] == ["zh-tw", "zh-cn"]

    def test_put_settings_emits_event(self, client):
        from events.catalog import settings_updated

        received = []

        def _listener(sender, data=None, **kwargs):
            received.append(data)

        settings_updated.connect(_listener)
        try:
            client.put(f"{API}/settings", json={
                "language_priority": ["en"], "subtitle_output_path": "/subs",
            })
        finally:
            settings_updated.disconnect(_listener)
        assert received == [{"language_priority": ["en"], "auto_replace_existing": False}]

    @pytest.mark.parametrize("body", [
        {"language_priority": [], "subtitle_output_path": "/subs"},
        {"language_priority": ["zh-cn"], "subtitle_output_path": "  "},
        {"subtitle_output_path": "/subs"},
    ])
    def test_put_settings_validation(self, client, body):
        resp = client.put(f"{API}/settings", json=body)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VAL_001"

    def test_put_settings_requires_json_object(self, client):
        resp = client.put(f"{API}/settings", data="not json", content_type="application/json")
        assert resp.status_code == 400

    def test_config_masks_secrets(self, client):
        data = client.get(f"{API}/config").get_json()
        assert data["app_secret"] == "***configured***"


class TestProvidersApi:

    def test_list_providers(self, client):
        data = client.get(f"{API}/providers").get_json()
        by_name = {p["name"]: p for p in data}
        assert set(by_name) == {"assrt", "opensubtitles"}
        assert by_name["assrt"]["configured"] is False
        assert by_name["assrt"]["display_name"] == "ASSRT"
        assert by_name["opensubtitles"]["supports_download"] is True

    def test_save_credential_trims_and_encrypts(self, client):
        from config import get_settings
        from credential_vault import parse_credential
        from db.providers import get_credential_blob

        resp = _configure(client, "opensubtitles", api_key=" key ", username="u", password="  ")
        assert resp.get_json() == {"provider": "opensubtitles", "configured": True}

        blob = get_credential_blob("opensubtitles")
        assert blob.startswith("enc:")
        assert parse_credential(blob, get_settings().app_secret, "opensubtitles") == {
            "api_key": "key", "username": "u",
        }
        by_name = {p["name"]: p for p in client.get(f"{API}/providers").get_json()}
        assert by_name["opensubtitles"]["configured"] is True

    def test_save_credential_name_is_case_insensitive(self, client):
        resp = client.post(f"{API}/providers/ASSRT/credential", json={"token": "t"})
        assert resp.get_json()["provider"] == "assrt"

    def test_all_blank_fields_rejected(self, client):
        resp = client.post(f"{API}/providers/assrt/credential", json={"token": "  "})
        assert resp.status_code == 400
        assert "no non-empty credential fields" in resp.get_json()["error"]

    def test_non_string_field_rejected(self, client):
        resp = client.post(f"{API}/providers/assrt/credential", json={"token": 5})
        assert resp.status_code == 400

    def test_unknown_provider(self, client):
        resp = client.post(f"{API}/providers/subscene/credential", json={"token": "t"})
        assert resp.status_code == 404


class TestScanApi:

    def test_scan_job_runs_and_persists_media(self, app, client, media_dir, make_media_file):
        from db.jobs import get_job
        from extensions import db

        make_media_file(media_dir, "movies/The.Matrix.1999.mkv")
        make_media_file(media_dir, "movies/The.Matrix.1999.zh.srt")
        make_media_file(media_dir, "tv/Show.S01E01.mp4")

        resp = client.post(f"{API}/scan")
        assert resp.status_code == 202
        job = resp.get_json()
        assert job["type"] == "scan"
        assert job["status"] == "queued"

        app.job_queue.shutdown(wait=True)
        db.session.remove()

        stored = get_job(job["id"])
        assert stored["status"] == "completed"
        assert stored["details"] == (
            "Scanned 2 video files, missing subtitles 1, inserted 2, updated 0"
        )
        media = client.get(f"{API}/media").get_json()
        assert {m["title"] for m in media} == {"The Matrix", "Show"}
        missing = client.get(f"{API}/media?missing_sub=true").get_json()
        assert [m["title"] for m in missing] == ["Show"]

        jobs = client.get(f"{API}/jobs?limit=1").get_json()
        assert [j["id"] for j in jobs] == [job["id"]]

    def test_scan_job_fails_when_deadline_already_passed(self, app, temp_env, make_media_file):
        from config import reload_settings
        from db.jobs import create_job
        from db.library import list_media_items
        from scan_job import run_scan_job

        make_media_file(temp_env / "media", "ok.mkv")
        reload_settings({"scan_timeout_seconds": -1})
        try:
            job = create_job("scan")
            result = run_scan_job(job["id"])
        finally:
            reload_settings()

        assert result["status"] == "failed"
        assert "scan deadline exceeded" in result["error"]
        assert list_media_items() == []

    def test_scan_job_keeps_good_root_when_another_fails(self, app, temp_env,
                                                         make_media_file, monkeypatch):
        from config import reload_settings
        from db.jobs import create_job
        from db.library import list_media_items
        from scan_job import run_scan_job

        good = temp_env / "media"
        bad = temp_env / "locked"
        make_media_file(good, "ok.mkv")
        make_media_file(bad, "hidden.mkv")
        real_walk = os.walk

        def _walk(top, onerror=None, **kwargs):
            if os.path.abspath(top) == str(bad):
                onerror(PermissionError(13, "Permission denied", str(bad)))
                return iter(())
            return real_walk(top, onerror=onerror, **kwargs)

        monkeypatch.setattr("library.scanner.os.walk", _walk)
        os.environ["FOURSUBS_MEDIA_PATHS"] = f"{bad},{good}"
        reload_settings()
        job = create_job("scan")
        result = run_scan_job(job["id"])

        assert result["status"] == "failed"
        assert str(bad) in result["error"]
        assert result["details"].startswith("Scanned 1 video files")
        assert [os.path.basename(m["file_path"]) for m in list_media_items()] == ["ok.mkv"]

    def test_unexpected_error_marks_job_failed(self, app, monkeypatch):
        from db.jobs import create_job, get_job
        from events.catalog import job_updated
        from scan_job import run_scan_job

        def _boom(items):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr("scan_job.upsert_media_items", _boom)
        received = []

        def _listener(sender, data=None, **kwargs):
            received.append(data)

        job = create_job("scan")
        job_updated.connect(_listener)
        try:
            result = run_scan_job(job["id"])
        finally:
            job_updated.disconnect(_listener)

        assert result["status"] == "failed"
        assert result["error"] == "disk on fire"
        assert get_job(job["id"])["status"] == "failed"
        assert [e["status"] for e in received] == ["running", "failed"]

    @pytest.mark.skipif(os.name != "posix", reason="needs byte file names")
    def test_scan_skips_undecodable_file_name(self, app, client, media_dir, make_media_file):
        from db.jobs import get_job
        from extensions import db

        make_media_file(media_dir, "Good.Movie.2010.mkv")
        try:
            with open(os.path.join(os.fsencode(str(media_dir)), b"Bad\xff.Name.mkv"), "wb"):
                pass
        except OSError:
            pytest.skip("filesystem rejects non UTF-8 file names")

        job = client.post(f"{API}/scan").get_json()
        app.job_queue.shutdown(wait=True)
        db.session.remove()

        assert get_job(job["id"])["status"] == "completed"
        media = client.get(f"{API}/media").get_json()
        assert [m["title"] for m in media] == ["Good Movie"]

    def test_media_limit_falls_back_when_out_of_range(self, client, media_item):
        assert len(client.get(f"{API}/media?limit=0").get_json()) == 1
        assert len(client.get(f"{API}/media?limit=abc").get_json()) == 1


class TestSearchApi:

    def test_invalid_media_id(self, client):
        resp = client.post(f"{API}/media/abc/search-subtitles")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "invalid media id"
        assert client.post(f"{API}/media/0/search-subtitles").status_code == 400

    def test_unknown_media(self, client):
        resp = client.post(f"{API}/media/999/search-subtitles")
        assert resp.status_code == 404

    def test_search_with_partial_failure(self, client, stub_manager, media_item):
        _configure(client, "assrt", token="tok")
        _configure(client, "opensubtitles", api_key="key")

        resp = client.post(f"{API}/media/{media_item['id']}/search-subtitles")

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["media_id"] == media_item["id"]
        assert data["count"] == 2
        assert data["providers_run"] == 2
        assert data["errors"] == {"opensubtitles": "opensubtitles search failed: 503"}
        assert [c["candidate_id"] for c in data["candidates"]] == ["a2", "a1"]

        stored = client.get(f"{API}/media/{media_item['id']}/candidates").get_json()
        assert [c["candidate_id"] for c in stored] == ["a2", "a1"]
        assert stored[0]["score"] == 30.5
        assert stored[0]["language"] == "bilingual"

    def test_unconfigured_providers_give_empty_result(self, client, stub_manager, media_item):
        data = client.post(f"{API}/media/{media_item['id']}/search-subtitles").get_json()
        assert data["count"] == 0
        assert data["providers_run"] == 0
        assert data["errors"] == {}

    def test_download_candidate_saves_file(self, app, client, stub_manager, media_item):
        from config import get_settings

        _configure(client, "assrt", token="tok")
        client.post(f"{API}/media/{media_item['id']}/search-subtitles")
        candidate = client.get(f"{API}/media/{media_item['id']}/candidates").get_json()[0]

        resp = client.post(
            f"{API}/media/{media_item['id']}/candidates/{candidate['id']}/download"
        )

        assert resp.status_code == 201
        saved = resp.get_json()
        expected = os.path.join(get_settings().subtitle_output_path, "Breaking.Bad.S01E02.srt")
        assert saved["file_path"] == expected
        with open(expected, "rb") as f:
            assert f.read() == SRT_BODY
        media = client.get(f"{API}/media").get_json()[0]
        assert media["has_subtitle"] is True

    def test_download_unknown_candidate(self, client, media_item):
        resp = client.post(f"{API}/media/{media_item['id']}/candidates/12345/download")
        assert resp.status_code == 404
