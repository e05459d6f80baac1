"""HTTP contract for intake, status polling and service introspection."""

from __future__ import annotations

import os
from pathlib import Path
import tempfile
import time
import unittest

from fastapi.testclient import TestClient
from fake_media_tools import FakeMediaTools, build_pipeline

from app.core.config import Settings, get_settings
from app.main import create_app
from app.schemas.job import JobOutputs
from app.services.encoder import ResolutionEncoder
from app.services.runner import JobRunner

_CDN = "https://cdn.example.com"


class _ApiCase(unittest.TestCase):
    max_upload_bytes = 500 * 1024 * 1024

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.settings = Settings(
            cdn_base_url=f"{_CDN}/",
            storage_provider="memory",
            uploads_dir=root / "uploads",
            output_dir=root / "output",
            max_upload_bytes=self.max_upload_bytes,
        )
        self.tools = FakeMediaTools()
        self.app = create_app(self.settings)
        self.harness = build_pipeline(
            self.tools,
            store=self.app.state.store,
            storage=self.app.state.storage,
            cdn_base_url=self.settings.cdn_base,
        )
        self.app.state.encoder = ResolutionEncoder(runner_factory=self.tools)
        self.app.state.job_runner = JobRunner(self.harness.orchestrator, max_concurrent_jobs=2)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    @staticmethod
    def _video(name: str = "clip.mp4", body: bytes = b"\x00\x00\x00\x18ftypmp42", content_type: str = "video/mp4"):
        return {"video": (name, body, content_type)}

    def _wait_for_terminal(self, client: TestClient, job_id: str) -> dict:
        deadline = time.monotonic() + 10
        while time.monotonic() < deadline:
            payload = client.get(f"/job/{job_id}/status").json()
            if payload["status"] in {"completed", "failed"}:
                return payload
            time.sleep(0.01)
        self.fail(f"job {job_id} did not finish")


class ConvertApiTests(_ApiCase):
    def test_accepts_upload_and_predicted_urls_match_published_package(self) -> None:
        with TestClient(self.app) as client:
            response = client.post(
                "/convert",
                files=self._video(),
                data={"userId": "user-1", "videoId": "abc123", "caption": "first reel"},
            )

            self.assertEqual(response.status_code, 200)
            payload = response.json()
            self.assertEqual(
                payload,
                {
                    "success": True,
                    "jobId": "abc123",
                    "status": "processing",
                    "message": "Video processing started in background",
                    "hlsUrl": f"{_CDN}/reels/hls/abc123/master.m3u8",
                    "thumbnailUrl": f"{_CDN}/reels/hls/abc123/thumbnail.jpg",
                },
            )

            final = self._wait_for_terminal(client, "abc123")

        self.assertEqual(final["status"], "completed")
        self.assertEqual(final["progress"], 100)
        self.assertEqual(final["hlsUrl"], payload["hlsUrl"])
        self.assertEqual(final["thumbnailUrl"], payload["thumbnailUrl"])
        self.assertIsNotNone(final["completedAt"])
        self.assertIn("reels/hls/abc123/master.m3u8", self.harness.storage.objects)
        self.assertIn("reels/hls/abc123/thumbnail.jpg", self.harness.storage.objects)
        self.assertEqual(list(self.settings.uploads_dir.iterdir()), [])
        self.assertFalse((self.settings.output_dir / "abc123").exists())
        self.assertEqual(self.harness.transport.sent[-1].data["type"], "reel_posted")

    def test_failed_job_reports_error_through_status(self) -> None:
        self.tools.fail_rendition = "720p"
        with TestClient(self.app) as client:
            client.post("/convert", files=self._video(), data={"userId": "user-1", "videoId": "bad-source"})
            final = self._wait_for_terminal(client, "bad-source")

        self.assertEqual(final["status"], "failed")
        self.assertIn("720p", final["error"])
        self.assertEqual(self.harness.storage.put_log, [])

    def test_legacy_alias_and_generated_job_id(self) -> None:
        with TestClient(self.app) as client:
            response = client.post("/convert-hls", files=self._video(), data={"userId": "user-1"})
            self.assertEqual(response.status_code, 200)
            job_id = response.json()["jobId"]
            self.assertTrue(job_id)
            self.assertEqual(response.json()["hlsUrl"], f"{_CDN}/reels/hls/{job_id}/master.m3u8")
            self._wait_for_terminal(client, job_id)

    def test_non_video_upload_is_rejected(self) -> None:
        with TestClient(self.app) as client:
            response = client.post(
                "/convert",
                files=self._video(name="notes.txt", content_type="text/plain"),
                data={"userId": "user-1", "videoId": "abc123"},
            )
            status = client.get("/job/abc123/status")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")
        self.assertEqual(status.status_code, 404)

    def test_missing_fields_return_validation_error_envelope(self) -> None:
        cases = {
            "userId": {"files": self._video(), "data": {"videoId": "abc123"}},
            "video": {"files": None, "data": {"userId": "user-1"}},
        }
        with TestClient(self.app) as client:
            for field_name, request in cases.items():
                with self.subTest(field=field_name):
                    response = client.post("/convert", files=request["files"], data=request["data"])
                    self.assertEqual(response.status_code, 400)
                    payload = response.json()
                    self.assertEqual(payload["code"], "VALIDATION_ERROR")
                    self.assertIn(field_name, payload["details"]["fields"])

    def test_unsafe_video_id_is_rejected(self) -> None:
        with TestClient(self.app) as client:
            for video_id in ("../etc/passwd", "a b", "x" * 129):
                with self.subTest(video_id=video_id):
                    response = client.post(
                        "/convert",
                        files=self._video(),
                        data={"userId": "user-1", "videoId": video_id},
                    )
                    self.assertEqual(response.status_code, 400)
                    self.assertEqual(response.json()["code"], "VALIDATION_ERROR")

        self.assertEqual(self.app.state.store.jobs, {})

    def test_duplicate_active_job_id_is_rejected(self) -> None:
        store = self.app.state.store
        store.create_job(
            job_id="abc123",
            owner_id="user-1",
            caption=None,
            source_path=self.settings.uploads_dir / "abc123.mp4",
            work_dir=self.settings.output_dir / "abc123",
            outputs=JobOutputs(hls_url="h", thumbnail_url="t"),
        )
        with TestClient(self.app) as client:
            response = client.post("/convert", files=self._video(), data={"userId": "user-2", "videoId": "abc123"})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "JOB_ALREADY_RUNNING")
        self.assertEqual(store.jobs["abc123"].owner_id, "user-1")


class UploadLimitApiTests(_ApiCase):
    max_upload_bytes = 16

    def test_oversized_upload_is_rejected_and_discarded(self) -> None:
        with TestClient(self.app) as client:
            response = client.post(
                "/convert",
                files=self._video(body=b"\x00" * 64),
                data={"userId": "user-1", "videoId": "big"},
            )

        self.assertEqual(response.status_code, 413)
        self.assertEqual(response.json()["code"], "PAYLOAD_TOO_LARGE")
        self.assertEqual(response.json()["details"], {"max_bytes": 16})
        self.assertNotIn("big", self.app.state.store.jobs)
        self.assertEqual(list(self.settings.uploads_dir.iterdir()), [])


class StatusApiTests(_ApiCase):
    def test_unknown_job_returns_no_leak_404(self) -> None:
        with TestClient(self.app) as client:
            response = client.get("/job/never-submitted/status")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"code": "RESOURCE_NOT_FOUND", "message": "Resource not found"})

    def test_queued_job_reports_zero_progress_and_predicted_urls(self) -> None:
        self.app.state.store.create_job(
            job_id="waiting",
            owner_id="user-1",
            caption=None,
            source_path=self.settings.uploads_dir / "waiting.mp4",
            work_dir=self.settings.output_dir / "waiting",
            outputs=JobOutputs(
                hls_url=f"{_CDN}/reels/hls/waiting/master.m3u8",
                thumbnail_url=f"{_CDN}/reels/hls/waiting/thumbnail.jpg",
            ),
        )
        with TestClient(self.app) as client:
            payload = client.get("/job/waiting/status").json()

        self.assertEqual(payload["jobId"], "waiting")
        self.assertEqual(payload["status"], "queued")
        self.assertEqual(payload["progress"], 0)
        self.assertEqual(payload["stageProgress"], 0)
        self.assertIsNone(payload["error"])
        self.assertIsNone(payload["startedAt"])


class SystemApiTests(_ApiCase):
    def test_health_reports_encoder_availability(self) -> None:
        with TestClient(self.app) as client:
            payload = client.get("/health").json()

        self.assertEqual(payload["status"], "ok")
        self.assertEqual(payload["service"], "reels-transcoder")
        self.assertEqual(payload["ffmpeg"], "ready")
        self.assertIn("timestamp", payload)

    def test_stats_reports_queue_depth_and_memory(self) -> None:
        with TestClient(self.app) as client:
            (self.settings.uploads_dir / "pending.mp4").write_bytes(b"x")
            payload = client.get("/stats").json()

        self.assertEqual(payload["pendingUploads"], 1)
        self.assertEqual(payload["processingJobs"], 0)
        self.assertEqual(payload["activeJobs"], 0)
        self.assertEqual(payload["trackedJobs"], 0)
        self.assertGreaterEqual(payload["uptime"], 0)
        self.assertGreater(payload["memory"]["rss"], 0)


class _SettingsEnvCase(unittest.TestCase):
    _env_keys = (
        "REELS_STORAGE_PROVIDER",
        "REELS_CDN_BASE_URL",
        "REELS_MAX_CONCURRENT_JOBS",
    )

    def setUp(self) -> None:
        self._old_env = {k: os.environ.get(k) for k in self._env_keys}
        os.environ["REELS_STORAGE_PROVIDER"] = "memory"
        os.environ["REELS_CDN_BASE_URL"] = "https://media.example.org/"
        os.environ["REELS_MAX_CONCURRENT_JOBS"] = "4"
        get_settings.cache_clear()

    def tearDown(self) -> None:
        for key, value in self._old_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        get_settings.cache_clear()


class SettingsFromEnvTests(_SettingsEnvCase):
    def test_environment_overrides_defaults(self) -> None:
        settings = get_settings()

        self.assertEqual(settings.storage_provider, "memory")
        self.assertEqual(settings.cdn_base, "https://media.example.org")
        self.assertEqual(settings.max_concurrent_jobs, 4)
        self.assertEqual(settings.max_upload_bytes, 500 * 1024 * 1024)

    def test_app_uses_cached_settings_when_none_given(self) -> None:
        app = create_app()
        self.assertIs(app.state.settings, get_settings())
        self.assertEqual(type(app.state.storage).__name__, "InMemoryObjectStorage")


if __name__ == "__main__":
    unittest.main()
