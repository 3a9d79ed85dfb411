"""
End-to-end tests through the assembled application and the offline CLI.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import image_bytes, split_bytes
from dzi_ingest import main
from dzi_ingest.make_dzi import make_dzi
from dzi_ingest.routes import images, upload
from dzi_ingest.tile_engines.descriptor import descriptor_path, tiles_dir


class TestApplication:

    def test_health(self):
        client = TestClient(main.app)
        body = client.get("/").json()
        assert body["status"] == "running"
        assert "pillow" in body["available_engines"]

    def test_lifespan_wires_routes(self):
        with TestClient(main.app) as client:
            assert upload.orchestrator is not None
            assert images.registry is not None

            upload_id = client.post("/upload/init").json()["uploadId"]
            chunks = split_bytes(image_bytes(300, 120), 512)
            for index, chunk in enumerate(chunks):
                response = client.post(
                    "/upload/chunk",
                    data={"uploadId": upload_id, "chunkIndex": str(index)},
                    files={"chunk": ("blob", chunk, "application/octet-stream")},
                )
                assert response.status_code == 200

            response = client.post(
                "/upload/complete",
                json={"uploadId": upload_id, "totalChunks": len(chunks), "filename": "wired.png"},
            )
            assert response.status_code == 200
            assert response.json()["dziPath"].endswith("/wired.dzi")

            listed = client.get("/images/uploaded").json()
            assert upload_id in [entry["uploadId"] for entry in listed]

        assert upload.orchestrator is None
        assert images.registry is None
        assert (main.settings.TILES_DIR / "wired.dzi").is_file()


class TestMakeDzi:

    @pytest.mark.asyncio
    async def test_generates_pyramid(self, tmp_path):
        source = tmp_path / "slide.png"
        source.write_bytes(image_bytes(70, 50))
        out = tmp_path / "out" / "slide"

        assert await make_dzi(str(source), str(out)) == 0
        assert descriptor_path(out).is_file()
        assert (tiles_dir(out) / "7" / "0_0.jpeg").is_file()

    @pytest.mark.asyncio
    async def test_missing_source(self, tmp_path):
        assert await make_dzi(str(tmp_path / "nope.png"), str(tmp_path / "out")) == 1

    @pytest.mark.asyncio
    async def test_unreadable_source(self, tmp_path):
        source = tmp_path / "junk.png"
        source.write_bytes(b"junk")
        assert await make_dzi(str(source), str(tmp_path / "junk")) == 1


class TestHealth:

    def test_not_initialized(self):
        body = TestClient(main.app).get("/health").json()
        assert body == {"status": "degraded", "registry": "not_initialized", "liveSessions": 0}

    def test_reports_registry_and_sessions(self):
        with TestClient(main.app) as client:
            client.post("/upload/init")
            body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["registry"] == "ok"
        assert body["liveSessions"] >= 1

    def test_degraded_registry(self, monkeypatch):
        async def _down():
            return "error: connection refused"

        with TestClient(main.app) as client:
            monkeypatch.setattr(images.registry, "health_check", _down)
            body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["registry"] == "error: connection refused"
