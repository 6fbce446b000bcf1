import uuid
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

import services
from conftest import FakeScriptProvider
from exceptions import ExtractionError
from main import app
from models import Job, JobStatus
from routers import videos
from schemas import ProductData


@pytest.fixture
def client(db, monkeypatch, script):
    scheduled = []
    monkeypatch.setattr(videos, "render_video_task", SimpleNamespace(delay=scheduled.append))
    monkeypatch.setattr(services, "_script_provider", FakeScriptProvider(script=script))
    test_client = TestClient(app)
    test_client.scheduled = scheduled
    return test_client


def _completed_job(db, tmp_path, size=1000):
    video = tmp_path / "video.mp4"
    video.write_bytes(bytes(range(256)) * (size // 256) + bytes(size % 256))
    job = Job(
        id=str(uuid.uuid4()),
        url="https://shop.example.com/p",
        product_data="{}",
        ad_script="{}",
        aspect_ratio="16:9",
        template="default",
        status=JobStatus.COMPLETED.value,
        video_path=str(video),
    )
    db.add(job)
    db.commit()
    return job.id, video


PRODUCT_PAYLOAD = {
    "productData": {
        "url": "https://shop.example.com/products/lamp",
        "title": "Desk Lamp",
        "description": "A warm desk lamp.",
        "images": [],
        "features": [],
    },
    "aspectRatio": "9:16",
    "template": "default",
}


def test_root(client):
    assert client.get("/").status_code == 200


def test_generate_video_returns_processing_job(client):
    response = client.post("/api/generate-video", json=PRODUCT_PAYLOAD)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "processing"
    assert "createdAt" in body
    assert "videoUrl" not in body
    assert client.scheduled == [body["id"]]

    status = client.get(f"/api/video/{body['id']}").json()
    assert status["status"] == "processing"


def test_generate_video_requires_product(client):
    response = client.post("/api/generate-video", json={"aspectRatio": "16:9"})
    assert response.status_code == 400
    assert response.json() == {"error": "Product data is required"}


def test_generate_video_rejects_unknown_aspect_ratio(client):
    response = client.post("/api/generate-video", json={**PRODUCT_PAYLOAD, "aspectRatio": "4:3"})
    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.parametrize("title", ["", "   ", "ab"])
def test_generate_video_rejects_unusable_title(client, title):
    payload = {**PRODUCT_PAYLOAD, "productData": {**PRODUCT_PAYLOAD["productData"], "title": title}}

    response = client.post("/api/generate-video", json=payload)

    assert response.status_code == 400
    assert "title" in response.json()["error"]
    assert client.scheduled == []


def test_generate_video_rejects_unknown_voice(client):
    response = client.post("/api/generate-video", json={**PRODUCT_PAYLOAD, "voice": "robot"})
    assert response.status_code == 400
    assert "voice" in response.json()["error"]


def test_generate_video_script_failure_is_reported(client, monkeypatch):
    from exceptions import ProviderError
    monkeypatch.setattr(services, "_script_provider", FakeScriptProvider(error=ProviderError("No response from language model")))

    body = client.post("/api/generate-video", json=PRODUCT_PAYLOAD).json()

    assert body["status"] == "failed"
    assert body["error"] == "No response from language model"
    assert client.scheduled == []


def test_scrape_returns_product(client):
    product = ProductData(url="https://example.com/p", title="Desk Lamp", images=["https://example.com/1.jpg"])
    with patch("routers.videos.ProductScraper") as scraper:
        scraper.return_value.run.return_value = product
        response = client.post("/api/scrape", json={"url": "https://example.com/p"})

    assert response.status_code == 200
    assert response.json()["title"] == "Desk Lamp"


def test_scrape_requires_url(client):
    response = client.post("/api/scrape", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "URL is required"}


def test_scrape_failure_is_bad_request(client):
    with patch("routers.videos.ProductScraper") as scraper:
        scraper.return_value.run.side_effect = ExtractionError("Could not extract product title")
        response = client.post("/api/scrape", json={"url": "https://example.com/p"})

    assert response.status_code == 400
    assert response.json() == {"error": "Could not extract product title"}


def test_unknown_job_is_404(client):
    response = client.get("/api/video/missing")
    assert response.status_code == 404
    assert response.json() == {"error": "Video not found"}


def test_completed_job_has_video_url(client, db, tmp_path):
    job_id, _ = _completed_job(db, tmp_path)
    body = client.get(f"/api/video/{job_id}").json()
    assert body["videoUrl"] == f"/api/video/{job_id}/file"


def test_list_videos(client, db, tmp_path):
    job_id, _ = _completed_job(db, tmp_path)
    created = client.post("/api/generate-video", json=PRODUCT_PAYLOAD).json()

    ids = [video["id"] for video in client.get("/api/videos").json()]
    assert set(ids) == {job_id, created["id"]}


def test_stream_range_request(client, db, tmp_path):
    job_id, video = _completed_job(db, tmp_path, size=1000)

    response = client.get(f"/api/video/{job_id}/file", headers={"Range": "bytes=0-99"})

    assert response.status_code == 206
    assert response.headers["content-range"] == "bytes 0-99/1000"
    assert response.headers["accept-ranges"] == "bytes"
    assert response.content == video.read_bytes()[:100]


def test_stream_open_ended_range(client, db, tmp_path):
    job_id, video = _completed_job(db, tmp_path, size=1000)

    response = client.get(f"/api/video/{job_id}/file", headers={"Range": "bytes=900-"})

    assert response.status_code == 206
    assert response.headers["content-range"] == "bytes 900-999/1000"
    assert response.content == video.read_bytes()[900:]


def test_stream_full_file(client, db, tmp_path):
    job_id, video = _completed_job(db, tmp_path, size=1000)

    response = client.get(f"/api/video/{job_id}/file")

    assert response.status_code == 200
    assert response.headers["content-type"] == "video/mp4"
    assert response.content == video.read_bytes()


def test_stream_unsatisfiable_range(client, db, tmp_path):
    job_id, _ = _completed_job(db, tmp_path, size=1000)

    response = client.get(f"/api/video/{job_id}/file", headers={"Range": "bytes=5000-"})

    assert response.status_code == 416
    assert response.headers["content-range"] == "bytes */1000"


def test_download_is_attachment(client, db, tmp_path):
    job_id, video = _completed_job(db, tmp_path)

    response = client.get(f"/api/video/{job_id}/download")

    assert response.status_code == 200
    assert response.headers["content-disposition"].startswith("attachment")
    assert f"video-{job_id}.mp4" in response.headers["content-disposition"]
    assert response.content == video.read_bytes()


def test_download_missing_file_is_404(client, db, tmp_path):
    job_id, video = _completed_job(db, tmp_path)
    video.unlink()
    assert client.get(f"/api/video/{job_id}/download").status_code == 404


def test_delete_video(client, db, tmp_path):
    job_id, video = _completed_job(db, tmp_path)

    response = client.delete(f"/api/video/{job_id}")

    assert response.status_code == 200
    assert response.json() == {"message": "Video deleted successfully"}
    assert not video.exists()
    assert client.get(f"/api/video/{job_id}").status_code == 404


def test_delete_unknown_video(client, db, tmp_path):
    job_id, _ = _completed_job(db, tmp_path)

    assert client.delete("/api/video/missing").status_code == 404
    assert client.get(f"/api/video/{job_id}").status_code == 200


def test_parse_range_header_suffix():
    assert videos.parse_range_header("bytes=-100", 1000) == (900, 999)
    assert videos.parse_range_header("bytes=0-5000", 1000) == (0, 999)
    assert videos.parse_range_header("bytes=0-1,5-6", 1000) is None
    assert videos.parse_range_header("items=0-1", 1000) is None
