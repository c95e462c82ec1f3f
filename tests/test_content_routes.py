import json
from io import BytesIO
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.errors import ContentError
from app.models.content import PinResult
from app.server.dependencies import get_pinata_service
from app.server.main import app
from app.server.routers.content_routes import MAX_UPLOAD_SIZE
from app.server.routers.metadata_routes import video_title
from app.services.content.pinata import PinataService


class FakePinata(PinataService):
    def __init__(self, existing=("bafyexisting",)):
        super().__init__(jwt="test-jwt", gateway="gateway.example")
        self.existing = set(existing)
        self.pinned = []
        self.gateway_down = False

    def pin_file(self, file, filename, content_type="application/octet-stream", keyvalues=None):
        self.pinned.append((filename, content_type, file.read()))
        cid = "bafypinned"
        return PinResult(cid=cid, gateway_url=self.gateway_url(cid), pinata_url=self.gateway_url(cid))

    def content_exists(self, cid):
        return cid in self.existing

    def open_content(self, cid):
        if self.gateway_down:
            raise ContentError("Failed to download from IPFS: gateway returned 504")
        return SimpleNamespace(
            headers={"content-type": "video/mp4", "content-length": "11"},
            iter_content=lambda chunk_size: iter([b"video", b" bytes"]),
            close=lambda: None,
        )


@pytest.fixture
def pinata():
    return FakePinata()


@pytest.fixture
def client(pinata):
    app.dependency_overrides[get_pinata_service] = lambda: pinata
    yield TestClient(app)
    app.dependency_overrides.clear()


def png_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (4, 4), color="red").save(buffer, format="PNG")
    return buffer.getvalue()


def test_upload_image(client, pinata):
    data = png_bytes()
    response = client.post(
        "/content/upload",
        files={"file": ("frame.png", data, "image/png")},
        data={"metadata": json.dumps({"name": "first-frame.png"})},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["cid"] == "bafypinned"
    assert body["gatewayUrl"] == "https://gateway.example/ipfs/bafypinned"
    assert body["originalName"] == "frame.png"
    assert body["size"] == len(data)
    assert body["mimetype"] == "image/png"
    assert pinata.pinned == [("first-frame.png", "image/png", data)]


def test_upload_with_invalid_metadata_still_pins(client, pinata):
    response = client.post(
        "/content/upload",
        files={"file": ("frame.png", png_bytes(), "image/png")},
        data={"metadata": "{not json"},
    )

    assert response.status_code == 200
    assert pinata.pinned[0][0] == "frame.png"


def test_upload_without_file(client):
    response = client.post("/content/upload", data={"metadata": "{}"})

    assert response.status_code == 400
    assert response.json()["detail"] == "No file uploaded"


def test_upload_rejects_non_images(client, pinata):
    response = client.post(
        "/content/upload", files={"file": ("notes.txt", b"hello", "text/plain")}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Only image files are allowed"
    assert pinata.pinned == []


def test_upload_rejects_corrupt_images(client):
    response = client.post(
        "/content/upload", files={"file": ("frame.png", b"not really a png", "image/png")}
    )

    assert response.status_code == 400


def test_upload_rejects_large_files(client):
    response = client.post(
        "/content/upload",
        files={"file": ("big.png", b"\0" * (MAX_UPLOAD_SIZE + 1), "image/png")},
    )

    assert response.status_code == 413


def test_download_streams_content(client):
    response = client.get("/content/download", params={"cid": "bafyexisting"})

    assert response.status_code == 200
    assert response.content == b"video bytes"
    assert response.headers["content-type"] == "video/mp4"


def test_download_without_cid(client):
    assert client.get("/content/download").status_code == 400


def test_download_gateway_failure(client, pinata):
    pinata.gateway_down = True

    response = client.get("/content/download", params={"cid": "bafyexisting"})

    assert response.status_code == 502


def test_store_metadata(client):
    prompt = "A very long prompt describing a sunrise over the mountains"
    response = client.post(
        "/metadata/store",
        json={
            "cid": "bafyexisting",
            "gatewayUrl": "https://gateway.example/ipfs/bafyexisting",
            "prompt": prompt,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Metadata stored successfully in Universal Profile"
    stored = body["storedMetadata"]
    assert stored["cid"] == "bafyexisting"
    assert stored["contentType"] == "video/mp4"
    assert stored["title"] == f"AI-Generated Video: {prompt[:30]}..."
    assert stored["timestamp"].endswith("Z")


def test_store_metadata_for_missing_content(client):
    response = client.post(
        "/metadata/store",
        json={"cid": "bafymissing", "gatewayUrl": "https://x/ipfs/bafymissing", "prompt": "p"},
    )

    assert response.status_code == 404
    assert "Content not found on IPFS" in response.json()["detail"]


def test_store_metadata_with_missing_fields(client):
    response = client.post("/metadata/store", json={"cid": "bafyexisting"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request"


def test_short_prompt_title_has_no_ellipsis():
    assert video_title("Sunrise") == "AI-Generated Video: Sunrise"


def test_gateway_url():
    pinata = PinataService(jwt="x", gateway="gateway.example")

    assert pinata.gateway_url("bafy123") == "https://gateway.example/ipfs/bafy123"
    assert pinata.gateway_url("https://other/ipfs/bafy123") == "https://other/ipfs/bafy123"


@pytest.mark.parametrize("kwargs", [{"json": []}, {}])
def test_store_metadata_without_an_object_body(client, kwargs):
    response = client.post("/metadata/store", **kwargs)

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request"
