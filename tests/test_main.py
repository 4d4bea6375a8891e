import base64
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from batch_watermark import main
from batch_watermark.errors import ArtifactFetchError


@pytest.fixture
def client():
    # no context manager: lifespan would shut the shared pool down
    return TestClient(main.app)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def _payload(logo: bytes, images, **meta):
    return {
        "data": {"logo_bytes": _b64(logo),
                 "images": [{"image_bytes": _b64(i)} for i in images]},
        "meta": meta,
    }


def test_run_returns_results_in_input_order(client, make_image):
    sizes = [(100, 80), (40, 90), (200, 150)]
    payload = _payload(make_image((20, 20), (255, 0, 0, 255)),
                       [make_image(s) for s in sizes])

    r = client.post("/run", json=payload)

    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "completed"
    assert body["succeeded"] == 3 and body["failed"] == 0
    assert [it["index"] for it in body["results"]] == [0, 1, 2]
    assert [it["filename"] for it in body["results"]] == [
        "watermarked_image_1.png", "watermarked_image_2.png", "watermarked_image_3.png",
    ]
    for size, item in zip(sizes, body["results"]):
        with Image.open(io.BytesIO(base64.b64decode(item["image_b64"]))) as img:
            assert img.size == size


def test_corrupt_image_is_reported_in_place(client, make_image):
    payload = _payload(make_image((20, 20)), [make_image(), b"garbage", make_image()])

    body = client.post("/run", json=payload).json()

    assert body["succeeded"] == 2
    assert body["results"][1]["error"]["code"] == "INVALID_FORMAT"
    assert body["results"][1]["image_b64"] is None
    assert body["results"][2]["filename"] == "watermarked_image_3.png"


def test_corrupt_logo_is_rejected(client, make_image):
    r = client.post("/run", json=_payload(b"not a logo", [make_image()]))
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "LOGO_DECODE_FAILED"


def test_jpeg_output(client, make_image):
    body = client.post("/run", json=_payload(make_image((10, 10)), [make_image()],
                                             format="jpeg")).json()
    item = body["results"][0]
    assert item["media_type"] == "image/jpeg"
    assert item["filename"] == "watermarked_image_1.jpg"


def test_unsupported_format_is_rejected(client, make_image):
    r = client.post("/run", json=_payload(make_image(), [make_image()], format="gif"))
    assert r.status_code == 422


@pytest.mark.parametrize("data", [
    {"images": []},
    {"logo_bytes": "@@@", "images": []},
    {"logo_bytes": _b64(b"x")},
    {"logo_bytes": _b64(b"x"), "images": [{"name": "no bytes"}]},
])
def test_malformed_requests(client, data):
    assert client.post("/run", json={"data": data}).status_code == 422


def test_artifact_inputs_are_fetched(client, make_image, monkeypatch):
    blobs = {
        "azure://c/logo.png": make_image((12, 12), (0, 255, 0, 255)),
        "azure://c/a.png": make_image((90, 60)),
    }

    async def fake_fetch(uri):
        return blobs[uri]

    monkeypatch.setattr(main, "fetch_artifact", fake_fetch)
    payload = {"data": {"logo": {"uri": "azure://c/logo.png"},
                        "images": [{"artifact": "azure://c/a.png"}]}}

    body = client.post("/run", json=payload).json()
    assert body["succeeded"] == 1


def test_artifact_fetch_failure_is_bad_gateway(client, monkeypatch):
    async def failing_fetch(uri):
        raise ArtifactFetchError("offline")

    monkeypatch.setattr(main, "fetch_artifact", failing_fetch)
    payload = {"data": {"logo_artifact": "azure://c/logo.png", "images": []}}
    assert client.post("/run", json=payload).status_code == 502


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_bad_base64_image_is_reported_in_place(client, make_image):
    payload = _payload(make_image((20, 20)), [make_image(), make_image()])
    payload["data"]["images"][0]["image_bytes"] = "@@not base64@@"

    r = client.post("/run", json=payload)

    assert r.status_code == 200
    body = r.json()
    assert body["results"][0]["error"]["code"] == "INVALID_FORMAT"
    assert body["results"][1]["filename"] == "watermarked_image_2.png"


def test_failed_image_fetch_is_reported_in_place(client, make_image, monkeypatch):
    good = make_image((80, 60))
    fetched = []

    async def flaky_fetch(uri):
        fetched.append(uri)
        if uri.endswith("missing.png"):
            raise ArtifactFetchError("blob not found")
        return good

    monkeypatch.setattr(main, "fetch_artifact", flaky_fetch)
    payload = {"data": {
        "logo_bytes": _b64(make_image((10, 10))),
        "images": [{"artifact": "azure://c/a.png"},
                   {"artifact": "azure://c/missing.png"},
                   {"uri": "azure://c/b.png"}],
    }}

    body = client.post("/run", json=payload).json()

    assert sorted(fetched) == ["azure://c/a.png", "azure://c/b.png", "azure://c/missing.png"]
    assert [it["error"] is None for it in body["results"]] == [True, False, True]
    assert body["results"][1]["error"]["code"] == "ARTIFACT_FETCH_FAILED"
    assert body["succeeded"] == 2


def test_unexpected_batch_failure_is_server_error(client, make_image, monkeypatch):
    class Exploding:
        def __init__(self, *a, **kw):
            pass

        async def run(self, job):
            raise RuntimeError("pool gone")

    monkeypatch.setattr(main, "BatchWatermarker", Exploding)
    r = client.post("/run", json=_payload(make_image(), [make_image()]))
    assert r.status_code == 500
