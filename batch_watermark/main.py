from __future__ import annotations

import asyncio
import base64
import binascii
import uuid
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, Dict, List

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .artifact_io import close_client, fetch_artifact, is_artifact_uri
from .assets import BatchJob, BatchResult, RawAsset, SourceInput
from .batch import BatchWatermarker
from .config import settings
from .encoder import is_supported
from .errors import ArtifactFetchError, InvalidFormatError, LogoDecodeFailed
from .schemas import ItemErrorOut, ItemOut, RunRequest, RunResponse
from .utils import configure_logging, synthetic_image

log = structlog.get_logger()

# Thread pool for CPU-bound work, shared by every batch
_pool = ThreadPoolExecutor(max_workers=settings.max_workers, thread_name_prefix="watermark")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_json)
    log.info("service_starting", workers=settings.max_workers,
             default_format=settings.output_format)
    yield
    _pool.shutdown(wait=True)
    await close_client()
    log.info("service_stopped")


app = FastAPI(
    title="batch-watermark",
    description="Overlays a logo onto a batch of images",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _find_artifact(node: Any) -> str | None:
    """Recursively search nested structures for an Azure-style artifact URI."""
    if isinstance(node, dict):
        if "uri" in node and is_artifact_uri(node["uri"]):
            return node["uri"]
        for v in node.values():
            uri = _find_artifact(v)
            if uri:
                return uri
    elif isinstance(node, list):
        for item in node:
            uri = _find_artifact(item)
            if uri:
                return uri
    return None


def _b64(value: Any, what: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, TypeError, ValueError) as exc:
        raise HTTPException(422, f"{what}: invalid base64 ({exc})")


async def _resolve_logo(data: Dict[str, Any], request_id: str) -> RawAsset:
    """
    Logo from (in order) `logo_bytes`, `logo_artifact`, or a nested uri
    under `logo`.
    """
    if "logo_bytes" in data:
        raw = _b64(data["logo_bytes"], "logo")
        log.debug("logo_source", request_id=request_id, kind="inline_base64", size=len(raw))
        return RawAsset(raw, data.get("logo_media_type"), "logo")

    uri = data.get("logo_artifact") or _find_artifact(data.get("logo", {}))
    if uri:
        raw = await fetch_artifact(uri)
        log.debug("logo_source", request_id=request_id, kind="artifact", uri=uri)
        return RawAsset(raw, data.get("logo_media_type"), "logo")

    raise HTTPException(422, "missing logo_bytes or logo artifact")


async def _resolve_images(data: Dict[str, Any], request_id: str) -> List[SourceInput]:
    images = data.get("images")
    if not isinstance(images, list):
        raise HTTPException(422, "missing images list")

    sources = []
    for i, entry in enumerate(images):
        if isinstance(entry, str):
            entry = {"image_bytes": entry}
        if not isinstance(entry, dict):
            raise HTTPException(422, f"images[{i}]: expected object or base64 string")
        uri = None
        if "image_bytes" not in entry:
            uri = entry.get("artifact") or _find_artifact(entry)
            if not uri:
                raise HTTPException(422, f"images[{i}]: missing image_bytes or artifact")
        sources.append((i, entry, uri))

    assets = await asyncio.gather(*(
        _resolve_image(i, entry, uri, request_id) for i, entry, uri in sources
    ))
    log.debug("images_resolved", request_id=request_id, count=len(assets))
    return list(assets)


async def _resolve_image(index: int, entry: Dict[str, Any], uri: str | None,
                         request_id: str) -> SourceInput:
    """Bytes for one image; a failure comes back as that image's error."""
    name = entry.get("name") or f"image_{index + 1}"
    if uri is None:
        try:
            raw = base64.b64decode(entry["image_bytes"], validate=True)
        except (binascii.Error, TypeError, ValueError) as exc:
            return InvalidFormatError(f"{name}: invalid base64 ({exc})")
    else:
        try:
            raw = await fetch_artifact(uri)
        except (ArtifactFetchError, ValueError) as exc:
            log.warning("image_fetch_failed", request_id=request_id,
                        index=index, uri=uri, err=str(exc))
            if isinstance(exc, ArtifactFetchError):
                return exc
            return ArtifactFetchError(f"{name}: {exc}")
    return RawAsset(raw, entry.get("media_type"), name)


def _to_response(result: BatchResult) -> RunResponse:
    results = []
    for item in result.items:
        if item.ok:
            out = item.output
            results.append(ItemOut(index=item.index, filename=out.filename,
                                   media_type=out.media_type, image_b64=out.b64()))
        else:
            results.append(ItemOut(index=item.index, error=ItemErrorOut(
                code=item.error.code, message=item.error.message)))
    return RunResponse(state=result.state.value, succeeded=result.succeeded,
                       failed=result.failed, results=results)


@app.post("/run", response_model=RunResponse)
async def run(req: RunRequest, raw: Request):
    """
    Inputs:
      data.logo_bytes | logo_artifact | logo.uri
      data.images: [{image_bytes | artifact | uri, media_type?, name?}, ...]
      meta.format (png | jpeg | webp)
    Returns:
      { "state", "succeeded", "failed", "results": [...] } in input order
    """
    request_id = req.meta.get("trace_id") or raw.headers.get("X-Request-ID", str(uuid.uuid4()))
    fmt = str(req.meta.get("format") or settings.output_format).lower()
    log.info("request_received", request_id=request_id, format=fmt)

    if not is_supported(fmt):
        raise HTTPException(422, f"unsupported output format: {fmt}")

    try:
        logo = await _resolve_logo(req.data, request_id)
        images = await _resolve_images(req.data, request_id)
    except HTTPException:
        raise
    except (ArtifactFetchError, ValueError) as exc:
        log.error("artifact_fetch_failed", request_id=request_id, err=str(exc))
        raise HTTPException(502, f"artifact fetch failed: {exc}")

    try:
        result = await BatchWatermarker(_pool).run(
            BatchJob(source_images=images, logo=logo, output_format=fmt)
        )
    except LogoDecodeFailed as exc:
        log.error("logo_decode_failed", request_id=request_id, err=str(exc))
        raise HTTPException(422, {"code": exc.code, "message": str(exc)})
    except Exception as exc:
        log.error("batch_failed", request_id=request_id, err=str(exc))
        raise HTTPException(500, f"watermark batch failed: {exc}")

    log.info("response_ready", request_id=request_id,
             succeeded=result.succeeded, failed=result.failed)
    return _to_response(result)


@app.get("/health")
async def health():
    """Readiness probe: watermark one synthetic image end to end."""
    try:
        job = BatchJob(
            source_images=[RawAsset(synthetic_image((64, 48)), "image/png")],
            logo=RawAsset(synthetic_image((16, 16), (200, 0, 0, 128)), "image/png"),
        )
        result = await BatchWatermarker(_pool).run(job)
        if result.failed:
            raise RuntimeError(result.errors[0].message)
        return JSONResponse({"ok": True, "workers": settings.max_workers})
    except Exception as exc:
        log.error("health_check_failed", err=str(exc))
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=503)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "batch_watermark.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
