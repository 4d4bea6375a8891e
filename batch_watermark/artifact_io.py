# Thin wrapper to download input images from Azure Blob Storage
from __future__ import annotations

import asyncio
import re

from azure.storage.blob.aio import BlobServiceClient

from .config import settings
from .errors import ArtifactFetchError

_ART_RE = re.compile(r"^azure://([^/]+)/(.+)$")
_cli: BlobServiceClient | None = None


def is_artifact_uri(value: object) -> bool:
    return isinstance(value, str) and bool(_ART_RE.match(value))


async def _client() -> BlobServiceClient:
    global _cli
    if not _cli:
        if not settings.azure_blob_conn:
            raise ArtifactFetchError("Azure blob connection missing: set AZURE_BLOB_CONN")
        _cli = BlobServiceClient.from_connection_string(settings.azure_blob_conn)
    return _cli


async def fetch_artifact(uri: str) -> bytes:
    """Download artifact bytes for an azure://<container>/<blob> URI"""
    m = _ART_RE.match(uri)
    if not m:
        raise ValueError(f"bad artifact URI: {uri}")
    cont, blob = m.groups()
    blob_cli = (await _client()).get_blob_client(cont, blob)
    try:
        stream = await blob_cli.download_blob()
        return await stream.readall()
    except Exception as exc:
        raise ArtifactFetchError(f"download failed for {uri}: {exc}") from exc


async def close_client() -> None:
    global _cli
    if _cli is not None:
        await _cli.close()
        _cli = None


def fetch_artifact_sync(uri: str) -> bytes:
    """Sync wrapper for callers outside an event loop."""
    return asyncio.run(fetch_artifact(uri))
