from __future__ import annotations

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import structlog

from .assets import (
    BatchJob,
    BatchResult,
    BatchState,
    DecodedImage,
    EncodedOutput,
    ItemError,
    ItemResult,
    RawAsset,
    SourceInput,
)
from .config import settings
from .errors import DecodeError, ItemCancelled, LogoDecodeFailed, WatermarkError
from .model import Watermarker, watermarker

log = structlog.get_logger()


class BatchWatermarker:
    """
    Runs one batch: decode the logo once, then fan the source images out
    over a thread pool and collect one ItemResult per input, in input order.

    IDLE → LOGO_LOADING → PROCESSING → COMPLETED
    A logo that fails to decode ends in FAILED (LogoDecodeFailed is raised,
    nothing else is started). `cancel()` ends in CANCELLED: images already
    running finish, queued ones are reported as CANCELLED errors.

    An instance handles a single batch.
    """

    def __init__(
        self,
        executor: Optional[ThreadPoolExecutor] = None,
        *,
        max_workers: Optional[int] = None,
        pipeline: Optional[Watermarker] = None,
    ):
        self._executor = executor
        self._max_workers = max_workers or settings.max_workers
        self._pipeline = pipeline or watermarker
        self._cancelled = threading.Event()
        self.state = BatchState.IDLE

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop starting new images. Safe to call from any thread."""
        if not self._cancelled.is_set():
            self._cancelled.set()
            log.info("batch_cancel_requested", state=self.state.value)

    async def run(self, job: BatchJob) -> BatchResult:
        if self.state is not BatchState.IDLE:
            raise RuntimeError(f"batch already ran (state={self.state.value})")

        pool = self._executor or ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="watermark"
        )
        loop = asyncio.get_running_loop()
        t0 = time.perf_counter()
        try:
            logo = await self._load_logo(loop, pool, job.logo)

            self.state = BatchState.PROCESSING
            log.info("batch_started", items=len(job.source_images),
                     format=job.output_format, logo_size=logo.size)
            try:
                items = await asyncio.gather(*(
                    self._run_item(loop, pool, i, raw, logo, job.output_format)
                    for i, raw in enumerate(job.source_images)
                ))
            except asyncio.CancelledError:
                self._cancelled.set()
                self.state = BatchState.CANCELLED
                log.warning("batch_cancelled", items=len(job.source_images))
                raise
        finally:
            if self._executor is None:
                pool.shutdown(wait=False, cancel_futures=True)

        self.state = BatchState.CANCELLED if self.cancelled else BatchState.COMPLETED
        result = BatchResult(items=list(items), state=self.state)
        log.info("batch_completed", state=self.state.value,
                 succeeded=result.succeeded, failed=result.failed,
                 duration_ms=round((time.perf_counter() - t0) * 1000, 1))
        return result

    def run_sync(self, job: BatchJob) -> BatchResult:
        """Blocking wrapper for callers without an event loop."""
        return asyncio.run(self.run(job))

    async def _load_logo(self, loop, pool, raw: RawAsset) -> DecodedImage:
        self.state = BatchState.LOGO_LOADING
        try:
            return await loop.run_in_executor(pool, self._pipeline.load_logo, raw)
        except DecodeError as exc:
            self.state = BatchState.FAILED
            log.error("logo_decode_failed", code=exc.code, err=str(exc))
            raise LogoDecodeFailed(f"logo could not be decoded: {exc}") from exc
        except Exception as exc:
            self.state = BatchState.FAILED
            log.exception("logo_load_crashed", err=str(exc))
            raise

    async def _run_item(self, loop, pool, index: int, raw: SourceInput,
                        logo: DecodedImage, fmt: str) -> ItemResult:
        try:
            output = await loop.run_in_executor(
                pool, self._process_one, index, raw, logo, fmt
            )
        except WatermarkError as exc:
            log.warning("item_failed", index=index, code=exc.code, err=str(exc))
            return ItemResult(index=index, error=ItemError.from_exception(index, exc))
        except Exception as exc:
            log.exception("item_crashed", index=index, err=str(exc))
            return ItemResult(index=index, error=ItemError.from_exception(index, exc))
        return ItemResult(index=index, output=output)

    def _process_one(self, index: int, raw: SourceInput,
                     logo: DecodedImage, fmt: str) -> EncodedOutput:
        # runs on the pool; the cancel check happens when the unit starts
        if self.cancelled:
            raise ItemCancelled(f"image {index + 1} was not started")
        if isinstance(raw, WatermarkError):
            # input could not be obtained upstream
            raise raw
        return self._pipeline.process(raw, logo, index, fmt)


async def run_batch(job: BatchJob, **kwargs) -> BatchResult:
    return await BatchWatermarker(**kwargs).run(job)


def run_batch_sync(job: BatchJob, **kwargs) -> BatchResult:
    return BatchWatermarker(**kwargs).run_sync(job)
