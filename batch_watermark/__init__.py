"""Overlay one logo onto a batch of images."""

from .assets import (
    BatchJob,
    BatchResult,
    BatchState,
    DecodedImage,
    EncodedOutput,
    ItemError,
    ItemResult,
    Placement,
    RawAsset,
)
from .batch import BatchWatermarker, run_batch, run_batch_sync
from .compositor import composite
from .decoder import decode
from .encoder import encode, output_filename
from .placement import compute_placement

__all__ = [
    "BatchJob",
    "BatchResult",
    "BatchState",
    "BatchWatermarker",
    "DecodedImage",
    "EncodedOutput",
    "ItemError",
    "ItemResult",
    "Placement",
    "RawAsset",
    "composite",
    "compute_placement",
    "decode",
    "encode",
    "output_filename",
    "run_batch",
    "run_batch_sync",
]
