"""Data models shared by the decode → place → composite → encode pipeline."""

from __future__ import annotations

import base64
import enum
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image

from .errors import WatermarkError, ZeroDimensionError


@dataclass(frozen=True)
class RawAsset:
    """Encoded bytes as received from the caller."""

    data: bytes
    media_type: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class DecodedImage:
    """
    Fully materialised RGBA raster.

    Width and height are always > 0; anything else is a decode error,
    never a valid DecodedImage.
    """

    image: Image.Image

    def __post_init__(self) -> None:
        w, h = self.image.size
        if w <= 0 or h <= 0:
            raise ZeroDimensionError(f"image has zero dimension: {w}x{h}")
        if self.image.mode != "RGBA":
            object.__setattr__(self, "image", self.image.convert("RGBA"))

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    @property
    def pixels(self) -> bytes:
        return self.image.tobytes()

    def to_array(self) -> np.ndarray:
        """(H, W, 4) uint8 copy of the pixels."""
        return np.array(self.image, dtype=np.uint8)


# The logo is a plain DecodedImage shared read-only across the batch,
# and a composite is just the DecodedImage the compositor returns.
LogoAsset = DecodedImage
CompositeResult = DecodedImage


@dataclass(frozen=True)
class Placement:
    """Draw size and top-left position of the logo on one source image."""

    draw_width: float
    draw_height: float
    x: float
    y: float

    def box(self) -> Tuple[int, int, int, int]:
        """
        Integer (left, top, width, height) used when rasterising.

        Edges are rounded, not sizes, so the bottom edge stays on the
        margin when the draw height is fractional.
        """
        left, top = round(self.x), round(self.y)
        right = round(self.x + self.draw_width)
        bottom = round(self.y + self.draw_height)
        return left, top, max(1, right - left), max(1, bottom - top)


@dataclass(frozen=True)
class EncodedOutput:
    filename: str
    data: bytes
    media_type: str
    format: str

    def b64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.b64()}"


@dataclass(frozen=True)
class ItemError:
    """Per-image failure, reported in place of that image's output."""

    index: int
    code: str
    message: str

    @classmethod
    def from_exception(cls, index: int, exc: BaseException) -> "ItemError":
        code = exc.code if isinstance(exc, WatermarkError) else "PROCESSING_FAILED"
        return cls(index=index, code=code, message=str(exc) or type(exc).__name__)


@dataclass(frozen=True)
class ItemResult:
    index: int
    output: Optional[EncodedOutput] = None
    error: Optional[ItemError] = None

    @property
    def ok(self) -> bool:
        return self.output is not None


class BatchState(str, enum.Enum):
    IDLE = "idle"
    LOGO_LOADING = "logo_loading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


# A source that could not be obtained (bad base64, failed fetch) travels
# as its error and is reported as that item's ItemError.
SourceInput = Union[RawAsset, WatermarkError]


@dataclass(frozen=True)
class BatchJob:
    source_images: Sequence[SourceInput]
    logo: RawAsset
    output_format: str = "png"


@dataclass
class BatchResult:
    """Outcome of a batch, one entry per input image in input order."""

    items: List[ItemResult] = field(default_factory=list)
    state: BatchState = BatchState.COMPLETED

    @property
    def outputs(self) -> List[EncodedOutput]:
        return [it.output for it in self.items if it.output is not None]

    @property
    def errors(self) -> List[ItemError]:
        return [it.error for it in self.items if it.error is not None]

    @property
    def succeeded(self) -> int:
        return sum(1 for it in self.items if it.ok)

    @property
    def failed(self) -> int:
        return len(self.items) - self.succeeded
