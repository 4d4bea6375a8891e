from __future__ import annotations


class WatermarkError(Exception):
    """Base error for the watermarking service"""

    code = "WATERMARK_ERROR"


class DecodeError(WatermarkError):
    """Raw bytes could not be turned into a usable raster"""

    code = "DECODE_ERROR"


class InvalidFormatError(DecodeError):
    """Bytes are not a supported (or intact) raster format"""

    code = "INVALID_FORMAT"


class ZeroDimensionError(DecodeError):
    """Decoded image has zero width or height"""

    code = "ZERO_DIMENSION"


class EncodeError(WatermarkError):
    """Composite could not be serialised"""

    code = "ENCODE_ERROR"


class UnsupportedFormatError(EncodeError):
    """Requested output format is not registered"""

    code = "UNSUPPORTED_FORMAT"


class BatchError(WatermarkError):
    """Batch-fatal failure"""

    code = "BATCH_ERROR"


class LogoDecodeFailed(BatchError):
    """Logo could not be decoded, no image was processed"""

    code = "LOGO_DECODE_FAILED"


class ArtifactFetchError(WatermarkError):
    """Remote artifact could not be downloaded"""

    code = "ARTIFACT_FETCH_FAILED"


class ItemCancelled(WatermarkError):
    """Batch was cancelled before this image started"""

    code = "CANCELLED"
