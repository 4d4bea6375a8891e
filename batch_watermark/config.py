from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    output_format: str = Field(
        default="png",
        description="Default output format (png, jpeg, webp)"
    )
    max_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Thread pool size for per-image work"
    )
    jpeg_quality: int = Field(
        default=95,
        ge=1,
        le=100,
        description="Quality used when encoding JPEG output"
    )
    max_image_pixels: int = Field(
        default=89_478_485,
        ge=1,
        description="Pillow decompression-bomb limit applied on decode"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for structlog"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON lines (console renderer otherwise)"
    )
    azure_blob_conn: Optional[str] = Field(
        default=None,
        description="Azure Blob Storage connection string for artifact inputs"
    )
    port: int = Field(
        default=18020,
        description="Port used when running the service directly"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
