from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RunRequest(BaseModel):
    """Input schema matching the Temporal workflow format."""
    data: Dict[str, Any] = Field(
        ...,
        description=(
            "Logo as 'logo_bytes' (base64) / 'logo_artifact' (Azure URI) / "
            "'logo': {'uri': ...}, and 'images': a list of "
            "{'image_bytes' | 'artifact' | 'uri', 'media_type'?, 'name'?}"
        )
    )
    meta: Dict[str, Any] = Field(
        default_factory=dict,
        description="Metadata like trace_id and output 'format'"
    )


class ItemErrorOut(BaseModel):
    code: str
    message: str


class ItemOut(BaseModel):
    index: int
    filename: Optional[str] = None
    media_type: Optional[str] = None
    image_b64: Optional[str] = Field(
        default=None,
        description="Watermarked image (base64-encoded)"
    )
    error: Optional[ItemErrorOut] = None


class RunResponse(BaseModel):
    """Output schema, one result per input image in input order."""
    state: str
    succeeded: int
    failed: int
    results: List[ItemOut]
