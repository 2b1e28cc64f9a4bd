"""
Upload API schemas.
"""
from pydantic import BaseModel

from cfp_storage.storage.models import UploadResult


class UploadResponse(BaseModel):
    """Response of a successful upload."""

    success: bool = True

    file: UploadResult
    """Stored path, URL, size and content type (camelCase keys)."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": True,
                    "file": {
                        "path": "avatars/u1.png",
                        "url": "/api/v1/files/avatars/u1.png",
                        "size": 12,
                        "contentType": "image/png",
                    },
                }
            ]
        }
    }
