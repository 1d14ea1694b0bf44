"""API models for the label design backend"""

from web.backend.models.design import (
    DesignResponse,
    DesignListResponse,
    SyncResponse
)

__all__ = [
    "DesignResponse",
    "DesignListResponse",
    "SyncResponse"
]
