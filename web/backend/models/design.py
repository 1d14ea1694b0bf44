"""
API models for the label design backend

Designs travel in their persisted camelCase payload shape.
"""

from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional


class DesignResponse(BaseModel):
    """Single design response"""
    success: bool
    message: str
    design: Optional[Dict[str, Any]] = None
    cloud_error: Optional[str] = Field(None, description="Set when the cloud copy could not be written")


class DesignListResponse(BaseModel):
    """Merged list of local and cloud designs"""
    success: bool
    designs: List[Dict[str, Any]]
    total: int
    remote_error: Optional[str] = Field(None, description="Why cloud designs are missing from the list")


class SyncResponse(BaseModel):
    """Result of pushing local designs to the cloud"""
    success: bool
    succeeded: int
    failed: int
    errors: Dict[str, str] = Field(default_factory=dict)
