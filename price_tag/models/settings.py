"""
Settings and history models stored in the local store
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from price_tag.config.sizes import DEFAULT_LABEL_SIZE, PAPER_SIZES
from price_tag.models.design import LabelSize, _as_utc, generate_id, utc_now

SETTINGS_ID = "default"


class PaperSize(BaseModel):
    """Printable paper sheet"""
    name: str = Field(..., description="Paper name, e.g. A4")
    width: float = Field(..., gt=0, description="Width in millimeters")
    height: float = Field(..., gt=0, description="Height in millimeters")
    dpi: float = Field(default=300.0, gt=0, description="Print resolution")


def _a4() -> PaperSize:
    return PaperSize(name="A4", **PAPER_SIZES["A4"])


class UserSettings(BaseModel):
    """User preferences, stored as the single row with id SETTINGS_ID"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    default_paper_size: PaperSize = Field(default_factory=_a4, alias="defaultPaperSize")
    default_label_size: LabelSize = Field(
        default_factory=lambda: LabelSize(**DEFAULT_LABEL_SIZE),
        alias="defaultLabelSize",
    )
    recent_templates: List[str] = Field(default_factory=list, alias="recentTemplates")
    auto_save_enabled: bool = Field(default=True, alias="autoSaveEnabled")
    language: str = Field(default="zh-CN")


class HistoryRecord(BaseModel):
    """One export event"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=lambda: generate_id("history"))
    template_id: Optional[str] = Field(default=None, alias="templateId")
    product_name: str = Field(default="", alias="productName")
    format: Optional[str] = None
    filename: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value):
        return _as_utc(value)
