"""Data models for label designs"""

from price_tag.models.design import (
    DesignRecord,
    DesignLayout,
    LayoutElement,
    FontConfig,
    ElementStyleConfig,
    LabelSize,
    ProductData,
    SavedLabel,
    SCHEMA_VERSION,
    design_key,
    parse_design_payload
)
from price_tag.models.settings import (
    HistoryRecord,
    PaperSize,
    UserSettings
)

__all__ = [
    "DesignRecord",
    "DesignLayout",
    "LayoutElement",
    "FontConfig",
    "ElementStyleConfig",
    "LabelSize",
    "ProductData",
    "SavedLabel",
    "SCHEMA_VERSION",
    "design_key",
    "parse_design_payload",
    "HistoryRecord",
    "PaperSize",
    "UserSettings"
]
