"""
Design data models for label designs

Defines the label design record, its product data, layout elements and font
styling, plus the legacy SavedLabel shape. The JSON payload uses the camelCase
keys the editor has always written, so older records stay loadable.
"""

import json
import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from price_tag.config.sizes import DEFAULT_DESIGN_SIZE
from price_tag.errors import ParseFailure

# Version written into every payload. Payloads without it are version 0.
SCHEMA_VERSION = 1

UNTITLED = "未命名设计"

ELEMENT_TYPES = ("core", "selling_point", "spec", "custom_field")

_FONT_WEIGHTS = {"normal": 400, "bold": 700, "lighter": 300, "bolder": 800}


def generate_id(prefix: str = "id") -> str:
    """Unique id like ``label_1718000000000_k3j9x0a2b``"""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _PayloadModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LabelSize(_PayloadModel):
    """Physical label size"""
    width: float = Field(..., gt=0, description="Width in millimeters")
    height: float = Field(..., gt=0, description="Height in millimeters")


def _default_size() -> LabelSize:
    return LabelSize(**DEFAULT_DESIGN_SIZE)


class ProductData(_PayloadModel):
    """Product attributes printed on the label"""
    name: str = Field(default="", description="Product name")
    price: float = Field(default=0.0, ge=0, description="Selling price")
    brand: str = Field(default="", description="Brand")
    original_price: Optional[float] = Field(default=None, gt=0, alias="originalPrice")
    discount: Optional[float] = Field(default=None, gt=0, le=100, description="Discount rate, 1-100")
    selling_points: List[str] = Field(default_factory=list, alias="sellingPoints")
    specs: Dict[str, str] = Field(default_factory=dict, description="Specification key/value pairs")
    custom_fields: Dict[str, Any] = Field(default_factory=dict, alias="customFields")

    @field_validator("name", "brand", mode="before")
    @classmethod
    def _none_to_blank(cls, value):
        return "" if value is None else value

    @field_validator("selling_points", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return [] if value is None else value

    @field_validator("specs", mode="before")
    @classmethod
    def _stringify_specs(cls, value):
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @field_validator("custom_fields", mode="before")
    @classmethod
    def _none_to_dict(cls, value):
        return {} if value is None else value


class LayoutElement(_PayloadModel):
    """One positioned element on the label canvas"""
    id: str = Field(..., description="Element ID, e.g. 'product_name', 'spec_color'")
    type: Optional[str] = Field(default=None, description="core | selling_point | spec | custom_field")
    x: float = Field(default=0.0, description="Horizontal position, percent of label width")
    y: float = Field(default=0.0, description="Vertical position, percent of label height")
    text: str = Field(default="", description="Displayed text")
    field_key: Optional[str] = Field(default=None, alias="fieldKey")
    visible: Optional[bool] = Field(default=None, description="False when hidden/deleted")

    @property
    def is_visible(self) -> bool:
        return self.visible is not False


class DesignLayout(_PayloadModel):
    """Ordered canvas elements; order is the paint order"""
    elements: List[LayoutElement] = Field(default_factory=list)


class FontConfig(_PayloadModel):
    """Font styling of one element"""
    font_size: float = Field(default=12.0, gt=0, alias="fontSize")
    font_weight: int = Field(default=400, alias="fontWeight")
    font_style: str = Field(default="normal", alias="fontStyle")
    text_align: str = Field(default="left", alias="textAlign")
    color: str = Field(default="#000000")
    font_family: str = Field(default="Noto Sans SC", alias="fontFamily")

    @field_validator("font_weight", mode="before")
    @classmethod
    def _named_weight(cls, value):
        if isinstance(value, str) and value.lower() in _FONT_WEIGHTS:
            return _FONT_WEIGHTS[value.lower()]
        return value


class ElementStyleConfig(FontConfig):
    """FontConfig plus box styling; every extra attribute is optional"""
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    padding: Optional[float] = None
    border_radius: Optional[float] = Field(default=None, alias="borderRadius")
    border_width: Optional[float] = Field(default=None, alias="borderWidth")
    border_color: Optional[str] = Field(default=None, alias="borderColor")
    opacity: Optional[float] = Field(default=None, ge=0, le=1)
    line_height: Optional[float] = Field(default=None, alias="lineHeight")
    letter_spacing: Optional[float] = Field(default=None, alias="letterSpacing")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DesignRecord(_PayloadModel):
    """Complete label design"""
    schema_version: int = Field(default=SCHEMA_VERSION, alias="schemaVersion")
    id: Optional[str] = Field(default=None, alias="labelId", description="Stable design ID")
    name: Optional[str] = Field(default=None, alias="labelName", description="User-given name")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    size: LabelSize = Field(default_factory=_default_size, alias="labelSize")
    product: ProductData = Field(default_factory=ProductData, alias="productData")
    layout: DesignLayout = Field(default_factory=DesignLayout)
    font_configs: Dict[str, FontConfig] = Field(default_factory=dict, alias="fontConfigs")
    element_styles: Dict[str, ElementStyleConfig] = Field(default_factory=dict, alias="elementStyles")
    settings: Dict[str, Any] = Field(default_factory=lambda: {"editable": True})

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "schemaVersion": 1,
                "labelId": "label_1718000000000_k3j9x0a2b",
                "labelName": "Summer tea",
                "labelSize": {"width": 60, "height": 40},
                "productData": {
                    "name": "Oolong tea",
                    "price": 39.9,
                    "brand": "Hillside",
                    "sellingPoints": ["Hand picked", "Light roast"],
                    "specs": {"weight": "250g"},
                    "customFields": {},
                },
                "layout": {"elements": [
                    {"id": "product_name", "type": "core", "x": 10, "y": 15, "text": "Oolong tea"},
                ]},
                "fontConfigs": {"product_name": {"fontSize": 18, "fontWeight": 700}},
                "settings": {"editable": True},
            }
        },
    )

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value):
        return _as_utc(value)

    @field_validator("font_configs", "element_styles", "settings", mode="before")
    @classmethod
    def _none_to_dict(cls, value):
        return {} if value is None else value

    @property
    def key(self) -> str:
        return design_key(self)

    @property
    def display_name(self) -> str:
        return self.name or self.product.name or UNTITLED

    def element_ids(self) -> List[str]:
        return [element.id for element in self.layout.elements]

    def orphaned_font_configs(self) -> List[str]:
        """Font config keys whose element is no longer in the layout"""
        ids = set(self.element_ids())
        return [key for key in self.font_configs if key not in ids]

    def font_for(self, element_id: str) -> FontConfig:
        return self.font_configs.get(element_id) or FontConfig()

    def touch(self, now: datetime, created_at: Optional[datetime] = None) -> "DesignRecord":
        """Copy stamped as written at ``now``. createdAt: ``created_at``, else the record's own, else ``now``"""
        return self.model_copy(update={
            "created_at": created_at or self.created_at or now,
            "updated_at": now,
        })

    def to_payload(self) -> Dict[str, Any]:
        """JSON-compatible tree in the persisted camelCase shape"""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False)

    @classmethod
    def from_payload(cls, payload: Any) -> "DesignRecord":
        """Migrate and validate a stored payload"""
        if not isinstance(payload, Mapping):
            raise ParseFailure(f"design payload must be an object, got {type(payload).__name__}")
        try:
            return cls.model_validate(migrate_payload(payload))
        except ValidationError as e:
            raise ParseFailure(f"invalid design payload: {e}") from e

    @classmethod
    def from_json(cls, text: str) -> "DesignRecord":
        try:
            payload = json.loads(text)
        except (TypeError, ValueError) as e:
            raise ParseFailure(f"design payload is not valid JSON: {e}") from e
        return cls.from_payload(payload)

    def apply_partial(self, partial: Mapping[str, Any]) -> "DesignRecord":
        """
        Return a copy with top-level fields replaced from ``partial``.

        Keys may be payload names (``productData``) or field names
        (``product``). The id is never reassigned.
        """
        payload = self.to_payload()
        for key, value in partial.items():
            alias = _ALIASES.get(key, key)
            if alias not in payload:
                raise ValueError(f"Unknown design field '{key}'")
            if alias == "labelId":
                if value != self.id:
                    raise ValueError("Design id cannot be reassigned")
                continue
            if isinstance(value, BaseModel):
                value = value.model_dump(mode="json", by_alias=True)
            payload[alias] = value
        return DesignRecord.from_payload(payload)


_ALIASES = {
    name: (field.alias or name) for name, field in DesignRecord.model_fields.items()
}


def migrate_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Bring an older payload up to SCHEMA_VERSION"""
    data = dict(payload)
    version = data.get("schemaVersion") or 0
    if not isinstance(version, int):
        raise ParseFailure(f"schemaVersion must be an integer, got {version!r}")
    if version < 1:
        # version 0 stored the element list directly and wrote nulls freely
        layout = data.get("layout")
        if isinstance(layout, list):
            data["layout"] = {"elements": layout}
        for key in ("labelSize", "productData", "layout", "fontConfigs", "elementStyles", "settings"):
            if key in data and data[key] is None:
                del data[key]
        data["schemaVersion"] = 1
    return data


def design_key(record: DesignRecord) -> str:
    """
    Identity used to de-duplicate designs: the id, else the product name.

    The product-name fallback is weak; two different designs for the same
    product collapse into one. An empty string means the record has no key.
    """
    return record.id or record.product.name or ""


class SavedLabel(_PayloadModel):
    """Flattened label row written by the older "my labels" storage"""
    id: str
    name: str = ""
    thumbnail: str = Field(default="", description="PNG data URL")
    product_data: ProductData = Field(default_factory=ProductData, alias="productData")
    label_size: LabelSize = Field(default_factory=_default_size, alias="labelSize")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value):
        return _as_utc(value)

    def to_design(self) -> DesignRecord:
        return DesignRecord(
            id=self.id,
            name=self.name or None,
            size=self.label_size,
            product=self.product_data,
            created_at=self.created_at,
            updated_at=self.updated_at or self.created_at,
        )

    @classmethod
    def from_design(cls, record: DesignRecord, thumbnail: str = "") -> "SavedLabel":
        if not record.id:
            raise ValueError("Only saved designs (with an id) can be flattened")
        return cls(
            id=record.id,
            name=record.display_name,
            thumbnail=thumbnail,
            product_data=record.product,
            label_size=record.size,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


def is_saved_label_payload(payload: Mapping[str, Any]) -> bool:
    return (
        "schemaVersion" not in payload
        and "thumbnail" in payload
        and "layout" not in payload
    )


def parse_design_payload(payload: Any) -> DesignRecord:
    """Load either a design payload or a legacy SavedLabel row"""
    if isinstance(payload, Mapping) and is_saved_label_payload(payload):
        try:
            return SavedLabel.model_validate(payload).to_design()
        except ValidationError as e:
            raise ParseFailure(f"invalid saved label: {e}") from e
    return DesignRecord.from_payload(payload)
