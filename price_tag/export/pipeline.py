"""
Export pipeline

Turns a renderable surface into a PNG/JPG raster or a single-page PDF with
the raster embedded full-bleed, and names the result.
"""

import asyncio
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field
from reportlab.lib.pagesizes import landscape, portrait
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from price_tag.config.settings import EXPORT_PROFILES
from price_tag.config.sizes import PRINT_DPI, REFERENCE_DPI
from price_tag.errors import ExportFailure
from price_tag.export.surface import PIL_FORMATS, RenderableSurface, encode_image
from price_tag.export.units import scale_factor, to_millimeters

log = logging.getLogger(__name__)

# Anything that is not ASCII alphanumeric or a CJK unified ideograph
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9一-龥]")
FILENAME_NAME_LIMIT = 20


class ExportFormat(str, Enum):
    """Output formats"""
    PNG = "png"
    JPG = "jpg"
    PDF = "pdf"

    @property
    def is_raster(self) -> bool:
        return self is not ExportFormat.PDF

    @property
    def media_type(self) -> str:
        return {
            ExportFormat.PNG: "image/png",
            ExportFormat.JPG: "image/jpeg",
            ExportFormat.PDF: "application/pdf",
        }[self]


class ExportOptions(BaseModel):
    """Export request options"""
    format: ExportFormat = Field(default=ExportFormat.PNG, description="png | jpg | pdf")
    quality: float = Field(default=1.0, ge=0, le=1, description="Lossy encoder quality, ignored for png")
    dpi: float = Field(default=PRINT_DPI, gt=0, description="Output resolution against the 96 dpi reference")
    filename: Optional[str] = Field(default=None, description="Base for the generated file name")
    product_name: str = Field(default="price-tag", description="Used when no filename base is given")

    @property
    def filename_base(self) -> str:
        return self.filename or self.product_name

    @classmethod
    def for_profile(cls, profile: str, **overrides) -> "ExportOptions":
        """Options from a named profile (print, high_quality, screen)"""
        if profile not in EXPORT_PROFILES:
            raise ValueError(f"Unknown export profile '{profile}'. Available: {list(EXPORT_PROFILES.keys())}")
        preset = EXPORT_PROFILES[profile]
        return cls(**{"dpi": preset.dpi, "quality": preset.quality, **overrides})


@dataclass
class ExportArtifact:
    """Encoded output handed to the caller; never stored here"""
    data: bytes
    filename: str
    format: ExportFormat

    @property
    def media_type(self) -> str:
        return self.format.media_type

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class BatchExportResult:
    artifacts: List[ExportArtifact] = field(default_factory=list)
    failures: List[Tuple[int, ExportFailure]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def generate_filename(product_name: str, format: str, timestamp: Optional[datetime] = None) -> str:
    """
    ``<name>_<YYYY-MM-DD>_<HH-MM-SS>.<format>``

    The name keeps ASCII letters, digits and CJK ideographs, replaces every
    other character with ``_`` and is cut to 20 characters.
    """
    when = timestamp or datetime.now()
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", product_name)[:FILENAME_NAME_LIMIT]
    date_str = when.strftime("%Y-%m-%d")
    time_str = when.strftime("%H:%M:%S").replace(":", "-")
    return f"{safe_name}_{date_str}_{time_str}.{format}"


def _decode_raster(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ExportFailure(f"Surface snapshot is not a decodable image: {e}") from e
    return image


class ExportPipeline:
    """
    Exports renderable surfaces.

    Args:
        clock: Source of the timestamp used in file names
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock

    async def export(self, surface: Optional[RenderableSurface], options: Optional[ExportOptions] = None) -> ExportArtifact:
        options = options or ExportOptions()
        if surface is None:
            raise ExportFailure("Nothing to export: no surface given")
        scale = scale_factor(options.dpi)

        if options.format.is_raster:
            data = await asyncio.to_thread(self._export_raster, surface, scale, options)
        else:
            data = await asyncio.to_thread(self._export_pdf, surface, scale, options)

        filename = generate_filename(options.filename_base, options.format.value, self._clock())
        log.debug("Exported %s (%d bytes)", filename, len(data))
        return ExportArtifact(data=data, filename=filename, format=options.format)

    async def export_batch(
        self,
        surfaces: Sequence[Optional[RenderableSurface]],
        options: Optional[ExportOptions] = None,
        concurrent: bool = False,
    ) -> BatchExportResult:
        """Export each surface independently; failures are collected, not raised"""
        result = BatchExportResult()
        outcomes = []
        if concurrent:
            outcomes = await asyncio.gather(
                *(self.export(s, options) for s in surfaces), return_exceptions=True
            )
        else:
            for surface in surfaces:
                try:
                    outcomes.append(await self.export(surface, options))
                except ExportFailure as e:
                    outcomes.append(e)

        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, ExportArtifact):
                result.artifacts.append(outcome)
            elif isinstance(outcome, ExportFailure):
                log.warning("Export of surface %d failed: %s", index, outcome)
                result.failures.append((index, outcome))
            else:
                raise outcome
        return result

    def _snapshot(self, surface: RenderableSurface, scale: float, format: str, quality: float) -> bytes:
        try:
            return surface.snapshot(scale, format, quality)
        except ExportFailure:
            raise
        except Exception as e:
            raise ExportFailure(f"Surface failed to render: {e}") from e

    def _export_raster(self, surface: RenderableSurface, scale: float, options: ExportOptions) -> bytes:
        fmt = options.format.value
        data = self._snapshot(surface, scale, fmt, options.quality)
        image = _decode_raster(data)
        if image.format == PIL_FORMATS[fmt]:
            return data
        # Surface answered in another encoding
        return encode_image(image, fmt, options.quality)

    def _export_pdf(self, surface: RenderableSurface, scale: float, options: ExportOptions) -> bytes:
        # Native surface pixels are always taken at the 96 dpi reference
        width_mm = to_millimeters(surface.width, REFERENCE_DPI)
        height_mm = to_millimeters(surface.height, REFERENCE_DPI)
        if width_mm <= 0 or height_mm <= 0:
            raise ExportFailure(f"Surface has no area: {surface.width}x{surface.height}px")
        page = (width_mm * mm, height_mm * mm)
        pagesize = landscape(page) if width_mm > height_mm else portrait(page)

        png = self._snapshot(surface, scale, "png", 1.0)
        image = _decode_raster(png)

        buf = io.BytesIO()
        try:
            c = canvas.Canvas(buf, pagesize=pagesize)
            c.drawImage(ImageReader(image), 0, 0, width=pagesize[0], height=pagesize[1])
            c.showPage()
            c.save()
        except Exception as e:
            raise ExportFailure(f"Failed to assemble PDF: {e}") from e
        return buf.getvalue()
