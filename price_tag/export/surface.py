"""
Renderable surfaces

A surface is anything that knows its size in reference (96 dpi) pixels and
can hand out an encoded raster at a given scale. ImageSurface wraps a Pillow
image; DesignSurface paints a DesignRecord.
"""

import base64
import io
from typing import Optional, Protocol, Tuple, runtime_checkable

from PIL import Image, ImageColor, ImageDraw, ImageFont

from price_tag.export.units import display_pixels
from price_tag.models.design import DesignRecord

PIL_FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG"}

_ANCHORS = {"left": "la", "center": "ma", "right": "ra"}


@runtime_checkable
class RenderableSurface(Protocol):
    """What the export pipeline needs from a rendering engine"""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def snapshot(self, scale: float, format: str = "png", quality: float = 1.0) -> bytes: ...


def encode_image(image: Image.Image, format: str = "png", quality: float = 1.0) -> bytes:
    """Encode ``image`` as png or jpg; ``quality`` (0-1) only affects jpg"""
    pil_format = PIL_FORMATS.get(format.lower())
    if pil_format is None:
        raise ValueError(f"Unsupported raster format '{format}'. Use png or jpg")
    buf = io.BytesIO()
    if pil_format == "JPEG":
        if image.mode != "RGB":
            image = image.convert("RGB")
        image.save(buf, format="JPEG", quality=max(1, min(100, round(quality * 100))))
    else:
        image.save(buf, format="PNG")
    return buf.getvalue()


def _scaled_size(width: int, height: int, scale: float) -> Tuple[int, int]:
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    return max(1, round(width * scale)), max(1, round(height * scale))


def _rgb(color: Optional[str], fallback: str = "#000000"):
    try:
        return ImageColor.getrgb(color or fallback)
    except ValueError:
        return ImageColor.getrgb(fallback)


class ImageSurface:
    """Surface backed by an already rendered Pillow image"""

    def __init__(self, image: Image.Image):
        self.image = image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def snapshot(self, scale: float, format: str = "png", quality: float = 1.0) -> bytes:
        size = _scaled_size(self.width, self.height, scale)
        image = self.image if size == self.image.size else self.image.resize(size, Image.LANCZOS)
        return encode_image(image, format, quality)


class DesignSurface:
    """
    Paints a label design with Pillow.

    The label's physical size gives its reference size in pixels at 96 dpi.
    Elements sit at percentage positions, so a snapshot at any scale paints
    the same layout with proportionally larger text.
    """

    def __init__(self, record: DesignRecord, font_path: Optional[str] = None, background: str = "#FFFFFF"):
        self.record = record
        self.font_path = font_path
        self.background = background

    @property
    def width(self) -> int:
        return display_pixels(self.record.size.width)

    @property
    def height(self) -> int:
        return display_pixels(self.record.size.height)

    def _font(self, size_px: float):
        size_px = max(1, round(size_px))
        if self.font_path:
            try:
                return ImageFont.truetype(self.font_path, size_px)
            except OSError:
                pass
        return ImageFont.load_default(size=size_px)

    def render(self, scale: float = 1.0) -> Image.Image:
        width, height = _scaled_size(self.width, self.height, scale)
        img = Image.new("RGB", (width, height), _rgb(self.background, "#FFFFFF"))
        draw = ImageDraw.Draw(img)

        for element in self.record.layout.elements:
            if not element.is_visible or not element.text:
                continue
            style = self.record.element_styles.get(element.id)
            font_cfg = style or self.record.font_for(element.id)
            font = self._font(font_cfg.font_size * scale)
            anchor = _ANCHORS.get(font_cfg.text_align, "la")
            x = element.x / 100.0 * width
            y = element.y / 100.0 * height
            fill = _rgb(font_cfg.color)

            if style is not None and style.background_color:
                pad = (style.padding or 0) * scale
                left, top, right, bottom = draw.textbbox((x, y), element.text, font=font, anchor=anchor)
                draw.rectangle(
                    [left - pad, top - pad, right + pad, bottom + pad],
                    fill=_rgb(style.background_color, "#FFFFFF"),
                    outline=_rgb(style.border_color) if style.border_width else None,
                    width=max(1, round((style.border_width or 0) * scale)),
                )

            bold = font_cfg.font_weight >= 700
            draw.text(
                (x, y),
                element.text,
                font=font,
                fill=fill,
                anchor=anchor,
                stroke_width=1 if bold else 0,
                stroke_fill=fill,
            )
        return img

    def snapshot(self, scale: float, format: str = "png", quality: float = 1.0) -> bytes:
        return encode_image(self.render(scale), format, quality)


def render_thumbnail(record: DesignRecord, max_size: Tuple[int, int] = (240, 180)) -> str:
    """PNG data URL preview that fits in ``max_size``"""
    surface = DesignSurface(record)
    scale = min(max_size[0] / surface.width, max_size[1] / surface.height)
    png = surface.snapshot(scale, "png")
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
