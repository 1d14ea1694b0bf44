"""Raster and PDF export of label designs"""

from price_tag.export.units import (
    to_device_units,
    to_millimeters,
    scale_factor,
    display_pixels
)
from price_tag.export.surface import (
    RenderableSurface,
    ImageSurface,
    DesignSurface,
    render_thumbnail
)
from price_tag.export.pipeline import (
    ExportPipeline,
    ExportOptions,
    ExportFormat,
    ExportArtifact,
    BatchExportResult,
    generate_filename
)

__all__ = [
    "to_device_units",
    "to_millimeters",
    "scale_factor",
    "display_pixels",
    "RenderableSurface",
    "ImageSurface",
    "DesignSurface",
    "render_thumbnail",
    "ExportPipeline",
    "ExportOptions",
    "ExportFormat",
    "ExportArtifact",
    "BatchExportResult",
    "generate_filename"
]
