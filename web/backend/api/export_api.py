"""
Export API endpoints

Render a stored design to a print-ready PNG, JPG or PDF.
"""

from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from price_tag.config.sizes import PRINT_DPI
from price_tag.export.pipeline import ExportFormat, ExportOptions, ExportPipeline
from price_tag.export.surface import DesignSurface
from price_tag.models.settings import HistoryRecord
from price_tag.storage.sync import Synchronizer
from web.backend.api.designs import find_design
from web.backend.deps import get_pipeline, get_synchronizer

router = APIRouter()


@router.post("/{design_id}")
async def export_design(
    request: Request,
    design_id: str,
    format: ExportFormat = Query(ExportFormat.PNG, description="png | jpg | pdf"),
    dpi: float = Query(PRINT_DPI, gt=0, le=1200),
    quality: float = Query(1.0, ge=0, le=1),
    sync: Synchronizer = Depends(get_synchronizer),
    pipeline: ExportPipeline = Depends(get_pipeline),
):
    """
    Export a design.

    The file comes back as the response body; nothing is kept on the server
    apart from a history entry.
    """
    record = await find_design(sync, design_id)
    options = ExportOptions(
        format=format,
        dpi=dpi,
        quality=quality,
        product_name=record.product.name or record.display_name,
    )
    artifact = await pipeline.export(DesignSurface(record, font_path=request.app.state.font_path), options)

    await sync.local.add_history(HistoryRecord(
        template_id=record.id,
        product_name=record.product.name,
        format=artifact.format.value,
        filename=artifact.filename,
    ))

    return Response(
        content=artifact.data,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(artifact.filename)}"},
    )
