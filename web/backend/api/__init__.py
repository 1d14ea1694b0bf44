"""API routes for the label design backend"""

from web.backend.api import designs, export_api

__all__ = ["designs", "export_api"]
