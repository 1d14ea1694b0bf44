"""Configuration and physical size constants"""

from price_tag.config.settings import (
    AppConfig,
    ExportProfile,
    EXPORT_PROFILES,
    load_config
)

__all__ = [
    "AppConfig",
    "ExportProfile",
    "EXPORT_PROFILES",
    "load_config"
]
