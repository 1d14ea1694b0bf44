"""
Error taxonomy

Callers recover differently from each class: prompt a login for
NotAuthenticated, retry for StorageFailure, show an error for ExportFailure.
"""

from typing import Optional


class PriceTagError(Exception):
    """Base class for all label design errors"""


class NotAuthenticated(PriceTagError):
    """A remote operation was attempted without a signed-in user"""

    def __init__(self, message: str = "not signed in to the cloud store"):
        super().__init__(message)


class StorageFailure(PriceTagError):
    """Reading from or writing to a store failed"""

    def __init__(self, message: str, store: str = "local", status_code: Optional[int] = None):
        super().__init__(message)
        self.store = store
        self.status_code = status_code


class ParseFailure(PriceTagError):
    """A stored payload could not be turned into a DesignRecord"""


class ExportFailure(PriceTagError):
    """Missing surface, undecodable raster or failed document assembly"""


class RecordNotFound(PriceTagError, LookupError):
    """No record exists under the requested id"""

    def __init__(self, record_id: str):
        super().__init__(f"design not found: {record_id}")
        self.record_id = record_id


class ConfigError(PriceTagError):
    """Environment or .env values that do not form a valid configuration"""
