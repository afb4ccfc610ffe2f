# catalog_service/exceptions.py

"""
Error taxonomy for the Catalog Service.
Each error carries the HTTP status code it is rendered with by the API layer.
"""

from typing import Dict, Optional


class CatalogError(Exception):
    """Base class for all catalog errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CatalogError):
    """No product matches the requested id."""

    status_code = 404


class ValidationFailure(CatalogError):
    """Inbound product data is missing or malformed."""

    status_code = 400

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.fields = fields or {}


class StorageFailure(CatalogError):
    """The database is unreachable or rejected an operation."""

    status_code = 500


class MediaFailure(CatalogError):
    """An uploaded image could not be accepted or written."""

    status_code = 500


class FileTooLarge(MediaFailure):
    status_code = 413


class UnsupportedMediaType(MediaFailure):
    status_code = 415
