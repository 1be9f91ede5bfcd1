"""Database collaborators: connection, source loading and export."""

from .database import create_db_engine, health_check, server_version
from .errors import DatabaseUnavailableError, DataLoadError, ExportError, StorageError
from .exporter import TopCustomerExporter
from .loader import PurchaseDataLoader

__all__ = [
    "DatabaseUnavailableError",
    "DataLoadError",
    "ExportError",
    "PurchaseDataLoader",
    "StorageError",
    "TopCustomerExporter",
    "create_db_engine",
    "health_check",
    "server_version",
]
