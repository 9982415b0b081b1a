"""
Model Catalog component.

Search the FAL model catalog and fetch OpenAPI documents for its endpoints.
"""

from falforge.catalog.client import ModelCatalogClient
from falforge.catalog.models import ModelRecord, OpenAPISpecDocument

__all__ = ["ModelCatalogClient", "ModelRecord", "OpenAPISpecDocument"]
