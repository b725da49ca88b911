"""Execution layer for generated provider configs."""

from catalog_autoconfig.runtime.catalog import CatalogProtocol, DynamicCatalog
from catalog_autoconfig.runtime.transform_engine import TransformEngine

__all__ = ["CatalogProtocol", "DynamicCatalog", "TransformEngine"]
