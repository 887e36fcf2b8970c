"""Read-only catalog access."""

from shopcore.services.catalog.reader import CatalogReader, VariantSnapshot

__all__ = ["CatalogReader", "VariantSnapshot"]
