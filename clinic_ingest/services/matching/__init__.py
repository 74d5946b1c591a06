from clinic_ingest.services.matching.catalog_matcher import CatalogMatch, CatalogMatcher

__all__ = ["CatalogMatch", "CatalogMatcher"]
