"""Clinic insurance price-table ingestion service."""
