"""
Models package for the Product Hunt exporter.

This package contains the Pydantic DTOs, progress event models and the
post-to-row mapping.
"""
