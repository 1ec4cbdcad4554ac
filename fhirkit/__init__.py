"""Async FHIR client with reference resolution and bundle pagination"""

__version__ = "1.0.0"
