"""Clients for external services."""

from .geocoder import GeocodingClient, GeocodeState, RetryPolicy

__all__ = ["GeocodingClient", "GeocodeState", "RetryPolicy"]
