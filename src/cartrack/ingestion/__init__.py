"""Ingestion layer.

Helpers that turn producer readings into validated
:class:`cartrack.models.TelemetrySample` instances.
"""

__all__: list[str] = []
