"""
Domain error taxonomy.

Services raise these; the app factory maps them to HTTP responses:

- ``EmissionInputError``    -> 422 (bad enum, negative number, missing field)
- ``RecordNotFoundError``   -> 404 (missing, or owned by another user)
- ``UpstreamServiceError``  -> 503 (store or AI provider unavailable, no fallback)
"""

from typing import Optional


class AetherraError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class EmissionInputError(AetherraError, ValueError):
    status_code = 422


class RecordNotFoundError(AetherraError, LookupError):
    status_code = 404

    def __init__(self, resource: str, record_id: Optional[str] = None):
        detail = f"{resource} not found"
        super().__init__(detail)
        self.resource = resource
        self.record_id = record_id


class UpstreamServiceError(AetherraError):
    status_code = 503

    def __init__(self, service: str, detail: str):
        super().__init__(detail)
        self.service = service


class AIEngineError(UpstreamServiceError):
    def __init__(self, engine: str, detail: str):
        super().__init__(f"ai:{engine}", detail)
        self.engine = engine
