"""Generative collaborator clients."""

from .http_client import HttpIntelligenceClient
from .intelligence import (
    IntelligenceClient,
    IntelligenceError,
    IntelligenceRequest,
    IntelligenceTransportError,
    IntelligenceUnavailableError,
    OfflineIntelligenceClient,
    SupportsIntelligence,
)

__all__ = [
    "HttpIntelligenceClient",
    "IntelligenceClient",
    "IntelligenceError",
    "IntelligenceRequest",
    "IntelligenceTransportError",
    "IntelligenceUnavailableError",
    "OfflineIntelligenceClient",
    "SupportsIntelligence",
]
