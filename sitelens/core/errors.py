# sitelens/core/errors.py
# -----------------------------------------------------------------------------
# Error taxonomy shared by services and routers
# - services raise these, routers map them to HTTP status codes
# -----------------------------------------------------------------------------


class SiteLensError(Exception):
    """Base exception for analysis pipeline errors"""


class ValidationError(SiteLensError):
    """Raised when request fields are missing or malformed"""


class ConfigurationError(SiteLensError):
    """Raised when a required setting (API key etc.) is absent"""


class UpstreamError(SiteLensError):
    """Raised when a geocoding/places/LLM call fails"""


class NotFoundError(SiteLensError):
    """Raised when an analysis id or address cannot be resolved"""


class LocationNotFoundError(NotFoundError):
    """Raised when geocoding returns zero results"""


class PersistenceError(SiteLensError):
    """Raised when the durable store cannot be read or written"""
