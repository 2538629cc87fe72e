"""Client for the job orchestration API: push, pull, locks, durables, pop/finish."""

from baza.adapters.api_errors import ApiError, BadResponse, ServerFailure, TimedOut
from baza.adapters.baza_rest import BazaRestAdapter
from baza.adapters.http_client import HttpConfig
from baza.domain.ports import UseCaseError
from baza.version import VERSION as __version__

__all__ = [
    "ApiError",
    "BadResponse",
    "BazaRestAdapter",
    "HttpConfig",
    "ServerFailure",
    "TimedOut",
    "UseCaseError",
    "__version__",
]
