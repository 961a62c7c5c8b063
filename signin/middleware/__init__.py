"""Request middleware package."""

from .security import SecurityHeadersMiddleware
from .timeout import RequestTimeoutMiddleware
from .request_logging import RequestLoggingMiddleware
