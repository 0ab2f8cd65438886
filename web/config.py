"""
Web service configuration.
"""
from core.config import config, VERSION

# Web server settings
WEB_HOST = config.web.host
WEB_PORT = config.web.port

# Rate limits (slowapi syntax)
FORECAST_RATE_LIMIT = config.web.forecast_rate_limit
HEALTH_RATE_LIMIT = config.web.health_rate_limit

CORS_ORIGINS = config.web.cors_origins

__all__ = [
    "WEB_HOST",
    "WEB_PORT",
    "FORECAST_RATE_LIMIT",
    "HEALTH_RATE_LIMIT",
    "CORS_ORIGINS",
    "VERSION",
]
