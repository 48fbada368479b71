"""Rate limiting configuration for the public form endpoints."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

if IS_TESTING:
    # Tests never share a limiter backend
    limiter = Limiter(
        key_func=get_remote_address,
        storage_uri="memory://",
        enabled=False,
    )
else:
    limiter = Limiter(
        key_func=get_remote_address,
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    )
