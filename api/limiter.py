"""
api/limiter.py -- Shared slowapi rate limiter instance.

api/main.py mounts it as middleware; api/routes/v1/auth.py applies the
per-IP login limit, read from Settings.login_rate_limit on each request.

One shared instance means one counter store. Separate instances per module
would each count in isolation and the login limit would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
