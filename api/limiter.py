"""
api/limiter.py -- The one slowapi Limiter shared by the whole app.

api/main.py stores it on app.state.limiter for SlowAPIMiddleware, and
api/routes/v1/auth.py decorates POST /auth/login with it. Counters live in
this instance, so a second Limiter elsewhere would silently keep its own
counts and never trip.

Keyed by client address: login throttling is per IP, before any account is
known. The in-memory store is per process; several uvicorn workers each
count separately.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
