"""Per-address request limits for the non-call routes, using slowapi.

Call initiation has its own escalating limiter (lib/rate_limiter.py); these
limits only blunt brute-force traffic on the other endpoints.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

# Rate limit strings for use with @limiter.limit() decorator
PAYMENT_LIMIT = "20/minute"     # Payment verification
