"""
Transport-level rate limiting using slowapi.

Issuance is throttled inside the OTP manager (per address and per phone,
backed by the shared store).  Verification has no attempt counter in the
manager, so the verify endpoint is limited here per client IP to slow
down guessing.

The limiter keys on client IP.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import VERIFY_RATE_LIMIT

limiter = Limiter(key_func=get_remote_address)

VERIFY = VERIFY_RATE_LIMIT  # OTP verification
