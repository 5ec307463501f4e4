"""
Rate limiting middleware using slowapi
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

# Create limiter instance
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000/hour", "100/minute"]
)


def ai_generation_limit():
    """Rate limit for question generation endpoints"""
    return limiter.limit("10/minute")


def general_api_limit():
    """Rate limit for pattern management endpoints"""
    return limiter.limit("60/minute")
