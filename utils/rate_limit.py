"""Rate limiting configuration for API endpoints"""
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os

from utils.auth import AUTH_HEADER


def get_rate_limit_key():
    """Rate limit per authenticated user when the auth header is present, otherwise per IP"""
    from flask import request
    auth_user_id = request.headers.get(AUTH_HEADER)
    if auth_user_id:
        return f"user:{auth_user_id}"
    return get_remote_address()


def init_rate_limiter(app):
    """Initialize rate limiter with Flask app"""
    default_limit = os.environ.get('RATE_LIMIT_DEFAULT', '100 per minute')

    limiter = Limiter(
        key_func=get_rate_limit_key,
        app=app,
        default_limits=[default_limit],
        storage_uri=os.environ.get('RATE_LIMIT_STORAGE_URI', 'memory://'),
        headers_enabled=True
    )

    return limiter


# Rate limit presets for different endpoint types
RATE_LIMITS = {
    'render': '10 per minute',      # Document generation (template fetch + render)
    'share': '5 per minute',        # Outbound email
    'write': '30 per minute',       # Wizard step saves
    'read': '60 per minute',        # Lookups and resume
}
