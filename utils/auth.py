"""Authentication utilities

Authentication itself happens upstream; the API only receives the
authenticated user's auth id in a request header.
"""
from flask import request

AUTH_HEADER = 'X-Auth-User-Id'


def get_auth_user_id():
    """Extract the authenticated user's auth id from request headers"""
    return request.headers.get(AUTH_HEADER) or request.headers.get(AUTH_HEADER.lower())
