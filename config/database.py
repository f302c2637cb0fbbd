"""Database configuration and Supabase client initialization"""
import os
from dotenv import load_dotenv
from supabase import create_client, Client

load_dotenv()

# Supabase configuration
# These must be set as environment variables - no defaults for security
SUPABASE_URL = os.environ.get('SUPABASE_URL')
SUPABASE_KEY = os.environ.get('SUPABASE_ANON_KEY')
SUPABASE_SERVICE_ROLE_KEY = os.environ.get('SUPABASE_SERVICE_ROLE_KEY')

_supabase = None
_supabase_admin = None


def get_supabase() -> Client:
    """Get the Supabase client instance, creating it on first use"""
    global _supabase
    if _supabase is None:
        if not SUPABASE_URL or not SUPABASE_KEY:
            raise ValueError(
                "Missing required environment variables: SUPABASE_URL and SUPABASE_ANON_KEY must be set. "
                "Please configure these in your environment or .env file."
            )
        _supabase = create_client(SUPABASE_URL, SUPABASE_KEY)
    return _supabase


def get_supabase_admin():
    """Get a service-role Supabase client (bypasses RLS), or None if no service key is configured"""
    global _supabase_admin
    if _supabase_admin is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            return None
        _supabase_admin = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
    return _supabase_admin
