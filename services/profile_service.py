"""Current-user lookups"""
from config.database import get_supabase
from services.errors import EntityNotFound, PersistenceError
from services.models import User
from utils.logger import log_error


def get_user_by_auth_id(auth_id):
    """Load the users row linked to an authenticated identity"""
    supabase = get_supabase()

    try:
        profile = supabase.table('users').select('id, name, title, email, auth_id').eq('auth_id', auth_id).execute()
    except Exception as e:
        log_error("Error loading user profile", e, component='profile')
        raise PersistenceError('select', 'user', str(e))

    if not profile.data:
        raise EntityNotFound('User', auth_id)
    return User.from_row(profile.data[0])


def get_user(user_id):
    """Load a users row by primary key"""
    supabase = get_supabase()

    try:
        result = supabase.table('users').select('id, name, title, email, auth_id').eq('id', user_id).execute()
    except Exception as e:
        log_error("Error loading user", e, component='profile')
        raise PersistenceError('select', 'user', str(e))

    if not result.data:
        raise EntityNotFound('User', user_id)
    return User.from_row(result.data[0])
