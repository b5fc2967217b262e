"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Function to get settings (for dependency injection)
    db: Function to get Supabase client
    get_supabase_client: Same as db
    get_import_client: Client used by the owned-vehicle import
    check_connection: Health check function
"""

from config.settings import settings, get_settings, Settings, SetExpansionPolicy
from config.database import (
    db,
    get_supabase_client,
    get_admin_client,
    get_import_client,
    check_connection,
    reset_connection,
    DatabaseError,
    ConnectionError
)

__all__ = [
    # Settings
    "settings",
    "get_settings",
    "Settings",
    "SetExpansionPolicy",

    # Database
    "db",
    "get_supabase_client",
    "get_admin_client",
    "get_import_client",
    "check_connection",
    "reset_connection",
    "DatabaseError",
    "ConnectionError",
]
