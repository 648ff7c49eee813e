"""
Configuration management for the Chef API SDK

This module loads RFC 99 credentials files and resolves the active profile.
"""

from .credentials import (
    ChefConfig,
    DEFAULT_PROFILE,
    DEFAULT_SIGN_VERSION,
    default_credentials_path,
    resolve_profile,
    load_credentials,
)

__all__ = [
    'ChefConfig',
    'DEFAULT_PROFILE',
    'DEFAULT_SIGN_VERSION',
    'default_credentials_path',
    'resolve_profile',
    'load_credentials',
]
