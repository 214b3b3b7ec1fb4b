"""
Core utilities and configuration for the pagination engine.

This package provides foundational components used throughout the engine:

Modules:
    config: Application configuration and environment variable management
    database: Checkpoint database engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import session_maker, init_db
    from core.exceptions import HttpFetchError, ConfigurationError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Create checkpoint tables and open a session
    init_db()
    with session_maker() as session:
        pass
"""

__all__ = [
    "config",
    "database",
    "exceptions",
    "logging",
]
