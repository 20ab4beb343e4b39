"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


MEMORY_DATABASE_URL = "memory://"


class ClubConfig(BaseSettings):
    """Investment club engine configuration"""

    # Storage configuration
    database_url: str = MEMORY_DATABASE_URL  # memory:// or sqlite:///path/to/club.db

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Audit configuration
    enable_audit_logging: bool = True
    audit_table: str = "audit_events"

    class Config:
        env_prefix = "CLUB_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = ClubConfig()


def get_config() -> ClubConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> ClubConfig:
    """Reload configuration from environment"""
    global config
    config = ClubConfig()
    return config
