"""
launch-spine core primitives: errors, logging, settings and secrets.
"""

from launchspine.core.errors import (
    CredentialError,
    ErrorCategory,
    ErrorContext,
    LaunchError,
    ProviderError,
    ResourceStagingError,
    SubmissionError,
)
from launchspine.core.logging import LogContext, configure_logging, get_logger
from launchspine.core.secrets import SecretValue
from launchspine.core.settings import LaunchSettings, get_settings

__all__ = [
    "CredentialError",
    "ErrorCategory",
    "ErrorContext",
    "LaunchError",
    "LaunchSettings",
    "LogContext",
    "ProviderError",
    "ResourceStagingError",
    "SecretValue",
    "SubmissionError",
    "configure_logging",
    "get_logger",
    "get_settings",
]
