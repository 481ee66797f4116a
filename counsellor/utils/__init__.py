"""Shared configuration and concurrency helpers."""

from counsellor.utils.config import (
    Settings,
    get_settings,
    load_key_pools,
    configure_logging,
)
from counsellor.utils.concurrency import gather_in_windows

__all__ = [
    "Settings",
    "get_settings",
    "load_key_pools",
    "configure_logging",
    "gather_in_windows",
]
