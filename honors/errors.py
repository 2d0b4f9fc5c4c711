#!/usr/bin/env python3
"""Exception types raised by the honors pipeline."""


class HonorsError(Exception):
    """Base class for pipeline errors"""


class ConfigError(HonorsError):
    """Invalid configuration value (caps, award rules, store settings)"""


class SnapshotError(HonorsError):
    """Input collection could not be read. The only run-fatal error."""


class StoreError(HonorsError):
    """Record Store read/write failed after retries"""

    def __init__(self, message: str, game_id=None):
        super().__init__(message)
        self.game_id = game_id
