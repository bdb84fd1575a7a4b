"""
State models and helpers for JSON persistence in a git repository.

This package defines the progress record that is serialized to JSON and
stored through the GitHub contents API, with the blob sha as revision token.
"""

from .models import Preferences, ProgressState

__all__ = ["Preferences", "ProgressState"]
