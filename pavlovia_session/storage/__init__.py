"""
Storage Layer.

Handles reading configuration and settings, and the local download fallback
for results that are not uploaded.
"""

from .config_loader import ConfigLoader
from .download import DirectoryDownloadOffer, DownloadOffer
from .settings_manager import SettingsManager

__all__ = ["ConfigLoader", "DirectoryDownloadOffer", "DownloadOffer", "SettingsManager"]
