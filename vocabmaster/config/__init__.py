"""Configuration module for VocabMaster."""

from .settings import Config
from .languages import LANG_CONFIG, get_language
from .config_manager import SettingsManager

__all__ = [
    'Config',
    'LANG_CONFIG',
    'get_language',
    'SettingsManager',
]
