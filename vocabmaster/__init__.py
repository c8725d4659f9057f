"""VocabMaster - Bilingual dictionary lookups with spaced-repetition review"""

__version__ = "1.0.0"
__author__ = "VocabMaster Team"

from .config import Config, LANG_CONFIG, SettingsManager
from .exceptions import (
    AuthError,
    PersistenceIOError,
    ProviderMiss,
    ValidationError,
    VocabMasterError,
)
from .lookup import LookupResolver, classify
from .models import InputType, LookupResult, WordRecord
from .services import (
    ReviewService,
    SpacedRepetitionScheduler,
    TranslationService,
    VocabularyService,
    WordRepository,
)

__all__ = [
    'Config',
    'LANG_CONFIG',
    'SettingsManager',
    'AuthError',
    'PersistenceIOError',
    'ProviderMiss',
    'ValidationError',
    'VocabMasterError',
    'LookupResolver',
    'classify',
    'InputType',
    'LookupResult',
    'WordRecord',
    'ReviewService',
    'SpacedRepetitionScheduler',
    'TranslationService',
    'VocabularyService',
    'WordRepository',
]
