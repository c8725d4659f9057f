"""Services layer for business logic separation."""

from .ai_service import AIService, AIProvider, AIConfig, create_ai_service
from .translation_service import TranslationService
from .scheduler import LEVEL_LABELS, ReviewOutcome, SpacedRepetitionScheduler
from .repository import (
    ImportResult,
    InMemoryStore,
    LocalFileStore,
    MirrorFileStore,
    SnapshotReplication,
    SnapshotStore,
    SyncStrategy,
    WordRepository,
)
from .review_service import ReviewService
from .reminder import ReviewReminder
from .vocabulary_service import VocabularyService

__all__ = [
    "AIService",
    "AIProvider",
    "AIConfig",
    "create_ai_service",
    "TranslationService",
    "LEVEL_LABELS",
    "ReviewOutcome",
    "SpacedRepetitionScheduler",
    "ImportResult",
    "InMemoryStore",
    "LocalFileStore",
    "MirrorFileStore",
    "SnapshotReplication",
    "SnapshotStore",
    "SyncStrategy",
    "WordRepository",
    "ReviewService",
    "ReviewReminder",
    "VocabularyService",
]
