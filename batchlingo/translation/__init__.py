"""
Translation module - Core translation functionality

This module provides:
- TranslationManager: Pipeline coordinator (extract, deduplicate, translate, rebuild)
- TranslationController: Sequential, pausable, cancellable dispatcher
- ControlToken: Pause / resume / cancel token
- ProgressState: Progress snapshot dataclass
- deduplicate: Canonical strings across documents
- TranslationMemory: Confirmed translations with fuzzy lookup
"""

from batchlingo.translation.progress import ProgressState
from batchlingo.translation.token import ControlToken
from batchlingo.translation.dedup import (
    CanonicalString,
    DeduplicationResult,
    DeduplicationStats,
    Occurrence,
    deduplicate,
)
from batchlingo.translation.memory import TranslationMemory
from batchlingo.translation.controller import (
    ControllerResult,
    LanguageOutcome,
    RunState,
    TranslationController,
)
from batchlingo.translation.manager import (
    DocumentOutput,
    PreparedRun,
    RunReport,
    SourceFile,
    TranslationManager,
)
