"""
Translation Controller Module

Drives canonical strings through a TranslationProvider, one target language at
a time and one batch at a time:
- Resolve what needs no provider call (same base language, glossary, memory)
- Dispatch the rest in deduplication order, in batches
- Wait the inter-request delay and honour pause/cancel before every dispatch
- Report a ProgressState snapshot after every batch

Provider failures are contained per language: an authentication error fails
the whole run, anything else ends the current language and the run moves on.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from batchlingo import language_codes as lc
from batchlingo.ai.base import TranslateOptions, TranslationProvider
from batchlingo.ai.exceptions import ProviderAuthError, TranslationError
from batchlingo.config import DEFAULT_BATCH_SIZE, PipelineSettings
from batchlingo.logger import get_logger
from batchlingo.protection.terms import (
    Glossary,
    apply_glossary_terms,
    find_glossary_translation,
    restore_placeholders,
)
from batchlingo.translation.dedup import CanonicalString, DeduplicationResult
from batchlingo.translation.memory import TranslationMemory
from batchlingo.translation.progress import ProgressState
from batchlingo.translation.token import ControlToken

logger = get_logger(__name__)

ProgressCallback = Callable[[ProgressState], None]


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class LanguageOutcome:
    """Per-language counters, reported once the run ends."""
    language: str
    status: str = "pending"          # pending|completed|copied|failed|cancelled
    success_count: int = 0
    failure_count: int = 0
    provider_calls: int = 0
    memory_hits: int = 0
    glossary_hits: int = 0
    errors: List[str] = field(default_factory=list)
    failed_keys: List[str] = field(default_factory=list)

    @property
    def had_failures(self) -> bool:
        return self.status == "failed" or self.failure_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "status": self.status,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "provider_calls": self.provider_calls,
            "memory_hits": self.memory_hits,
            "glossary_hits": self.glossary_hits,
            "errors": list(self.errors),
            "failed_keys": list(self.failed_keys),
        }


@dataclass
class ControllerResult:
    state: RunState
    translations: Dict[str, Dict[str, str]]      # lang -> canonical key -> text
    outcomes: List[LanguageOutcome]
    progress: ProgressState
    error: Optional[str] = None
    elapsed_time: float = 0.0

    @property
    def summary(self) -> str:
        finished = [o for o in self.outcomes if o.status in ("completed", "copied", "failed")]
        with_failures = [o for o in finished if o.had_failures]
        text = f"{len(finished)}/{len(self.outcomes)} languages completed"
        if with_failures:
            text += f", {len(with_failures)} had failures"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "summary": self.summary,
            "languages": [o.to_dict() for o in self.outcomes],
            "progress": self.progress.to_dict(),
            "error": self.error,
            "elapsed_time": round(self.elapsed_time, 2),
        }


class _Cancelled(Exception):
    """Raised internally when the token is cancelled at a suspension point."""


class TranslationController:
    """
    Sequential, pausable, cancellable dispatcher for one translation run.

    A controller is built once per run. Pause/resume/cancel may be called
    from any thread; they act through the shared ControlToken.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        token: Optional[ControlToken] = None,
        request_delay: float = 0.0,
        batch_size: int = DEFAULT_BATCH_SIZE,
        memory: Optional[TranslationMemory] = None,
        glossary: Optional[Glossary] = None,
        partial_glossary: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.provider = provider
        self.token = token or ControlToken()
        self.request_delay = max(0.0, request_delay)
        self.batch_size = batch_size
        self.memory = memory
        self.glossary = glossary or {}
        self.partial_glossary = partial_glossary
        self.progress_callback = progress_callback
        self.progress = ProgressState()
        self._state = RunState.IDLE

    @classmethod
    def from_settings(
        cls,
        provider: TranslationProvider,
        settings: PipelineSettings,
        token: Optional[ControlToken] = None,
        memory: Optional[TranslationMemory] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> "TranslationController":
        return cls(
            provider,
            token=token,
            request_delay=settings.request_delay,
            batch_size=settings.batch_size,
            memory=memory,
            glossary=settings.glossary,
            partial_glossary=settings.partial_glossary,
            progress_callback=progress_callback,
        )

    @property
    def state(self) -> RunState:
        return self._state

    # ============================================================
    # External control
    # ============================================================

    def pause(self) -> bool:
        paused = self.token.pause()
        if paused:
            logger.info("Pause requested; no new batch will be dispatched until resumed")
        return paused

    def resume(self) -> bool:
        resumed = self.token.resume()
        if resumed:
            logger.info("Resume requested")
        return resumed

    def cancel(self) -> None:
        logger.info("Cancel requested")
        self.token.cancel()

    # ============================================================
    # Run
    # ============================================================

    def _notify(self) -> None:
        if self.progress_callback:
            self.progress_callback(replace(self.progress))

    def _suspension_point(self) -> None:
        """Inter-request delay, then the pause gate. Raises _Cancelled."""
        if not self.token.sleep(self.request_delay):
            raise _Cancelled()
        if self.token.paused:
            self._state = RunState.PAUSED
            self.progress.paused = True
            self.progress.phase = "paused"
            self._notify()
            logger.info(f"Run paused before next batch of {self.progress.current_language}")
            if not self.token.wait_if_paused():
                raise _Cancelled()
            self._state = RunState.RUNNING
            self.progress.paused = False
            self.progress.phase = "translating"
            logger.info("Run resumed")
        if self.token.cancelled:
            raise _Cancelled()

    def run(
        self,
        dedup: DeduplicationResult,
        source_language: str,
        target_languages: Sequence[str],
        options: Optional[TranslateOptions] = None,
    ) -> ControllerResult:
        """
        Translate every translatable canonical string into every language.

        Args:
            dedup: Output of deduplicate()
            source_language: Locale of the source text
            target_languages: Locales to produce, processed in this order
            options: Provider options (content mode, formality, instructions, memory)

        Returns:
            ControllerResult; translations hold only languages that finished
            (a language interrupted by cancel is dropped)

        Raises:
            ProviderAuthError: The provider rejected the credentials
        """
        if self._state in (RunState.RUNNING, RunState.PAUSED):
            raise RuntimeError("Translation run already in progress")

        options = options or TranslateOptions()
        languages: List[str] = []
        for code in target_languages:
            if code and code.strip() and lc.normalize_locale(code) not in languages:
                languages.append(lc.normalize_locale(code))

        translatable = dedup.translatable()
        start_time = time.time()
        self._state = RunState.RUNNING
        self.progress = ProgressState(
            total=len(translatable) * len(languages),
            phase="translating",
            total_languages=len(languages),
        )
        outcomes = [LanguageOutcome(language) for language in languages]
        translations: Dict[str, Dict[str, str]] = {}

        logger.info(
            f"Starting translation run: {len(translatable)} unique strings x {len(languages)} languages "
            f"({dedup.stats.excluded_strings} excluded, batch size {self.batch_size}, "
            f"delay {self.request_delay}s)"
        )

        try:
            for outcome in outcomes:
                if self.token.cancelled:
                    raise _Cancelled()
                translations[outcome.language] = self._translate_language(
                    translatable, source_language, outcome, options)
                self.progress.completed_languages += 1
                self.progress.phase = "language_completed"
                self._notify()
        except _Cancelled:
            for outcome in outcomes:
                if outcome.status in ("pending", "running"):
                    outcome.status = "cancelled"
            self._state = RunState.CANCELLED
            self.progress.cancelled = True
            self.progress.paused = False
            self.progress.phase = "cancelled"
            self._notify()
            logger.info(f"Translation run cancelled after {len(translations)} of {len(languages)} languages")
        except ProviderAuthError as e:
            logger.error(f"Provider rejected credentials, aborting run: {e}")
            self._state = RunState.FAILED
            self.progress.phase = "failed"
            self._notify()
            raise
        else:
            self._state = RunState.COMPLETED
            self.progress.phase = "completed"
            self._notify()

        result = ControllerResult(
            state=self._state,
            translations=translations,
            outcomes=outcomes,
            progress=replace(self.progress),
            elapsed_time=time.time() - start_time,
        )
        logger.info(f"Translation run {self._state.value}: {result.summary} in {result.elapsed_time:.1f}s")
        return result

    # ============================================================
    # One language
    # ============================================================

    def _pre_resolve(
        self,
        canonical: CanonicalString,
        source_language: str,
        language: str,
        options: TranslateOptions,
        outcome: LanguageOutcome,
    ) -> Optional[str]:
        predefined = canonical.predefined_for(language) or find_glossary_translation(
            canonical.key, self.glossary, language)
        if predefined:
            outcome.glossary_hits += 1
            return predefined
        if options.use_translation_memory and self.memory is not None:
            hit = self.memory.lookup(canonical.key, source_language, language)
            if hit:
                outcome.memory_hits += 1
                return hit
        return None

    def _prepare_batch(self, keys: List[str], language: str) -> Tuple[List[str], Dict[str, Tuple[str, Dict[str, str]]]]:
        """Strings to send, and sent text -> (canonical key, glossary placeholders)."""
        sent: List[str] = []
        lookup: Dict[str, Tuple[str, Dict[str, str]]] = {}
        for key in keys:
            text, mapping = key, {}
            if self.partial_glossary and self.glossary:
                text, mapping = apply_glossary_terms(key, self.glossary, language)
                if text in lookup:
                    text, mapping = key, {}
            if text in lookup:
                continue
            sent.append(text)
            lookup[text] = (key, mapping)
        return sent, lookup

    def _translate_language(
        self,
        translatable: List[CanonicalString],
        source_language: str,
        outcome: LanguageOutcome,
        options: TranslateOptions,
    ) -> Dict[str, str]:
        language = outcome.language
        outcome.status = "running"
        self.progress.phase = "translating"
        self.progress.current_language = language
        self.progress.current_language_name = lc.get_language_name(language) or language
        self.progress.current_batch = 0
        logger.info(f"Translating {len(translatable)} strings into {language}")

        if lc.languages_match(language, source_language):
            # Same base language: the source is the translation
            resolved = {c.key: c.key for c in translatable}
            outcome.success_count = len(resolved)
            outcome.status = "copied"
            self.progress.total_batches = 0
            self.progress.current += len(resolved)
            self.progress.success_count += len(resolved)
            logger.info(f"{language} shares the base language of {source_language}; copied source")
            return resolved

        resolved: Dict[str, str] = {}
        pending: List[str] = []
        for canonical in translatable:
            hit = self._pre_resolve(canonical, source_language, language, options, outcome)
            if hit is None:
                pending.append(canonical.key)
            else:
                resolved[canonical.key] = hit
        if resolved:
            outcome.success_count += len(resolved)
            self.progress.current += len(resolved)
            self.progress.success_count += len(resolved)
            self.progress.saved_calls += len(resolved)
            logger.debug(f"{len(resolved)} strings for {language} resolved from glossary or memory")

        batches = [pending[i:i + self.batch_size] for i in range(0, len(pending), self.batch_size)]
        self.progress.total_batches = len(batches)

        for index, keys in enumerate(batches):
            self._suspension_point()

            sent, lookup = self._prepare_batch(keys, language)
            self.progress.current_batch = index + 1
            logger.debug(f"{language} batch {index + 1}/{len(batches)}: {len(sent)} strings")
            outcome.provider_calls += 1
            try:
                response = self.provider.translate(sent, source_language, language, options) or {}
            except ProviderAuthError:
                outcome.status = "failed"
                raise
            except TranslationError as e:
                remaining = [key for batch in batches[index:] for key in batch]
                logger.warning(
                    f"Provider failure on {language} batch {index + 1}: {e}. "
                    f"{len(remaining)} strings fall back to source"
                )
                outcome.errors.append(str(e))
                outcome.failure_count += len(remaining)
                outcome.failed_keys.extend(remaining)
                outcome.status = "failed"
                self.progress.current += len(remaining)
                self.progress.failure_count += len(remaining)
                self._notify()
                return resolved

            if self.token.cancelled:
                logger.info(f"Discarding {language} batch {index + 1} result; run was cancelled")
                raise _Cancelled()

            for text in sent:
                key, mapping = lookup[text]
                value = response.get(text)
                if isinstance(value, str) and value.strip():
                    resolved[key] = restore_placeholders(value, mapping)
                    outcome.success_count += 1
                    self.progress.success_count += 1
                else:
                    logger.warning(f"No {language} translation returned for {key[:50]!r}; using source")
                    outcome.failure_count += 1
                    outcome.failed_keys.append(key)
                    self.progress.failure_count += 1
            # Keys folded together by glossary substitution share one result
            for key in keys:
                if key not in resolved and key not in outcome.failed_keys:
                    outcome.failure_count += 1
                    outcome.failed_keys.append(key)
                    self.progress.failure_count += 1

            self.progress.current += len(keys)
            self._notify()

        outcome.status = "completed"
        logger.info(
            f"Finished {language}: {outcome.success_count} translated, {outcome.failure_count} failed, "
            f"{outcome.provider_calls} provider calls"
        )
        return resolved
