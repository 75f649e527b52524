"""
Translation Manager Module

Main TranslationManager class that coordinates the translation workflow:
- Extract every document (all-or-nothing, before any provider call)
- Deduplicate across documents
- Translate the unique strings through a TranslationController
- Fan results out and rebuild every document per language
- Capture review artifacts for the correction loop
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from batchlingo import language_codes as lc
from batchlingo.ai.base import ContentMode, TranslateOptions, TranslationProvider
from batchlingo.config import PipelineSettings
from batchlingo.documents import get_handler
from batchlingo.documents.models import (
    DocumentKind,
    Extraction,
    MalformedDocument,
    TabularDocument,
)
from batchlingo.logger import get_logger
from batchlingo.review.artifact import ReviewArtifact, build_artifact
from batchlingo.translation.controller import ControllerResult, TranslationController
from batchlingo.translation.dedup import DeduplicationResult, DeduplicationStats, deduplicate
from batchlingo.translation.memory import TranslationMemory
from batchlingo.translation.progress import ProgressState
from batchlingo.translation.token import ControlToken

logger = get_logger(__name__)

DEFAULT_SOURCE_LANGUAGE = "en-US"


@dataclass
class SourceFile:
    """One input document of a run."""
    name: str
    document: Any
    source_language: Optional[str] = None


@dataclass
class PreparedRun:
    files: List[SourceFile]
    extractions: List[Extraction]
    dedup: DeduplicationResult
    source_language: str
    target_languages: List[str]
    existing_language_modes: Dict[str, str] = field(default_factory=dict)


@dataclass
class DocumentOutput:
    name: str
    kind: DocumentKind
    outputs: Dict[str, Any] = field(default_factory=dict)     # lang -> rebuilt document
    combined: Optional[TabularDocument] = None                 # tabular: every language on one matrix
    artifact: Optional[ReviewArtifact] = None


@dataclass
class RunReport:
    result: ControllerResult
    stats: DeduplicationStats
    documents: List[DocumentOutput]

    @property
    def completed_languages(self) -> List[str]:
        return list(self.result.translations)

    def document(self, name: str) -> Optional[DocumentOutput]:
        return next((doc for doc in self.documents if doc.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        payload = self.result.to_dict()
        payload["stats"] = self.stats.to_dict()
        payload["documents"] = [
            {"name": doc.name, "kind": doc.kind.value, "languages": list(doc.outputs)}
            for doc in self.documents
        ]
        return payload


class TranslationManager:
    """
    Runs the extract -> deduplicate -> translate -> rebuild pipeline.

    Features:
    - Multi-file runs share one canonical key space
    - Pause/resume/cancel through a ControlToken
    - Progress callbacks after every batch
    - Review artifacts for every rebuilt document
    """

    def __init__(
        self,
        provider: TranslationProvider,
        settings: Optional[PipelineSettings] = None,
        token: Optional[ControlToken] = None,
        memory: Optional[TranslationMemory] = None,
        progress_callback: Optional[Callable[[ProgressState], None]] = None,
    ):
        """
        Initialize translation manager.

        Args:
            provider: Translation provider adapter
            settings: Pipeline settings (defaults to the stored configuration)
            token: Shared pause/cancel token
            memory: Translation memory consulted when enabled in settings
            progress_callback: Receives a ProgressState snapshot after every batch
        """
        self.provider = provider
        self.settings = settings if settings is not None else PipelineSettings.from_config()
        self.token = token or ControlToken()
        self.memory = memory
        self.progress_callback = progress_callback
        self.controller: Optional[TranslationController] = None

    # ============================================================
    # Preparation
    # ============================================================

    def _resolve_source_language(self, files: Sequence[SourceFile], requested: Optional[str]) -> str:
        declared = {lc.normalize_locale(f.source_language) for f in files if f.source_language}
        if requested:
            declared.add(lc.normalize_locale(requested))
        if len(declared) > 1:
            raise MalformedDocument(
                "batch", f"all documents must share one source language, found {sorted(declared)}")
        return declared.pop() if declared else DEFAULT_SOURCE_LANGUAGE

    def prepare(
        self,
        files: Sequence[SourceFile],
        target_languages: Sequence[str],
        source_language: Optional[str] = None,
        existing_language_modes: Optional[Mapping[str, Any]] = None,
    ) -> PreparedRun:
        """
        Extract and deduplicate every document.

        Raises:
            MalformedDocument: A document cannot be extracted, or documents
                disagree on the source language. Nothing has been sent yet.
        """
        if not files:
            raise MalformedDocument("batch", "no documents to translate")
        languages: List[str] = []
        for code in target_languages:
            if code and code.strip() and lc.normalize_locale(code) not in languages:
                languages.append(lc.normalize_locale(code))
        if not languages:
            raise ValueError("At least one target language is required")

        source = self._resolve_source_language(files, source_language)
        modes = {lc.normalize_locale(k): str(getattr(v, "value", v)) for k, v in (existing_language_modes or {}).items()}
        dnt = list(self.settings.do_not_translate)

        extractions = []
        for source_file in files:
            handler = get_handler(source_file.document)
            try:
                extraction = handler.extract(
                    source_file.document, dnt,
                    target_languages=languages, existing_language_modes=modes,
                )
            except MalformedDocument as e:
                logger.error(f"Cannot extract '{source_file.name}': {e}")
                raise
            logger.debug(f"Extracted {len(extraction.segments)} segments from '{source_file.name}'")
            extractions.append(extraction)

        dedup = deduplicate(
            [extraction.segments for extraction in extractions],
            do_not_translate=dnt,
            predefined_translations=self.settings.glossary,
            target_languages=languages,
        )
        stats = dedup.stats
        logger.info(
            f"Prepared {stats.total_files} documents: {stats.total_strings} strings, "
            f"{stats.unique_strings} unique ({stats.deduplication_percentage}% duplicates, "
            f"{stats.saved_api_calls} saved lookups)"
        )
        return PreparedRun(
            files=list(files),
            extractions=extractions,
            dedup=dedup,
            source_language=source,
            target_languages=languages,
            existing_language_modes=modes,
        )

    # ============================================================
    # Translation
    # ============================================================

    def _options(self, prepared: PreparedRun) -> TranslateOptions:
        kinds = {extraction.template.kind for extraction in prepared.extractions}
        mode = ContentMode.JSON if kinds == {DocumentKind.JSON} else ContentMode.PLAIN
        return TranslateOptions(
            content_mode=mode,
            formality=self.settings.formality,
            instructions=self.settings.instructions,
            use_translation_memory=self.settings.use_translation_memory and self.memory is not None,
        )

    def translate(self, prepared: PreparedRun) -> RunReport:
        """
        Translate a prepared run and rebuild every document.

        Only languages the controller finished are rebuilt; a cancelled run
        yields output for the languages completed before the cancel.

        Raises:
            ProviderAuthError: The provider rejected the credentials
        """
        self.controller = TranslationController.from_settings(
            self.provider, self.settings,
            token=self.token,
            memory=self.memory,
            progress_callback=self.progress_callback,
        )
        result = self.controller.run(
            prepared.dedup, prepared.source_language, prepared.target_languages, self._options(prepared))

        finished = list(result.translations)
        documents = []
        for index, (source_file, extraction) in enumerate(zip(prepared.files, prepared.extractions)):
            per_document = prepared.dedup.expand(result.translations, index)
            documents.append(self._rebuild_document(
                source_file, extraction, per_document, finished, prepared))

        logger.info(f"Rebuilt {len(documents)} documents for {len(finished)} languages ({result.summary})")
        return RunReport(result=result, stats=prepared.dedup.stats, documents=documents)

    def _rebuild_document(
        self,
        source_file: SourceFile,
        extraction: Extraction,
        translation_result: Dict[str, Dict[str, str]],
        languages: List[str],
        prepared: PreparedRun,
    ) -> DocumentOutput:
        template = extraction.template
        handler = get_handler(template)
        modes = prepared.existing_language_modes
        output = DocumentOutput(name=source_file.name, kind=template.kind)

        for language in languages:
            output.outputs[language] = handler.rebuild(
                template, extraction.segments, translation_result, language, modes)
        if template.kind == DocumentKind.TABULAR:
            output.combined = handler.rebuild_all(
                template, extraction.segments, translation_result, languages, modes)

        output.artifact = build_artifact(
            source_file.name, extraction, translation_result, languages, modes,
            combined=output.combined, source_language=prepared.source_language,
        )
        return output

    def run(
        self,
        files: Sequence[SourceFile],
        target_languages: Sequence[str],
        source_language: Optional[str] = None,
        existing_language_modes: Optional[Mapping[str, Any]] = None,
    ) -> RunReport:
        """prepare() then translate()."""
        prepared = self.prepare(files, target_languages, source_language, existing_language_modes)
        return self.translate(prepared)
