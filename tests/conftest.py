"""Shared fixtures for the batchlingo test suite."""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

# Modules read the store at import time (logger config lookup); keep that off the repo root.
os.environ.setdefault("BATCHLINGO_DB", str(Path(tempfile.mkdtemp()) / "import.db"))

import pytest

from batchlingo.ai.base import TranslateOptions, TranslationProvider
from batchlingo.ai.exceptions import ProviderAuthError, ProviderTransientError
from batchlingo.config import PipelineSettings
from batchlingo.core import database as db
from batchlingo.documents.models import JsonDocument, TabularDocument
from batchlingo.documents.json_doc import META_SKILLS_SCHEMA


class RecordingProvider(TranslationProvider):
    """Provider double: answers "[lang] text" and records every call."""

    name = "recording"

    def __init__(
        self,
        fail_languages: Optional[Dict[str, Exception]] = None,
        missing: Optional[List[str]] = None,
        hook: Optional[Callable[[List[str], str], None]] = None,
    ):
        self.calls: List[tuple] = []
        self.fail_languages = fail_languages or {}
        self.missing = set(missing or [])
        self.hook = hook
        self._lock = threading.Lock()

    def translate(self, unique_strings, source_lang, target_lang, options: TranslateOptions):
        with self._lock:
            self.calls.append((list(unique_strings), source_lang, target_lang))
        if self.hook:
            self.hook(list(unique_strings), target_lang)
        error = self.fail_languages.get(target_lang)
        if error is not None:
            raise error
        return {
            text: None if text in self.missing else f"[{target_lang}] {text}"
            for text in unique_strings
        }

    @property
    def strings_sent(self) -> int:
        return sum(len(call[0]) for call in self.calls)

    def languages_called(self) -> List[str]:
        seen: List[str] = []
        for _, _, language in self.calls:
            if language not in seen:
                seen.append(language)
        return seen


@pytest.fixture(autouse=True)
def isolated_store(tmp_path, monkeypatch):
    """Every test gets an empty sqlite store."""
    db_file = tmp_path / "batchlingo.db"
    monkeypatch.setattr(db, "DB_FILE", db_file)
    return db_file


@pytest.fixture
def provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def auth_failure() -> ProviderAuthError:
    return ProviderAuthError("DeepL API error (403): Wrong key")


@pytest.fixture
def transient_failure() -> ProviderTransientError:
    return ProviderTransientError("DeepL API error (429): Too many requests", status_code=429)


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings(do_not_translate=("Blendedx",), request_delay=0.0, batch_size=5)


@pytest.fixture
def tabular_document() -> TabularDocument:
    return TabularDocument(
        rows=[
            ["ID", "Section", "Field", "Source"],
            ["1", "intro", "title", "Hello"],
            ["2", "intro", "body", "Hello"],
            ["3", "outro", "title", "Goodbye"],
        ],
        sheet_name="Course",
    )


@pytest.fixture
def meta_skills_payload() -> dict:
    return {
        "name": "Customer empathy",
        "description": "Practice listening to customers",
        "locale": "en-US",
        "version": 3,
        "episodes": [
            {
                "id": "ep-1",
                "name": "First contact",
                "dialogues": [
                    {"speaker": "avatar", "text": "Hello", "options": [
                        {"text": "Hi there", "feedback": "Good opening", "score": 2},
                    ]},
                ],
            },
        ],
    }


@pytest.fixture
def json_document(meta_skills_payload) -> JsonDocument:
    return JsonDocument(data=meta_skills_payload, schema=META_SKILLS_SCHEMA)


SRT_SAMPLE = """1
00:00:01,000 --> 00:00:03,500
Welcome to Blendedx

2
00:00:04,000 --> 00:00:06,000
Hello {name}
see you soon
"""

VTT_SAMPLE = """WEBVTT
Kind: captions

NOTE written by the course team

intro
00:00:01.000 --> 00:00:03.000 align:start
<v Narrator>Hello

00:00:04.000 --> 00:00:05.500
Goodbye
"""


@pytest.fixture
def srt_content() -> str:
    return SRT_SAMPLE


@pytest.fixture
def vtt_content() -> str:
    return VTT_SAMPLE


@pytest.fixture
def make_provider():
    """Factory for providers with scripted failures."""
    return RecordingProvider
