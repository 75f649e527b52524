from __future__ import annotations

import threading
import time

from batchlingo.translation.memory import TranslationMemory, normalize_text, similarity
from batchlingo.translation.token import ControlToken


class TestTranslationMemory:
    def test_exact_match_ignores_case_tags_and_spacing(self):
        memory = TranslationMemory()
        memory.add("Hello  <b>world</b>", "Bonjour le monde", "en-US", "fr-FR")
        assert normalize_text("  HELLO <i>world</i> ") == "hello world"
        assert memory.lookup("hello world", "en-US", "fr-FR") == "Bonjour le monde"

    def test_region_specific_entry_wins(self):
        memory = TranslationMemory()
        memory.add("Color", "Couleur (CA)", "en-US", "fr-CA")
        memory.add("Color", "Couleur", "en-US", "fr-FR")
        assert memory.lookup("Color", "en-US", "fr-FR") == "Couleur"
        assert memory.lookup("Color", "en-GB", "fr-BE") == "Couleur (CA)"

    def test_only_near_identical_fuzzy_hits_are_applied(self):
        memory = TranslationMemory()
        memory.add("Save your changes", "Enregistrez vos modifications", "en", "fr-FR")
        assert similarity("save your change", "save your changes") >= 95
        assert memory.lookup("Save your change", "en", "fr-FR") == "Enregistrez vos modifications"

        assert memory.lookup("Save all changes", "en", "fr-FR") is None
        matches = memory.find_matches("Save all changes", "en", "fr-FR", threshold=70)
        assert len(matches) == 1
        assert 70 <= matches[0].score < 95
        assert not matches[0].exact

    def test_wrong_language_never_matches(self):
        memory = TranslationMemory()
        memory.add("Hello", "Hallo", "en", "de-DE")
        assert memory.lookup("Hello", "en", "fr-FR") is None

    def test_save_and_load(self):
        memory = TranslationMemory()
        memory.add("Hello", "Bonjour", "en-us", "fr-fr")
        memory.save("course")
        restored = TranslationMemory.load("course")
        assert len(restored) == 1
        assert restored.lookup("Hello", "en-US", "fr-FR") == "Bonjour"
        assert len(TranslationMemory.load("missing")) == 0


class TestControlToken:
    def test_pause_blocks_until_resume(self):
        token = ControlToken()
        token.pause()
        released = []

        def runner():
            released.append(token.wait_if_paused(timeout=5))

        thread = threading.Thread(target=runner)
        thread.start()
        time.sleep(0.05)
        assert released == []
        assert token.resume()
        thread.join(timeout=5)
        assert released == [True]

    def test_cancel_releases_paused_runner(self):
        token = ControlToken()
        token.pause()
        result = []
        thread = threading.Thread(target=lambda: result.append(token.wait_if_paused(timeout=5)))
        thread.start()
        token.cancel()
        thread.join(timeout=5)
        assert result == [False]
        assert not token.pause()
        assert not token.resume()

    def test_sleep_returns_early_on_cancel(self):
        token = ControlToken()
        threading.Timer(0.05, token.cancel).start()
        started = time.monotonic()
        assert token.sleep(5) is False
        assert time.monotonic() - started < 2

    def test_resume_without_pause_is_refused(self):
        token = ControlToken()
        assert not token.resume()
        assert token.sleep(0) is True
