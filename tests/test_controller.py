from __future__ import annotations

import threading
import time

import pytest

from batchlingo.ai.base import TranslateOptions
from batchlingo.ai.exceptions import ProviderAuthError
from batchlingo.documents.models import Segment
from batchlingo.translation.controller import RunState, TranslationController
from batchlingo.translation.dedup import deduplicate
from batchlingo.translation.memory import TranslationMemory
from batchlingo.translation.token import ControlToken


def _dedup(*texts, languages=("fr-FR",), **kwargs):
    segments = [Segment(id=f"T{i}", source_text=text) for i, text in enumerate(texts, start=1)]
    return deduplicate([segments], target_languages=list(languages), **kwargs)


def _run_in_thread(controller, dedup, languages):
    outcome = {}

    def runner():
        outcome["result"] = controller.run(dedup, "en-US", languages)

    thread = threading.Thread(target=runner, daemon=True)
    thread.start()
    return thread, outcome


class TestDispatch:
    def test_each_unique_string_is_sent_once_per_language(self, provider):
        dedup = _dedup("Hello", "Hello", "Goodbye", languages=["fr-FR", "de-DE"])
        result = TranslationController(provider).run(dedup, "en-US", ["fr-FR", "de-DE"])

        assert result.state == RunState.COMPLETED
        assert provider.strings_sent == 4
        assert result.translations["de-DE"] == {"Hello": "[de-DE] Hello", "Goodbye": "[de-DE] Goodbye"}
        assert (result.progress.current, result.progress.total) == (4, 4)
        assert result.summary == "2/2 languages completed"

    def test_batches_follow_first_occurrence_order(self, provider):
        dedup = _dedup("Hello", "Goodbye", "Hello", "Thanks")
        TranslationController(provider, batch_size=2).run(dedup, "en-US", ["fr-FR"])
        assert [call[0] for call in provider.calls] == [["Hello", "Goodbye"], ["Thanks"]]

    def test_languages_are_normalized_and_deduplicated(self, provider):
        dedup = _dedup("Hello")
        result = TranslationController(provider).run(dedup, "en-US", ["fr-fr", "FR_fr", " "])
        assert list(result.translations) == ["fr-FR"]
        assert provider.languages_called() == ["fr-FR"]

    def test_do_not_translate_strings_are_never_sent(self, provider):
        dedup = _dedup("Blendedx", "Hello", do_not_translate=["Blendedx"])
        result = TranslationController(provider).run(dedup, "en-US", ["fr-FR"])
        assert provider.calls[0][0] == ["Hello"]
        assert "Blendedx" not in result.translations["fr-FR"]

    def test_same_base_language_copies_source(self, provider):
        dedup = _dedup("Hello", "Goodbye", languages=["en-GB", "fr-FR"])
        result = TranslationController(provider).run(dedup, "en-US", ["en-GB", "fr-FR"])
        assert result.translations["en-GB"] == {"Hello": "Hello", "Goodbye": "Goodbye"}
        assert result.outcomes[0].status == "copied"
        assert provider.languages_called() == ["fr-FR"]

    def test_invalid_batch_size_is_rejected(self, provider):
        with pytest.raises(ValueError):
            TranslationController(provider, batch_size=0)

    def test_progress_reported_after_every_batch(self, provider):
        snapshots = []
        dedup = _dedup("a", "b", "c", languages=["fr-FR", "de-DE"])
        TranslationController(provider, batch_size=1, progress_callback=snapshots.append).run(
            dedup, "en-US", ["fr-FR", "de-DE"])

        currents = [s.current for s in snapshots]
        assert currents == sorted(currents)
        assert [s.current for s in snapshots if s.phase == "translating"] == [1, 2, 3, 4, 5, 6]
        assert snapshots[-1].phase == "completed"
        assert snapshots[-1].percentage == 100.0


class TestPrecedence:
    def test_glossary_then_memory_then_provider(self, provider):
        memory = TranslationMemory()
        memory.add("Hello", "Bonjour (TM)", "en-US", "fr-FR")
        memory.add("Goodbye", "Au revoir (TM)", "en-US", "fr-FR")
        glossary = {"Hello": {"fr-FR": "Salut"}}
        dedup = _dedup("Hello", "Goodbye", "Thanks", predefined_translations=glossary)

        controller = TranslationController(provider, memory=memory, glossary=glossary)
        result = controller.run(dedup, "en-US", ["fr-FR"], TranslateOptions(use_translation_memory=True))

        assert result.translations["fr-FR"] == {
            "Hello": "Salut",
            "Goodbye": "Au revoir (TM)",
            "Thanks": "[fr-FR] Thanks",
        }
        assert provider.calls[0][0] == ["Thanks"]
        outcome = result.outcomes[0]
        assert (outcome.glossary_hits, outcome.memory_hits, outcome.provider_calls) == (1, 1, 1)
        assert result.progress.saved_calls == 2

    def test_memory_is_ignored_unless_enabled(self, provider):
        memory = TranslationMemory()
        memory.add("Hello", "Bonjour (TM)", "en-US", "fr-FR")
        result = TranslationController(provider, memory=memory).run(_dedup("Hello"), "en-US", ["fr-FR"])
        assert result.translations["fr-FR"]["Hello"] == "[fr-FR] Hello"

    def test_partial_glossary_terms_are_restored(self, provider):
        glossary = {"Dashboard": {"fr-FR": "Tableau de bord"}}
        controller = TranslationController(provider, glossary=glossary, partial_glossary=True)
        result = controller.run(_dedup("Open the Dashboard"), "en-US", ["fr-FR"])
        assert provider.calls[0][0] == ["Open the __GLOSS_0__"]
        assert result.translations["fr-FR"]["Open the Dashboard"] == "[fr-FR] Open the Tableau de bord"


class TestFailures:
    def test_auth_error_fails_the_run(self, make_provider, auth_failure):
        provider = make_provider(fail_languages={"de-DE": auth_failure})
        controller = TranslationController(provider)
        with pytest.raises(ProviderAuthError):
            controller.run(_dedup("Hello", languages=["fr-FR", "de-DE", "es-ES"]), "en-US",
                           ["fr-FR", "de-DE", "es-ES"])
        assert controller.state == RunState.FAILED
        assert provider.languages_called() == ["fr-FR", "de-DE"]

    def test_transient_error_moves_on_to_next_language(self, make_provider, transient_failure):
        provider = make_provider(fail_languages={"de-DE": transient_failure})
        languages = ["fr-FR", "de-DE", "es-ES"]
        result = TranslationController(provider).run(_dedup("Hello", "Goodbye", languages=languages),
                                                      "en-US", languages)

        assert result.state == RunState.COMPLETED
        assert provider.languages_called() == languages
        german = result.outcomes[1]
        assert german.status == "failed"
        assert german.failed_keys == ["Hello", "Goodbye"]
        assert result.translations["de-DE"] == {}
        assert "es-ES" in result.translations
        assert result.summary == "3/3 languages completed, 1 had failures"

    def test_missing_keys_fall_back_without_failing_language(self, make_provider):
        provider = make_provider(missing=["Goodbye"])
        result = TranslationController(provider).run(_dedup("Hello", "Goodbye"), "en-US", ["fr-FR"])
        outcome = result.outcomes[0]
        assert outcome.status == "completed"
        assert outcome.failed_keys == ["Goodbye"]
        assert result.translations["fr-FR"] == {"Hello": "[fr-FR] Hello"}


class TestControl:
    def test_cancel_after_first_language(self, provider):
        languages = ["fr-FR", "de-DE", "es-ES"]
        controller = TranslationController(provider)

        def on_progress(state):
            if state.phase == "language_completed" and state.completed_languages == 1:
                controller.cancel()

        controller.progress_callback = on_progress
        result = controller.run(_dedup("Hello", "Goodbye", languages=languages), "en-US", languages)

        assert result.state == RunState.CANCELLED
        assert list(result.translations) == ["fr-FR"]
        assert provider.languages_called() == ["fr-FR"]
        assert [o.status for o in result.outcomes] == ["completed", "cancelled", "cancelled"]
        assert result.progress.cancelled

    def test_result_arriving_after_cancel_is_discarded(self, make_provider):
        token = ControlToken()

        def cancel_during_german(strings, language):
            if language == "de-DE":
                token.cancel()

        provider = make_provider(hook=cancel_during_german)
        languages = ["fr-FR", "de-DE"]
        result = TranslationController(provider, token=token).run(
            _dedup("Hello", languages=languages), "en-US", languages)

        assert result.state == RunState.CANCELLED
        assert list(result.translations) == ["fr-FR"]
        assert result.outcomes[1].status == "cancelled"

    def test_pause_withholds_the_next_batch(self, make_provider):
        token = ControlToken()
        paused = threading.Event()

        def pause_after_first(strings, language):
            if len(provider.calls) == 1:
                token.pause()

        provider = make_provider(hook=pause_after_first)
        controller = TranslationController(
            provider, token=token, batch_size=1,
            progress_callback=lambda state: paused.set() if state.phase == "paused" else None,
        )
        thread, outcome = _run_in_thread(controller, _dedup("Hello", "Goodbye"), ["fr-FR"])

        assert paused.wait(timeout=5)
        assert controller.state == RunState.PAUSED
        assert len(provider.calls) == 1
        assert controller.resume()
        thread.join(timeout=5)

        result = outcome["result"]
        assert result.state == RunState.COMPLETED
        assert len(provider.calls) == 2
        assert result.translations["fr-FR"]["Hello"] == "[fr-FR] Hello"

    def test_cancel_while_paused(self, provider):
        token = ControlToken()
        paused = threading.Event()
        token.pause()
        controller = TranslationController(
            provider, token=token,
            progress_callback=lambda state: paused.set() if state.phase == "paused" else None,
        )
        thread, outcome = _run_in_thread(controller, _dedup("Hello"), ["fr-FR"])

        assert paused.wait(timeout=5)
        controller.cancel()
        thread.join(timeout=5)
        assert outcome["result"].state == RunState.CANCELLED
        assert provider.calls == []

    def test_request_delay_between_dispatches(self, provider):
        controller = TranslationController(provider, request_delay=0.05, batch_size=1)
        started = time.monotonic()
        controller.run(_dedup("a", "b", "c"), "en-US", ["fr-FR"])
        assert time.monotonic() - started >= 0.15
        assert len(provider.calls) == 3
