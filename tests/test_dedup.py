from __future__ import annotations

from batchlingo.documents import extract
from batchlingo.documents.models import Segment
from batchlingo.loaders import parse_srt
from batchlingo.translation.dedup import deduplicate


def _segments(*texts):
    return [Segment(id=f"T{i}", source_text=text) for i, text in enumerate(texts, start=1)]


class TestDeduplicate:
    def test_counts_for_one_language(self):
        result = deduplicate([_segments("Hello", "Hello", "Goodbye")], target_languages=["fr-FR"])
        assert (result.total_count, result.unique_count, result.saved_count) == (3, 2, 1)
        assert [c.key for c in result.canonical_strings] == ["Hello", "Goodbye"]
        assert [c.id for c in result.canonical_strings] == ["C1", "C2"]

    def test_savings_scale_with_languages(self):
        result = deduplicate([_segments("Hello", "Hello", "Goodbye")], target_languages=["fr-FR", "de-DE"])
        assert result.saved_count == 2
        assert result.stats.character_savings == len("Hello") * 2

    def test_keys_are_trimmed(self):
        result = deduplicate([_segments("Hello ", " Hello", "")])
        assert result.unique_count == 1
        assert result.total_count == 2
        assert result.index == {(0, "T1"): "Hello", (0, "T2"): "Hello"}

    def test_shared_key_space_across_documents(self):
        result = deduplicate([_segments("Hello", "Welcome"), _segments("Welcome", "Bye")])
        assert result.unique_count == 3
        welcome = result.canonical_strings[1]
        assert [(o.document, o.segment_id) for o in welcome.occurrences] == [(0, "T2"), (1, "T1")]
        assert result.stats.total_files == 2

    def test_do_not_translate_strings_are_excluded(self):
        result = deduplicate([_segments("Blendedx", "Hello")], do_not_translate=["Blendedx"])
        assert [c.key for c in result.translatable()] == ["Hello"]
        assert result.stats.excluded_strings == 1

    def test_glossary_prefill_per_language(self):
        glossary = {"Hello": {"fr-FR": "Bonjour", "de": "Hallo"}}
        result = deduplicate([_segments("Hello")], predefined_translations=glossary,
                             target_languages=["fr-FR", "de-AT", "es-ES"])
        canonical = result.canonical_strings[0]
        assert canonical.predefined_for("fr-fr") == "Bonjour"
        assert canonical.predefined_for("de-AT") == "Hallo"
        assert canonical.predefined_for("es-ES") is None
        assert result.stats.glossary_matches == 1

    def test_same_input_same_ids(self):
        first = deduplicate([_segments("a", "b", "a")])
        second = deduplicate([_segments("a", "b", "a")])
        assert [(c.id, c.key) for c in first.canonical_strings] == [(c.id, c.key) for c in second.canonical_strings]

    def test_expand_fans_out_per_document(self):
        result = deduplicate([_segments("Hello", "Hello"), _segments("Hello", "Bye")])
        translations = {"fr-FR": {"Hello": "Bonjour", "Bye": "Salut"}}
        assert result.expand(translations, 0) == {"fr-FR": {"T1": "Bonjour", "T2": "Bonjour"}}
        assert result.expand(translations, 1) == {"fr-FR": {"T1": "Bonjour", "T2": "Salut"}}

    def test_counts_add_up_across_documents(self, tabular_document, json_document, srt_content):
        documents = [tabular_document, json_document, parse_srt(srt_content)]
        segments = [extract(document, ["Blendedx"]).segments for document in documents]
        result = deduplicate(segments, do_not_translate=["Blendedx"], target_languages=["fr-FR", "de-DE"])

        assert sum(len(c.occurrences) for c in result.canonical_strings) == result.total_count
        assert result.unique_count + result.duplicate_count == result.total_count
        stats = result.stats
        assert stats.unique_strings + stats.duplicate_strings == stats.total_strings == result.total_count
        assert result.saved_count == result.duplicate_count * 2
        assert result.duplicate_count >= 2
