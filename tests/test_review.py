from __future__ import annotations

import pytest

from batchlingo.documents.models import TabularDocument
from batchlingo.review import (
    ReviewArtifact,
    ReviewRow,
    ReviewTable,
    ReviewTableError,
    apply_corrections,
    build_review_rows,
    read_review_csv,
    review_filename,
    write_review_csv,
)
from batchlingo.translation.manager import SourceFile, TranslationManager
from batchlingo.translation.memory import TranslationMemory


@pytest.fixture
def course() -> TabularDocument:
    return TabularDocument(rows=[
        ["ID", "Section", "Field", "Source"],
        ["1", "intro", "title", "Hello"],
        ["2", "intro", "body", "Thanks"],
        ["3", "outro", "title", "Goodbye"],
    ])


@pytest.fixture
def first_pass(provider, settings, course):
    report = TranslationManager(provider, settings).run([SourceFile("course.xlsx", course)], ["fr-FR", "de-DE"])
    return report.document("course.xlsx")


def _tables_from_csv(artifact, languages):
    return [read_review_csv(write_review_csv(build_review_rows(artifact, lang), lang), review_filename(lang, "course.xlsx"))
            for lang in languages]


class TestReviewTables:
    def test_rows_follow_segment_order(self, first_pass):
        rows = build_review_rows(first_pass.artifact, "fr-FR")
        assert [(row.id, row.source, row.translation) for row in rows] == [
            ("T1", "Hello", "[fr-FR] Hello"),
            ("T2", "Thanks", "[fr-FR] Thanks"),
            ("T3", "Goodbye", "[fr-FR] Goodbye"),
        ]

    def test_csv_layout(self, first_pass):
        content = write_review_csv(build_review_rows(first_pass.artifact, "fr-FR"), "fr-FR")
        lines = content.splitlines()
        assert lines[0] == "# Language: fr-FR"
        assert lines[1] == "ID,Source,Translation,Correction,Status"
        assert lines[2] == "T1,Hello,[fr-FR] Hello,,Pending"

    def test_read_table_with_path_column(self):
        content = (
            "sep=,\n"
            "# Language: de-DE,,,,,\n"
            "ID,Path,Source,Translation,Correction,Status\n"
            "T1,$.name,Hello,Hallo,Servus,Pending\n"
            'T2,$.description,"Line one\nline two",Zeile,,Pending\n'
        )
        table = read_review_csv(content)
        assert table.language == "de-DE"
        assert [(row.id, row.path, row.correction) for row in table.rows] == [
            ("T1", "$.name", "Servus"), ("T2", "$.description", "")]
        assert table.rows[1].source == "Line one\nline two"
        assert table.corrections() == {"T1": "Servus"}

    def test_language_from_filename(self):
        table = read_review_csv("ID,Source,Translation,Correction\nT1,Hello,Bonjour,\n",
                                "ClientReview_fr-fr_course.csv")
        assert table.language == "fr-FR"
        assert table.rows[0].status == ""

    def test_table_without_language_is_rejected(self):
        with pytest.raises(ReviewTableError):
            read_review_csv("ID,Source,Translation,Correction\nT1,Hello,Bonjour,\n", "notes.csv")

    def test_filenames(self):
        assert review_filename("fr-fr") == "fr-FR.csv"
        assert review_filename("fr-FR", "exports/course.xlsx") == "ClientReview_fr-FR_course.csv"


class TestCorrections:
    def test_single_correction_leaves_other_cells(self, first_pass):
        table = ReviewTable("fr-FR", [ReviewRow("T2", "Thanks", "[fr-FR] Thanks", "Merci")])
        result = apply_corrections(first_pass.artifact, [table])

        french = [row[4] for row in result.combined.rows[1:]]
        german = [row[5] for row in result.combined.rows[1:]]
        assert french == ["[fr-FR] Hello", "Merci", "[fr-FR] Goodbye"]
        assert german == [row[5] for row in first_pass.combined.rows[1:]]
        assert result.applied == {"fr-FR": 1}
        assert result.artifact.translations["fr-FR"]["T2"] == "Merci"

    def test_unmodified_reimport_is_idempotent(self, first_pass):
        tables = _tables_from_csv(first_pass.artifact, ["fr-FR", "de-DE"])
        result = apply_corrections(first_pass.artifact, tables)
        assert result.combined.rows == first_pass.combined.rows
        assert result.applied == {"fr-FR": 0, "de-DE": 0}

    @pytest.mark.parametrize("language", ["de", "zh-Hans", "fil-PH"])
    def test_reimport_for_bare_language_codes_keeps_one_column(self, provider, settings, course, language):
        report = TranslationManager(provider, settings).run([SourceFile("course.xlsx", course)], [language])
        output = report.document("course.xlsx")
        table = ReviewTable(language, build_review_rows(output.artifact, language))

        result = apply_corrections(output.artifact, [table])

        assert result.combined.rows[0] == ("ID", "Section", "Field", "Source", language)
        assert result.combined.rows == output.combined.rows

    def test_repeated_corrections_stay_stable(self, first_pass):
        table = ReviewTable("fr-FR", [ReviewRow("T1", "Hello", "[fr-FR] Hello", "Bonjour")])
        once = apply_corrections(first_pass.artifact, [table])
        twice = apply_corrections(once.artifact, [table])
        assert twice.combined.rows == once.combined.rows

    def test_stale_ids_are_reported_and_ignored(self, first_pass):
        table = ReviewTable("fr-FR", [
            ReviewRow("T99", "Gone", "", "Parti"),
            ReviewRow("T3", "Goodbye", "[fr-FR] Goodbye", "Au revoir"),
        ])
        result = apply_corrections(first_pass.artifact, [table])
        assert [(s.language, s.segment_id) for s in result.stale] == [("fr-FR", "T99")]
        assert result.combined.rows[3][4] == "Au revoir"

    def test_rows_kept_in_first_pass_stay_untouched(self, provider, settings):
        document = TabularDocument(rows=[
            ["ID", "Section", "Field", "Source", "fr-FR"],
            ["1", "intro", "title", "Hello", "Bonjour"],
            ["2", "intro", "body", "Thanks", ""],
        ])
        report = TranslationManager(provider, settings).run([SourceFile("course.xlsx", document)], ["fr-FR"])
        output = report.document("course.xlsx")
        assert [row.source for row in build_review_rows(output.artifact, "fr-FR")] == ["Thanks"]

        segment_id = output.artifact.segments[0].id
        table = ReviewTable("fr-FR", [ReviewRow(segment_id, "Thanks", "[fr-FR] Thanks", "Merci")])
        result = apply_corrections(output.artifact, [table])
        assert [row[4] for row in result.combined.rows[1:]] == ["Bonjour", "Merci"]

    def test_json_corrections_rebuild_per_language(self, provider, settings, json_document):
        report = TranslationManager(provider, settings).run([SourceFile("avatar.json", json_document)], ["fr-FR"])
        artifact = report.document("avatar.json").artifact
        rows = build_review_rows(artifact, "fr-FR")
        assert rows[0].path == "$.name"

        tables = [read_review_csv(write_review_csv(rows, "fr-FR"))]
        unchanged = apply_corrections(artifact, tables)
        assert unchanged.outputs["fr-FR"].data == report.document("avatar.json").outputs["fr-FR"].data

        table = ReviewTable("fr-FR", [ReviewRow("T1", "Customer empathy", "", "Empathie client")])
        corrected = apply_corrections(artifact, [table])
        data = corrected.outputs["fr-FR"].data
        assert data["name"] == "Empathie client"
        assert data["description"] == "[fr-FR] Practice listening to customers"
        assert corrected.combined is None

    def test_artifact_survives_the_store(self, first_pass):
        first_pass.artifact.save("job/course.xlsx")
        restored = ReviewArtifact.load("job/course.xlsx")
        assert restored.translations == first_pass.artifact.translations
        assert restored.source_language == "en-US"

        table = ReviewTable("fr-FR", [ReviewRow("T2", "Thanks", "", "Merci")])
        assert apply_corrections(restored, [table]).combined.rows == \
            apply_corrections(first_pass.artifact, [table]).combined.rows
        assert ReviewArtifact.load("missing") is None

    def test_corrections_feed_translation_memory(self, first_pass):
        memory = TranslationMemory()
        table = ReviewTable("fr-FR", [ReviewRow("T2", "Thanks", "[fr-FR] Thanks", "Merci")])
        apply_corrections(first_pass.artifact, [table], memory=memory)
        assert memory.lookup("Thanks", "en-US", "fr-FR") == "Merci"
        assert len(memory) == 1
