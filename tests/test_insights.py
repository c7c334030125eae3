import unittest
from datetime import datetime, timezone

from insights import (
    AI_SUMMARY,
    WORD_FREQUENCY,
    AiSummary,
    InsightRecord,
    MalformedRecordError,
    WordFrequency,
    build_record,
    clean_ai_summary,
    format_timestamp,
    parse_timestamp,
    record_insight,
)
from store import InMemoryInsightStore


FIXED_NOW = datetime(2026, 3, 1, 9, 30, 15, 123000, tzinfo=timezone.utc)


class CleanAiSummaryTests(unittest.TestCase):
    def test_removes_markdown_artifacts(self):
        raw = (
            "## PROFESSIONAL SUMMARY:\n"
            "**Jane** is a *senior* engineer.\n"
            "- Built `payments` services\n"
            "  • Led ```migration``` work\n"
        )
        self.assertEqual(
            clean_ai_summary(raw),
            "PROFESSIONAL SUMMARY:\nJane is a senior engineer.\nBuilt payments services\nLed migration work",
        )

    def test_keeps_inline_hyphens(self):
        self.assertEqual(clean_ai_summary("A mid-level engineer"), "A mid-level engineer")

    def test_empty_input(self):
        self.assertEqual(clean_ai_summary(""), "")


class BuildRecordTests(unittest.TestCase):
    def test_ai_summary_is_used_when_present(self):
        record = build_record("doc-1", "jane.pdf", "ignored text", "**Strong** candidate", now=FIXED_NOW)
        self.assertEqual(record.type, AI_SUMMARY)
        self.assertEqual(record.insight, AiSummary("Strong candidate"))
        self.assertEqual(record.id, "doc-1")
        self.assertEqual(record.filename, "jane.pdf")
        self.assertEqual(record.upload_date, FIXED_NOW)

    def test_missing_summary_falls_back_to_word_frequency(self):
        text = (
            "Experienced experienced software software engineer engineer "
            "with with strong strong skills skills"
        )
        record = build_record("doc-2", "cv.pdf", text, None, now=FIXED_NOW)
        self.assertEqual(record.type, WORD_FREQUENCY)
        self.assertEqual(
            record.insight.words,
            ("experienced", "software", "engineer", "strong", "skills"),
        )
        self.assertEqual(
            record.to_dict(),
            {
                "id": "doc-2",
                "filename": "cv.pdf",
                "uploadDate": "2026-03-01T09:30:15.123Z",
                "type": "word_frequency",
                "topWords": ["experienced", "software", "engineer", "strong", "skills"],
            },
        )

    def test_summary_that_is_only_markdown_falls_back(self):
        record = build_record("doc-3", "cv.pdf", "python python django", "** ``` **", now=FIXED_NOW)
        self.assertEqual(record.insight, WordFrequency(("python", "django")))

    def test_empty_text_without_summary_gives_empty_words(self):
        record = build_record("doc-4", "blank.pdf", "", None, now=FIXED_NOW)
        self.assertEqual(record.insight, WordFrequency(()))

    def test_upload_date_defaults_to_now_in_utc(self):
        record = build_record("doc-5", "cv.pdf", "text", "Summary")
        self.assertEqual(record.upload_date.tzinfo, timezone.utc)
        self.assertEqual(record.upload_date.microsecond % 1000, 0)

    def test_record_insight_appends(self):
        store = InMemoryInsightStore()
        record = record_insight(store, "doc-6", "cv.pdf", "kubernetes docker", None, top_words_count=1)
        self.assertEqual(record.insight, WordFrequency(("kubernetes",)))
        self.assertEqual(store.get_by_id("doc-6"), record)


class SerializationTests(unittest.TestCase):
    def test_ai_summary_payload_shape(self):
        record = InsightRecord("a", "a.pdf", FIXED_NOW, AiSummary("Summary"))
        payload = record.to_dict()
        self.assertEqual(payload["type"], "ai_summary")
        self.assertEqual(payload["summary"], "Summary")
        self.assertNotIn("topWords", payload)
        self.assertEqual(InsightRecord.from_dict(payload), record)

    def test_from_dict_rejects_bad_records(self):
        bad_payloads = [
            "not a dict",
            {"filename": "a.pdf", "uploadDate": "2026-01-01T00:00:00Z", "type": "ai_summary"},
            {"id": "a", "filename": "a.pdf", "uploadDate": "yesterday", "type": "ai_summary", "summary": "x"},
            {"id": "a", "filename": "a.pdf", "uploadDate": "2026-01-01T00:00:00Z", "type": "other"},
            {"id": "a", "filename": "a.pdf", "uploadDate": "2026-01-01T00:00:00Z", "type": "word_frequency"},
            {"id": "a", "filename": "a.pdf", "uploadDate": "2026-01-01T00:00:00Z", "type": "ai_summary"},
        ]
        for payload in bad_payloads:
            with self.assertRaises(MalformedRecordError):
                InsightRecord.from_dict(payload)

    def test_timestamps_round_trip_with_z_suffix(self):
        self.assertEqual(format_timestamp(FIXED_NOW), "2026-03-01T09:30:15.123Z")
        self.assertEqual(parse_timestamp("2026-03-01T09:30:15.123Z"), FIXED_NOW)
        self.assertEqual(parse_timestamp("2026-03-01T10:30:15.123+01:00"), FIXED_NOW)


if __name__ == "__main__":
    unittest.main()
