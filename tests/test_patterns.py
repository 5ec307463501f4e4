"""
Tests for the per-subject pattern store
"""
import random
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from studybuddy.models import Pattern, Question, SubjectCategory
from studybuddy.services.cache import CacheService
from studybuddy.services.patterns import PatternImportError, PatternStore


def question(n):
    return Question(
        question_text=f"What caused event number {n} in the period?",
        answer_text=f"Cause {n}",
        options=[f"Cause {n}", f"Other {n}a", f"Other {n}b", f"Other {n}c"],
        correct_index=0,
    )


class TestStoreAndEvict:
    def test_keeps_twenty_most_recent(self, pattern_store):
        for n in range(25):
            pattern_store.store(SubjectCategory.HISTORY, [question(n)])

        patterns = pattern_store.get_all(SubjectCategory.HISTORY)
        assert len(patterns) == 20
        assert [p.question_text for p in patterns] == [question(n).question_text for n in range(5, 25)]

    def test_batch_overflow(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(n) for n in range(30)])
        patterns = pattern_store.get_all("history")
        assert len(patterns) == 20
        assert patterns[0].question_text == question(10).question_text

    def test_subjects_are_independent(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(1)])
        pattern_store.store(SubjectCategory.ARTS, [question(2), question(3)])
        assert len(pattern_store.get_all(SubjectCategory.HISTORY)) == 1
        assert len(pattern_store.get_all(SubjectCategory.ARTS)) == 2
        assert pattern_store.get_all(SubjectCategory.MATHEMATICS) == []

    def test_pattern_summary_fields(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(7)])
        pattern = pattern_store.get_all(SubjectCategory.HISTORY)[0]
        assert pattern.question_length == len(question(7).question_text)
        assert pattern.has_numbers
        assert pattern.options == question(7).options

    def test_get_random(self):
        store = PatternStore(rng=random.Random(3))
        assert store.get_random(SubjectCategory.HISTORY) is None
        store.store(SubjectCategory.HISTORY, [question(1), question(2)])
        assert store.get_random(SubjectCategory.HISTORY) in store.get_all(SubjectCategory.HISTORY)

    def test_reset(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(1), question(2)])
        assert pattern_store.reset(SubjectCategory.HISTORY) == 2
        assert pattern_store.get_all(SubjectCategory.HISTORY) == []


class TestPrune:
    def test_removes_old_patterns(self, pattern_store):
        old = Pattern.from_question(question(1), created_at=datetime.now(timezone.utc) - timedelta(days=45))
        pattern_store.import_patterns({"subject": "history", "patterns": [old.model_dump(mode="json")]})
        pattern_store.store(SubjectCategory.HISTORY, [question(2)])

        assert pattern_store.prune(SubjectCategory.HISTORY, max_age_days=30) == 1
        remaining = pattern_store.get_all(SubjectCategory.HISTORY)
        assert [p.question_text for p in remaining] == [question(2).question_text]

    def test_nothing_to_prune(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(1)])
        assert pattern_store.prune(SubjectCategory.HISTORY) == 0

    def test_naive_imported_timestamps_mix_with_new_ones(self, pattern_store):
        imported = [
            {"question_text": "Which treaty ended the war in the old export?", "created_at": "2020-01-01T00:00:00"},
            {"question_text": "Which reform followed the treaty in the export?", "created_at": "2021-06-01T00:00:00.000Z"},
        ]
        pattern_store.import_patterns({"subject": "history", "patterns": imported})
        pattern_store.store(SubjectCategory.HISTORY, [question(1)])

        stats = pattern_store.stats(SubjectCategory.HISTORY)
        assert stats["count"] == 3
        assert stats["oldest"].startswith("2020-01-01T00:00:00")
        assert pattern_store.prune(SubjectCategory.HISTORY, max_age_days=30) == 2
        assert [p.question_text for p in pattern_store.get_all("history")] == [question(1).question_text]

    def test_timestamps_are_utc(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(1)])
        assert pattern_store.get_all("history")[0].created_at.tzinfo == timezone.utc
        naive = Pattern(question_text="Which law passed first?", created_at=datetime(2026, 1, 1, 12))
        assert naive.created_at == datetime(2026, 1, 1, 12, tzinfo=timezone.utc)


class TestStats:
    def test_subject_stats(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(1), question(2)])
        stats = pattern_store.stats(SubjectCategory.HISTORY)
        assert stats["count"] == 2
        assert stats["numbers_percentage"] == 100
        assert stats["avg_length"] == len(question(1).question_text)
        assert stats["oldest"] is not None

    def test_empty_subject_stats(self, pattern_store):
        assert pattern_store.stats(SubjectCategory.ARTS)["count"] == 0

    def test_overall_stats(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(1), question(2)])
        pattern_store.store(SubjectCategory.ARTS, [question(3)])
        stats = pattern_store.stats()
        assert stats["total_patterns"] == 3
        assert stats["total_subjects"] == 2
        assert stats["subjects"] == {"history": 2, "arts": 1}



def asked(text):
    return Question(question_text=text, answer_text="Answer", options=["Answer", "B", "C", "D"], correct_index=0)


class TestSearch:
    def test_similar_ranks_by_length_digits_and_shared_words(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [
            asked("Why did the Roman Republic collapse into an empire?"),
            asked("In which year did the printing press reach England, 1476?"),
            asked("What role did trade routes play in the spread of the plague across Europe and Asia?"),
        ])

        ranked = pattern_store.similar(SubjectCategory.HISTORY, "Why did the Roman Empire split in two?", max_results=2)

        assert len(ranked) == 2
        assert ranked[0].question_text == "Why did the Roman Republic collapse into an empire?"

    def test_similar_for_empty_subject(self, pattern_store):
        assert pattern_store.similar(SubjectCategory.ARTS, "Anything at all?") == []

    def test_best_types(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [
            asked("Who led the march in 1930?"),
            asked("Who wrote the declaration?"),
            asked("How did the economic pressures of the period shape the policy choices of the new government?"),
        ])

        types = pattern_store.best_types(SubjectCategory.HISTORY)

        by_type = {t["type"]: t for t in types}
        assert by_type["short"] == {"type": "short", "count": 2, "percentage": 67}
        assert by_type["medium"]["count"] == 1
        assert by_type["long"]["count"] == 0
        assert by_type["without_numbers"]["count"] == 2
        assert by_type["with_numbers"]["percentage"] == 33
        counts = [t["count"] for t in types]
        assert counts == sorted(counts, reverse=True)

    def test_best_types_for_empty_subject(self, pattern_store):
        assert pattern_store.best_types(SubjectCategory.ARTS) == []

    def test_find_across_subjects(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [asked("Who signed the treaty in 1648?"), asked("Why did the treaty fail?")])
        pattern_store.store(SubjectCategory.ARTS, [asked("Which Treaty painting hangs in the gallery?")])
        pattern_store.store(SubjectCategory.MATHEMATICS, [asked("What is the sum of the angles?")])

        results = pattern_store.find(keywords=["TREATY"], has_numbers=False)

        found = {r["subject"]: [p.question_text for p in r["patterns"]] for r in results}
        assert found == {
            "history": ["Why did the treaty fail?"],
            "arts": ["Which Treaty painting hangs in the gallery?"],
        }

    def test_find_by_length_and_date(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [asked("Short one here?"), asked("A considerably longer question about the period?")])

        assert pattern_store.find(min_length=20)[0]["patterns"][0].question_text.startswith("A considerably")
        assert pattern_store.find(max_length=5) == []
        future = datetime.now(timezone.utc) + timedelta(days=1)
        assert pattern_store.find(created_after=future) == []
        assert len(pattern_store.find(created_after=datetime(2000, 1, 1))[0]["patterns"]) == 2

class TestExportImport:
    def test_subject_export_shape(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(1)])
        data = pattern_store.export(SubjectCategory.HISTORY)
        assert data["version"] == "1"
        assert data["subject"] == "history"
        assert len(data["patterns"]) == 1
        assert "exported_at" in data

    def test_full_export_restores_into_new_store(self, pattern_store):
        pattern_store.store(SubjectCategory.HISTORY, [question(1), question(2)])
        pattern_store.store(SubjectCategory.ARTS, [question(3)])
        data = pattern_store.export()

        restored = PatternStore()
        assert restored.import_patterns(data) == 3
        assert restored.get_all(SubjectCategory.HISTORY) == pattern_store.get_all(SubjectCategory.HISTORY)

    def test_import_keeps_newest_twenty(self, pattern_store):
        patterns = [Pattern.from_question(question(n)).model_dump(mode="json") for n in range(30)]
        assert pattern_store.import_patterns({"subject": "history", "patterns": patterns}) == 20
        assert pattern_store.get_all(SubjectCategory.HISTORY)[0].question_text == question(10).question_text

    @pytest.mark.parametrize(
        "data",
        [
            {"nothing": "here"},
            {"subject": "history", "patterns": "not a list"},
            {"subject": "history", "patterns": [{"options": ["a"]}]},
            {"subjects": {"history": [{"question_text": "x", "created_at": "not a date"}]}},
        ],
    )
    def test_invalid_import(self, pattern_store, data):
        with pytest.raises(PatternImportError):
            pattern_store.import_patterns(data)


class TestCacheSnapshot:
    def test_store_writes_through_and_load_restores(self):
        cache = CacheService(redis_url=None)
        store = PatternStore(cache=cache)
        store.store(SubjectCategory.HISTORY, [question(1), question(2)])

        restored = PatternStore(cache=cache)
        assert restored.load() == 2
        assert [p.question_text for p in restored.get_all("history")] == [
            question(1).question_text,
            question(2).question_text,
        ]

    def test_reset_removes_snapshot(self):
        cache = CacheService(redis_url=None)
        store = PatternStore(cache=cache)
        store.store(SubjectCategory.HISTORY, [question(1)])
        store.reset(SubjectCategory.HISTORY)
        assert cache.get("patterns:history") is None

    def test_snapshot_is_written_while_holding_the_lock(self):
        cache = MagicMock()
        store = PatternStore(cache=cache)
        held = []
        cache.set.side_effect = lambda key, value, *args, **kwargs: held.append(store._lock.locked())

        store.store(SubjectCategory.HISTORY, [question(1)])
        store.import_patterns({"subject": "arts", "patterns": [{"question_text": "Which colour dominates the fresco?"}]})
        store.prune(SubjectCategory.HISTORY, max_age_days=0, now=datetime.now(timezone.utc) + timedelta(days=1))

        assert held == [True, True, True]

    def test_concurrent_stores_leave_snapshot_matching_memory(self):
        cache = CacheService(redis_url=None)
        store = PatternStore(cache=cache)

        def worker(offset):
            for n in range(offset, offset + 15):
                store.store(SubjectCategory.HISTORY, [question(n)])

        threads = [threading.Thread(target=worker, args=(i * 100,)) for i in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        in_memory = [p.model_dump(mode="json") for p in store.get_all(SubjectCategory.HISTORY)]
        assert len(in_memory) == 20
        assert cache.get("patterns:history") == in_memory
