"""
Bounded history of accepted questions per subject.

Patterns seed the pattern-based generation strategy and back the pattern
statistics/export endpoints. Each subject keeps at most ``limit`` entries;
the oldest are evicted first.

Writes are serialised by a single lock, so an append and its eviction are
atomic. Two concurrent generations for the same subject may still interleave
their batches; nothing depends on pattern ordering beyond recency. Cache
snapshots are written under the same lock, so the cached copy of a subject
never lags behind a later in-memory write.
"""
from __future__ import annotations

import random
import re
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

import structlog
from pydantic import ValidationError

from studybuddy import config
from studybuddy.models import Pattern, Question, SubjectCategory, as_utc, utc_now
from studybuddy.services.cache import CacheService

logger = structlog.get_logger()

EXPORT_VERSION = "1"
CACHE_PREFIX = "patterns:"


class PatternImportError(ValueError):
    pass


def _subject_id(subject) -> str:
    return subject.value if isinstance(subject, SubjectCategory) else str(subject)


class PatternStore:
    def __init__(
        self,
        limit: int = config.PATTERN_LIMIT,
        cache: Optional[CacheService] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.limit = limit
        self._cache = cache
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._patterns: Dict[str, List[Pattern]] = {}

    # ─── writes ───────────────────────────────────────────────────────────────

    def store(self, subject, questions: Iterable[Question]) -> int:
        key = _subject_id(subject)
        new_patterns = [Pattern.from_question(q) for q in questions]
        if not new_patterns:
            return 0
        with self._lock:
            patterns = self._patterns.setdefault(key, [])
            patterns.extend(new_patterns)
            if len(patterns) > self.limit:
                del patterns[: len(patterns) - self.limit]
            total = len(patterns)
            self._persist(key, patterns)
        logger.info("patterns_stored", subject=key, added=len(new_patterns), total=total)
        return len(new_patterns)

    def prune(self, subject, max_age_days: int = 30, now: Optional[datetime] = None) -> int:
        key = _subject_id(subject)
        cutoff = as_utc(now or utc_now()) - timedelta(days=max_age_days)
        with self._lock:
            patterns = self._patterns.get(key, [])
            kept = [p for p in patterns if p.created_at > cutoff]
            removed = len(patterns) - len(kept)
            if removed:
                self._patterns[key] = kept
                self._persist(key, kept)
        if removed:
            logger.info("patterns_pruned", subject=key, removed=removed, max_age_days=max_age_days)
        return removed

    def reset(self, subject) -> int:
        key = _subject_id(subject)
        with self._lock:
            removed = len(self._patterns.pop(key, []))
            if self._cache is not None:
                self._cache.delete(CACHE_PREFIX + key)
        logger.info("patterns_reset", subject=key, removed=removed)
        return removed

    # ─── reads ────────────────────────────────────────────────────────────────

    def get_all(self, subject) -> List[Pattern]:
        with self._lock:
            return list(self._patterns.get(_subject_id(subject), []))

    def get_random(self, subject) -> Optional[Pattern]:
        patterns = self.get_all(subject)
        if not patterns:
            return None
        return self._rng.choice(patterns)

    def stats(self, subject=None) -> Dict[str, Any]:
        if subject is not None:
            return self._subject_stats(self.get_all(subject))

        with self._lock:
            breakdown = {key: len(patterns) for key, patterns in self._patterns.items()}
        total = sum(breakdown.values())
        return {
            "total_patterns": total,
            "total_subjects": len(breakdown),
            "average_per_subject": round(total / len(breakdown)) if breakdown else 0,
            "subjects": breakdown,
        }

    @staticmethod
    def _subject_stats(patterns: List[Pattern]) -> Dict[str, Any]:
        if not patterns:
            return {"count": 0, "avg_length": 0, "numbers_percentage": 0, "oldest": None, "newest": None}
        dates = sorted(p.created_at for p in patterns)
        with_numbers = sum(1 for p in patterns if p.has_numbers)
        return {
            "count": len(patterns),
            "avg_length": round(sum(p.question_length for p in patterns) / len(patterns)),
            "numbers_percentage": round(with_numbers / len(patterns) * 100),
            "oldest": dates[0].isoformat(),
            "newest": dates[-1].isoformat(),
        }

    # ─── search ───────────────────────────────────────────────────────────────

    def similar(self, subject, reference_question: str, max_results: int = 5) -> List[Pattern]:
        """
        Patterns ranked by closeness to ``reference_question``.

        Score: up to 100 for length proximity, 50 when both do or do not
        contain digits, and 10 per reference word the pattern shares.
        """
        reference = reference_question or ""
        ref_words = reference.lower().split()
        ref_has_numbers = bool(re.search(r"\d+", reference))

        def score(pattern: Pattern) -> int:
            words = set(pattern.question_text.lower().split())
            total = max(0, 100 - abs(pattern.question_length - len(reference)))
            if pattern.has_numbers == ref_has_numbers:
                total += 50
            total += 10 * sum(1 for word in ref_words if word in words)
            return total

        ranked = sorted(self.get_all(subject), key=score, reverse=True)
        return ranked[:max_results]

    def best_types(self, subject) -> List[Dict[str, Any]]:
        patterns = self.get_all(subject)
        if not patterns:
            return []
        counts = {"short": 0, "medium": 0, "long": 0, "with_numbers": 0, "without_numbers": 0}
        for pattern in patterns:
            if pattern.question_length < 50:
                counts["short"] += 1
            elif pattern.question_length < 100:
                counts["medium"] += 1
            else:
                counts["long"] += 1
            counts["with_numbers" if pattern.has_numbers else "without_numbers"] += 1

        types = [
            {"type": name, "count": count, "percentage": round(count / len(patterns) * 100)}
            for name, count in counts.items()
        ]
        return sorted(types, key=lambda t: t["count"], reverse=True)

    def find(
        self,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        has_numbers: Optional[bool] = None,
        keywords: Optional[List[str]] = None,
        created_after: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Patterns across all subjects matching every given criterion, grouped by subject."""
        keywords = [k.lower() for k in keywords or [] if k.strip()]
        after = as_utc(created_after) if created_after is not None else None

        def matches(pattern: Pattern) -> bool:
            if min_length is not None and pattern.question_length < min_length:
                return False
            if max_length is not None and pattern.question_length > max_length:
                return False
            if has_numbers is not None and pattern.has_numbers != has_numbers:
                return False
            if keywords:
                text = pattern.question_text.lower()
                if not any(keyword in text for keyword in keywords):
                    return False
            if after is not None and pattern.created_at <= after:
                return False
            return True

        with self._lock:
            snapshot = {key: list(patterns) for key, patterns in self._patterns.items()}
        results = []
        for key, patterns in snapshot.items():
            found = [p for p in patterns if matches(p)]
            if found:
                results.append({"subject": key, "patterns": found})
        return results

    # ─── backup / restore ─────────────────────────────────────────────────────

    def export(self, subject=None) -> Dict[str, Any]:
        exported_at = utc_now().isoformat()
        if subject is not None:
            key = _subject_id(subject)
            return {
                "version": EXPORT_VERSION,
                "exported_at": exported_at,
                "subject": key,
                "patterns": [p.model_dump(mode="json") for p in self.get_all(key)],
            }
        with self._lock:
            subjects = {
                key: [p.model_dump(mode="json") for p in patterns]
                for key, patterns in self._patterns.items()
            }
        return {"version": EXPORT_VERSION, "exported_at": exported_at, "subjects": subjects}

    def import_patterns(self, data: Dict[str, Any]) -> int:
        """Replace stored patterns with an ``export`` payload; returns the number imported."""
        if not isinstance(data, dict):
            raise PatternImportError("Import data must be an object")

        if "subject" in data and "patterns" in data:
            raw = {str(data["subject"]): data["patterns"]}
        elif isinstance(data.get("subjects"), dict):
            raw = data["subjects"]
        else:
            raise PatternImportError("Invalid import data format")

        parsed: Dict[str, List[Pattern]] = {}
        for key, items in raw.items():
            if not isinstance(items, list):
                raise PatternImportError(f"Patterns for {key} must be a list")
            try:
                patterns = [Pattern.model_validate(item) for item in items]
            except ValidationError as e:
                raise PatternImportError(f"Invalid pattern for {key}: {e.error_count()} error(s)") from e
            parsed[key] = patterns[-self.limit:] if len(patterns) > self.limit else patterns

        with self._lock:
            self._patterns.update(parsed)
            for key, patterns in parsed.items():
                self._persist(key, patterns)

        imported = sum(len(p) for p in parsed.values())
        logger.info("patterns_imported", subjects=len(parsed), imported=imported, version=data.get("version"))
        return imported

    # ─── cache snapshot ───────────────────────────────────────────────────────

    def _persist(self, key: str, patterns: List[Pattern]) -> None:
        if self._cache is None:
            return
        self._cache.set(CACHE_PREFIX + key, [p.model_dump(mode="json") for p in patterns])

    def load(self) -> int:
        """Restore snapshots written by a previous process; returns patterns loaded."""
        if self._cache is None:
            return 0
        loaded = 0
        for cache_key in self._cache.keys(CACHE_PREFIX):
            items = self._cache.get(cache_key) or []
            try:
                patterns = [Pattern.model_validate(item) for item in items][-self.limit:]
            except ValidationError as e:
                logger.warning("patterns_snapshot_invalid", key=cache_key, error=str(e))
                continue
            with self._lock:
                self._patterns[cache_key[len(CACHE_PREFIX):]] = patterns
            loaded += len(patterns)
        logger.info("patterns_loaded", loaded=loaded, backend=self._cache.backend)
        return loaded
