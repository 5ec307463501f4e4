"""
Count-guarantee generation loop.

``GenerationOrchestrator.generate`` makes up to ``max_attempts`` attempts, one
strategy per attempt (see ``STRATEGY_SEQUENCE``), and keeps every candidate
that passes validation until the requested count is reached. Provider and
parse failures only cost the attempt they happen in; the final attempt is a
deterministic extraction from the content that needs no provider at all.

Only precondition failures raise. Under-delivery is reported through
``GenerationResult.met_count``.
"""
from __future__ import annotations

import math
import time
from typing import Dict, List, Optional, Set, Tuple

import structlog

from studybuddy import config
from studybuddy.models import GenerationRequest, GenerationResult, Question, SubjectCategory
from studybuddy.services.logging import log_performance
from studybuddy.services.monitoring import (
    GENERATION_ATTEMPTS,
    GENERATION_DURATION,
    GENERATION_REQUESTS,
    QUESTIONS_REJECTED,
    STORED_PATTERNS,
)
from studybuddy.services.patterns import PatternStore
from studybuddy.services.prompts import STRATEGY_SEQUENCE, StrategyKind
from studybuddy.services.question_types import QuestionTypeDistributor
from studybuddy.services.strategies import GenerationStrategies
from studybuddy.services.validation import QuestionValidator

logger = structlog.get_logger()

# Extra candidates requested to absorb validation rejections
SUBJECT_BATCH_MULTIPLIERS: Dict[SubjectCategory, float] = {
    SubjectCategory.MATHEMATICS: 1.5,
    SubjectCategory.NATURAL_SCIENCES: 1.4,
    SubjectCategory.LITERATURE: 1.3,
    SubjectCategory.HISTORY: 1.3,
}
DEFAULT_BATCH_MULTIPLIER = 1.2
ATTEMPT_MULTIPLIER_STEP = 0.2
MAX_BATCH_FACTOR = 3


class GenerationPreconditionError(ValueError):
    pass


def compute_batch_size(needed: int, attempt: int, subject: SubjectCategory) -> int:
    subject_multiplier = SUBJECT_BATCH_MULTIPLIERS.get(subject, DEFAULT_BATCH_MULTIPLIER)
    attempt_multiplier = 1 + (attempt - 1) * ATTEMPT_MULTIPLIER_STEP
    # 5 * 1.2 is 6.000000000000001 in floating point
    raw = round(needed * subject_multiplier * attempt_multiplier, 9)
    return min(math.ceil(raw), needed * MAX_BATCH_FACTOR)


def strategy_for_attempt(attempt: int) -> StrategyKind:
    return STRATEGY_SEQUENCE[min(attempt, len(STRATEGY_SEQUENCE)) - 1]


def _dedupe_key(question: Question) -> Tuple[str, str]:
    # Basic-extraction questions share one stem, so the answer is part of the key
    return (" ".join(question.question_text.lower().split()), " ".join(question.answer_text.lower().split()))


class GenerationOrchestrator:
    def __init__(
        self,
        provider,
        pattern_store: PatternStore,
        validator: Optional[QuestionValidator] = None,
        distributor: Optional[QuestionTypeDistributor] = None,
        max_attempts: int = config.MAX_ATTEMPTS,
        timeout: float = config.LLM_TIMEOUT_SECONDS,
    ):
        self.provider = provider
        self.pattern_store = pattern_store
        self.validator = validator or QuestionValidator()
        self.strategies = GenerationStrategies(provider, pattern_store, distributor=distributor)
        self.max_attempts = max_attempts
        self.timeout = timeout

    def check_preconditions(self, request: GenerationRequest) -> None:
        if request.requested_count <= 0:
            raise GenerationPreconditionError("Requested count must be positive")
        if len((request.content or "").strip()) < config.MIN_CONTENT_LENGTH:
            raise GenerationPreconditionError(
                f"Content must be at least {config.MIN_CONTENT_LENGTH} characters"
            )

    @log_performance("generate_questions")
    def generate(self, request: GenerationRequest) -> GenerationResult:
        self.check_preconditions(request)
        subject = request.subject
        started = time.time()

        valid: List[Question] = []
        from_llm: List[Question] = []
        seen: Set[Tuple[str, str]] = set()
        strategies_used: List[str] = []
        rejected = 0
        attempt = 0

        while len(valid) < request.requested_count and attempt < self.max_attempts:
            attempt += 1
            needed = request.requested_count - len(valid)
            batch_size = compute_batch_size(needed, attempt, subject)
            kind = strategy_for_attempt(attempt)
            strategies_used.append(kind.value)
            log = logger.bind(subject=subject.value, attempt=attempt, strategy=kind.value)
            log.info("generation_attempt", needed=needed, batch_size=batch_size)

            try:
                candidates = self.strategies.run(
                    kind, request.content, batch_size, subject, request.topic_name, self.timeout
                )
                accepted = self.validator.validate_all(candidates, subject)
            except Exception as e:
                log.warning("generation_attempt_failed", error=str(e), error_type=type(e).__name__)
                GENERATION_ATTEMPTS.labels(strategy=kind.value, outcome="error").inc()
                continue

            fresh = []
            for question in accepted:
                key = _dedupe_key(question)
                if key in seen:
                    continue
                seen.add(key)
                fresh.append(question)

            dropped = len(candidates) - len(fresh)
            if dropped:
                rejected += dropped
                QUESTIONS_REJECTED.labels(subject=subject.value).inc(dropped)
                log.info("candidates_rejected", candidates=len(candidates), rejected=dropped)

            valid.extend(fresh)
            if kind != StrategyKind.BASIC:
                from_llm.extend(fresh)
            GENERATION_ATTEMPTS.labels(strategy=kind.value, outcome="yield" if fresh else "empty").inc()
            log.info("generation_attempt_completed", candidates=len(candidates), accepted=len(fresh), total=len(valid))

        questions = valid[: request.requested_count]
        kept = {id(q) for q in questions}
        stored = self.pattern_store.store(subject, [q for q in from_llm if id(q) in kept])
        if stored:
            STORED_PATTERNS.labels(subject=subject.value).set(len(self.pattern_store.get_all(subject)))

        met_count = len(questions) == request.requested_count
        GENERATION_REQUESTS.labels(subject=subject.value, outcome="met" if met_count else "short").inc()
        GENERATION_DURATION.labels(subject=subject.value).observe(time.time() - started)
        logger.info(
            "generation_finished",
            subject=subject.value,
            requested=request.requested_count,
            delivered=len(questions),
            attempts=attempt,
            met_count=met_count,
        )
        return GenerationResult(
            questions=questions,
            requested_count=request.requested_count,
            attempts_used=attempt,
            met_count=met_count,
            strategies_used=strategies_used,
            rejected_count=rejected,
        )

    def generate_questions(
        self,
        content: str,
        requested_count: int,
        subject: SubjectCategory = SubjectCategory.OTHER,
        topic_name: str = "",
    ) -> List[Question]:
        request = GenerationRequest(
            content=content, requested_count=requested_count, subject=subject, topic_name=topic_name
        )
        return self.generate(request).questions
