"""
One generation attempt per strategy: prompt, complete, parse.

Validation is left to the orchestrator so every strategy is judged by the
same rules.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

import structlog

from studybuddy.models import Question, QuestionType, SubjectCategory
from studybuddy.services.llm import CompletionOptions
from studybuddy.services.parsing import ResponseParser
from studybuddy.services.patterns import PatternStore
from studybuddy.services.prompts import PromptBuilder, StrategyKind
from studybuddy.services.question_types import QuestionTypeDistributor

logger = structlog.get_logger()

STOP_SEQUENCES = ["END_QUESTIONS", "---"]


def completion_options(kind: StrategyKind, count: int, subject: SubjectCategory, timeout: float) -> CompletionOptions:
    if kind == StrategyKind.SUBJECT_CONTEXT:
        temperature = 0.3 if subject == SubjectCategory.MATHEMATICS else 0.7
        return CompletionOptions(temperature, max(800, count * 150), list(STOP_SEQUENCES), timeout)
    if kind == StrategyKind.CONSERVATIVE:
        return CompletionOptions(0.4, max(400, count * 100), list(STOP_SEQUENCES), timeout)
    if kind == StrategyKind.SIMPLIFIED:
        return CompletionOptions(0.2, max(300, count * 80), None, timeout)
    if kind == StrategyKind.PATTERN_BASED:
        return CompletionOptions(0.6, max(400, count * 100), None, timeout)
    raise ValueError(f"Strategy {kind.value} does not call a provider")


def apply_type_sequence(questions: List[Question], type_sequence: Sequence[QuestionType]) -> List[Question]:
    """Convert the questions tagged ``text_based`` to open-response; extras stay multiple choice."""
    converted: List[Question] = []
    for index, question in enumerate(questions):
        if index < len(type_sequence) and type_sequence[index] == QuestionType.TEXT_BASED:
            converted.append(question.as_text_based())
        else:
            converted.append(question)
    return converted


class GenerationStrategies:
    def __init__(
        self,
        provider,
        pattern_store: PatternStore,
        builder: Optional[PromptBuilder] = None,
        parser: Optional[ResponseParser] = None,
        distributor: Optional[QuestionTypeDistributor] = None,
    ):
        self.provider = provider
        self.pattern_store = pattern_store
        self.builder = builder or PromptBuilder()
        self.parser = parser or ResponseParser()
        self.distributor = distributor or QuestionTypeDistributor()

    def run(
        self,
        kind: StrategyKind,
        content: str,
        count: int,
        subject: SubjectCategory,
        topic_name: str,
        timeout: float,
    ) -> List[Question]:
        """Candidate questions for one attempt. Provider errors propagate to the caller."""
        if kind == StrategyKind.BASIC:
            return self.parser.build_basic_questions(content, count, topic_name)

        type_sequence: List[QuestionType] = []
        pattern = None
        if kind == StrategyKind.SUBJECT_CONTEXT:
            type_sequence = self.distributor.sequence(subject, count)
        elif kind == StrategyKind.PATTERN_BASED:
            pattern = self.pattern_store.get_random(subject)
            if pattern is None:
                logger.info("pattern_unavailable", subject=subject.value)

        prompt = self.builder.build(kind, content, count, subject, topic_name, type_sequence=type_sequence, pattern=pattern)
        completion = self.provider.complete(prompt, completion_options(kind, count, subject, timeout))
        questions = self.parser.parse(completion, count)
        if type_sequence:
            questions = apply_type_sequence(questions, type_sequence)
        return questions
