"""
Question type mix (multiple-choice vs. open-response) per subject
"""
from __future__ import annotations

import math
import random
from typing import Dict, List, NamedTuple, Optional

from studybuddy.models import QuestionType, SubjectCategory


class TypeRatio(NamedTuple):
    multiple_choice: float
    # Which side absorbs the rounding remainder
    round_mcq_up: bool
    reasoning: str


RATIOS: Dict[SubjectCategory, TypeRatio] = {
    SubjectCategory.MATHEMATICS: TypeRatio(0.7, True, "MCQ for calculations, text for explanations"),
    SubjectCategory.LITERATURE: TypeRatio(0.4, False, "Open-ended analysis and interpretation"),
    SubjectCategory.NATURAL_SCIENCES: TypeRatio(0.6, True, "Factual recall plus process explanation"),
    SubjectCategory.HISTORY: TypeRatio(0.4, False, "Analysis of causes, effects and significance"),
    SubjectCategory.COMPUTER_SCIENCE: TypeRatio(0.8, True, "MCQ for syntax and facts, text for algorithms"),
    SubjectCategory.LANGUAGES: TypeRatio(0.6, True, "Structured practice and open expression"),
    SubjectCategory.BUSINESS: TypeRatio(0.5, True, "Factual knowledge and strategic thinking"),
    SubjectCategory.ARTS: TypeRatio(0.3, False, "Creative interpretation and analysis"),
    SubjectCategory.HEALTH_MEDICINE: TypeRatio(0.8, True, "Accuracy first; MCQ suits medical facts"),
}

DEFAULT_RATIO = TypeRatio(0.6, True, "Balanced approach for general subjects")


class QuestionTypeDistributor:
    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def ratio(self, subject: SubjectCategory) -> TypeRatio:
        return RATIOS.get(subject, DEFAULT_RATIO)

    def distribution(self, subject: SubjectCategory, total_count: int) -> Dict[str, int]:
        if total_count <= 0:
            return {"multiple_choice": 0, "text_based": 0}
        ratio = self.ratio(subject)
        # 10 * 0.7 is 7.000000000000001 in floating point
        raw = round(total_count * ratio.multiple_choice, 9)
        mcq = math.ceil(raw) if ratio.round_mcq_up else math.floor(raw)
        mcq = max(0, min(total_count, mcq))
        return {"multiple_choice": mcq, "text_based": total_count - mcq}

    def sequence(self, subject: SubjectCategory, total_count: int) -> List[QuestionType]:
        """Shuffled list of type tags matching ``distribution``."""
        counts = self.distribution(subject, total_count)
        tags = [QuestionType.MULTIPLE_CHOICE] * counts["multiple_choice"]
        tags += [QuestionType.TEXT_BASED] * counts["text_based"]
        # Fisher-Yates
        for i in range(len(tags) - 1, 0, -1):
            j = self._rng.randint(0, i)
            tags[i], tags[j] = tags[j], tags[i]
        return tags
