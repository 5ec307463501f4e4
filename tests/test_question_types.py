"""
Tests for the multiple-choice / open-response mix
"""
import random

import pytest

from studybuddy.models import QuestionType, SubjectCategory
from studybuddy.services.question_types import QuestionTypeDistributor

distributor = QuestionTypeDistributor(rng=random.Random(7))


class TestDistribution:
    @pytest.mark.parametrize(
        "subject,total,expected_mcq",
        [
            (SubjectCategory.MATHEMATICS, 10, 7),
            (SubjectCategory.MATHEMATICS, 5, 4),
            (SubjectCategory.LITERATURE, 5, 2),
            (SubjectCategory.COMPUTER_SCIENCE, 10, 8),
            (SubjectCategory.ARTS, 5, 1),
            (SubjectCategory.OTHER, 5, 3),
        ],
    )
    def test_ratio_table(self, subject, total, expected_mcq):
        counts = distributor.distribution(subject, total)
        assert counts["multiple_choice"] == expected_mcq
        assert counts["text_based"] == total - expected_mcq

    def test_zero_total(self):
        assert distributor.distribution(SubjectCategory.HISTORY, 0) == {"multiple_choice": 0, "text_based": 0}

    def test_single_question_literature(self):
        """Literature rounds multiple choice down"""
        assert distributor.distribution(SubjectCategory.LITERATURE, 1) == {"multiple_choice": 0, "text_based": 1}


class TestSequence:
    def test_sequence_matches_distribution(self):
        for subject in SubjectCategory:
            sequence = distributor.sequence(subject, 9)
            counts = distributor.distribution(subject, 9)
            assert len(sequence) == 9
            assert sequence.count(QuestionType.MULTIPLE_CHOICE) == counts["multiple_choice"]
            assert sequence.count(QuestionType.TEXT_BASED) == counts["text_based"]

    def test_sequence_is_shuffled(self):
        shuffler = QuestionTypeDistributor(rng=random.Random(1))
        orders = {tuple(shuffler.sequence(SubjectCategory.BUSINESS, 6)) for _ in range(20)}
        assert len(orders) > 1
