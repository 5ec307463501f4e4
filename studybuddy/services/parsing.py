"""
Parsing of LLM completions into Question records.

The grammar mirrors the output contract embedded by the prompt builder:

    QUESTION <n>:
    <question text>
    A) <option>
    B) <option>
    C) <option>
    D) <option>
    CORRECT: <A|B|C|D>
    EXPLANATION: <text>

Blocks that do not satisfy the contract are dropped, never raised.
"""
from __future__ import annotations

import re
from typing import List, Optional

import structlog

from studybuddy.models import Question, QuestionType

logger = structlog.get_logger()

QUESTION_MARKER_RE = re.compile(r"QUESTION\s+\d+:", re.IGNORECASE)
OPTION_RE = re.compile(r"^([A-D])\)\s*(.+)$", re.IGNORECASE)
CORRECT_RE = re.compile(r"^CORRECT:\s*([A-D])", re.IGNORECASE)
EXPLANATION_RE = re.compile(r"^EXPLANATION:\s*(.+)$", re.IGNORECASE)
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
WHITESPACE_RE = re.compile(r"\s+")

OPTION_LETTERS = "ABCD"

BASIC_MIN_SENTENCE_LENGTH = 20
BASIC_OPTION_LENGTH = 80
BASIC_DISTRACTORS = (
    "This information is not covered in the material",
    "The material contradicts this statement",
    "This topic is not discussed",
)


def parse_block(block: str) -> Optional[Question]:
    lines = [line.strip() for line in block.splitlines() if line.strip()]
    question_parts: List[str] = []
    options: List[str] = []
    correct_index: Optional[int] = None
    explanation = ""
    section = "question"

    for line in lines:
        option_match = OPTION_RE.match(line)
        if option_match:
            options.append(option_match.group(2).strip())
            section = "options"
            continue

        correct_match = CORRECT_RE.match(line)
        if correct_match:
            correct_index = ord(correct_match.group(1).upper()) - ord("A")
            section = "correct"
            continue

        explanation_match = EXPLANATION_RE.match(line)
        if explanation_match:
            explanation = explanation_match.group(1).strip()
            section = "explanation"
            continue

        if section == "question":
            question_parts.append(line)

    question_text = " ".join(question_parts).strip()
    if not question_text or len(options) != 4:
        return None
    if correct_index is None or not 0 <= correct_index < 4:
        return None

    answer = options[correct_index]
    return Question(
        question_text=question_text,
        answer_text=answer,
        type=QuestionType.MULTIPLE_CHOICE,
        options=options,
        correct_index=correct_index,
        explanation=explanation or f"The correct answer is {OPTION_LETTERS[correct_index]}. {answer}",
    )


class ResponseParser:
    def parse(self, completion_text: str, expected_count: int) -> List[Question]:
        """Split a completion on ``QUESTION <n>:`` markers and parse each block."""
        if not completion_text or expected_count <= 0:
            return []

        blocks = [b.strip() for b in QUESTION_MARKER_RE.split(completion_text) if b.strip()]
        questions: List[Question] = []
        for block in blocks:
            if len(questions) >= expected_count:
                break
            question = parse_block(block)
            if question is not None:
                questions.append(question)

        logger.debug("completion_parsed", blocks=len(blocks), parsed=len(questions))
        return questions

    def extract_sentences(self, content: str) -> List[str]:
        """Distinct sentences longer than the basic-question threshold, in order."""
        seen = set()
        sentences: List[str] = []
        for raw in SENTENCE_SPLIT_RE.split(content or ""):
            sentence = WHITESPACE_RE.sub(" ", raw).strip()
            if len(sentence) <= BASIC_MIN_SENTENCE_LENGTH:
                continue
            key = sentence.lower()
            if key in seen:
                continue
            seen.add(key)
            sentences.append(sentence)
        return sentences

    def build_basic_questions(self, content: str, count: int, topic_name: str = "") -> List[Question]:
        """
        Deterministic questions taken straight from the content.

        Used when the completion service is unusable; each candidate sentence
        becomes the correct option of a recognition question.
        """
        topic = topic_name.strip() if topic_name else ""
        stem = (
            f"According to the study material on {topic}, which statement is accurate?"
            if topic
            else "According to the study material, which statement is accurate?"
        )
        questions: List[Question] = []
        for sentence in self.extract_sentences(content)[: max(count, 0)]:
            option = sentence[:BASIC_OPTION_LENGTH].strip()
            questions.append(
                Question(
                    question_text=stem,
                    answer_text=option,
                    type=QuestionType.MULTIPLE_CHOICE,
                    options=[option, *BASIC_DISTRACTORS],
                    correct_index=0,
                    explanation="This is directly stated in the provided study material.",
                )
            )
        return questions
