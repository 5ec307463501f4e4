"""
Subject-aware acceptance rules for parsed questions.

Rules are plain functions ``question -> Optional[str]``: ``None`` means the
rule passes, a string is the rejection reason. Warning rules use the same
shape but never reject. ``SUBJECT_RULES`` maps a subject to the rules that run
on top of ``GENERAL_RULES``.
"""
from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, DecimalException, localcontext
from typing import Callable, Dict, List, NamedTuple, Optional

import structlog

from studybuddy.models import Question, QuestionType, SubjectCategory

logger = structlog.get_logger()

Rule = Callable[[Question], Optional[str]]

MIN_QUESTION_LENGTH = 10
ANSWER_MATCH_PREFIX = 20


class ValidationOutcome(NamedTuple):
    accepted: bool
    errors: List[str]
    warnings: List[str]


def _full_text(question: Question) -> str:
    return f"{question.question_text} {question.explanation or ''}"


def _contains_any(text: str, phrases) -> Optional[str]:
    lowered = text.lower()
    for phrase in phrases:
        if phrase in lowered:
            return phrase
    return None


# ─── General rules ──────────────────────────────────────────────────────────────

def check_question_length(question: Question) -> Optional[str]:
    if len((question.question_text or "").strip()) < MIN_QUESTION_LENGTH:
        return "Question text too short"
    return None


def check_answer_present(question: Question) -> Optional[str]:
    if not (question.answer_text or "").strip():
        return "Answer is missing"
    return None


def check_choice_structure(question: Question) -> Optional[str]:
    if question.type != QuestionType.MULTIPLE_CHOICE:
        if question.options is not None or question.correct_index is not None:
            return "Open-response question must not carry options"
        return None

    options = question.options or []
    if len(options) != 4:
        return "Multiple choice questions must have exactly 4 options"
    if any(not option.strip() for option in options):
        return "Multiple choice options must not be empty"
    if len({option.strip().lower() for option in options}) < 4:
        return "Question has duplicate answer options"
    if question.correct_index is None or not 0 <= question.correct_index < 4:
        return "Correct index must be between 0 and 3"
    return None


def check_answer_matches_option(question: Question) -> Optional[str]:
    if question.type != QuestionType.MULTIPLE_CHOICE or not question.options:
        return None
    if question.correct_index is None or not 0 <= question.correct_index < len(question.options):
        return None
    option = question.options[question.correct_index].strip().lower()
    answer = (question.answer_text or "").strip().lower()
    if not answer:
        return None
    if answer[:ANSWER_MATCH_PREFIX] in option or option[:ANSWER_MATCH_PREFIX] in answer:
        return None
    return "Answer does not match the correct option"


VAGUE_PHRASES = ("which is correct", "what is true", "which statement", "what can be said", "which of these")


def flag_vague_wording(question: Question) -> Optional[str]:
    text = question.question_text.lower()
    if len(text) < 50 and _contains_any(text, VAGUE_PHRASES):
        return "Question may be too vague"
    return None


# ─── Mathematics ────────────────────────────────────────────────────────────────

EQUATION_RE = re.compile(
    r"(?<![\d.\-−])(\d+(?:\.\d+)?)\s*([×xX*+\-−÷/])\s*(\d+(?:\.\d+)?)\s*=\s*(-?\d+(?:\.\d+)?)(?![\d.]*\d)"
)
ARITHMETIC_PRECISION = 60


def _evaluate(left: Decimal, op: str, right: Decimal) -> Optional[Decimal]:
    if op in "×xX*":
        return left * right
    if op == "+":
        return left + right
    if op in "-−":
        return left - right
    if op in "÷/":
        if right == 0:
            return None
        return left / right
    return None


def find_arithmetic_errors(text: str) -> List[str]:
    """
    Check every ``a <op> b = c`` in ``text`` and describe the wrong ones.

    Only single binary operations are checked; chained or algebraic
    expressions are out of reach of this pattern.
    """
    errors: List[str] = []
    for match in EQUATION_RE.finditer(text or ""):
        left_raw, op, right_raw, claimed_raw = match.groups()
        places = len(claimed_raw.split(".", 1)[1]) if "." in claimed_raw else 0
        with localcontext() as ctx:
            ctx.prec = ARITHMETIC_PRECISION
            try:
                claimed = Decimal(claimed_raw)
                expected = _evaluate(Decimal(left_raw), op, Decimal(right_raw))
                if expected is None:
                    continue
                if places:
                    # answers are written rounded half up, not to even
                    matches = expected.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP) == claimed
                else:
                    matches = expected == claimed
                shown = format(expected.normalize(), "f")
            except DecimalException:
                # too many digits for the context
                continue
        if not matches:
            errors.append(f"{match.group(0).strip()} (expected {shown})")
    return errors


def check_arithmetic(question: Question) -> Optional[str]:
    errors = find_arithmetic_errors(_full_text(question))
    if errors:
        return f"Arithmetic error: {errors[0]}"
    return None


# ─── Natural sciences ───────────────────────────────────────────────────────────

SCIENCE_MISCONCEPTIONS = (
    "heavier objects fall faster",
    "evolution is just a theory",
    "atoms are the smallest particles",
    "cold causes illness",
    "cold weather causes colds",
    "lightning never strikes twice",
    "seasons are caused by distance from the sun",
    "humans use only 10% of their brain",
    "blood is blue",
)


def check_misconceptions(question: Question) -> Optional[str]:
    phrase = _contains_any(_full_text(question), SCIENCE_MISCONCEPTIONS)
    if phrase:
        return f"Contains a scientific misconception: {phrase}"
    return None


# ─── Literature ────────────────────────────────────────────────────────────────

PLOT_SUMMARY_PHRASES = (
    "what happens", "then he", "then she", "next he", "next she",
    "after that", "in chapter", "on page",
)
ANALYTICAL_RE = re.compile(
    r"\b(why|how|analy[sz]e|compare|contrast|evaluate|interpret|significance|"
    r"meaning|purpose|effect|theme|symboli[sz]e|symbolism|motivation)\b"
)


def check_plot_summary(question: Question) -> Optional[str]:
    text = question.question_text.lower()
    phrase = _contains_any(text, PLOT_SUMMARY_PHRASES)
    if phrase and not ANALYTICAL_RE.search(text):
        return f"Plot summary rather than analysis: {phrase}"
    return None


# ─── History ───────────────────────────────────────────────────────────────────

DATE_RECALL_PHRASES = (
    "what year did", "when did", "who was born", "what date",
    "which year was", "in what year",
)


def flag_date_recall(question: Question) -> Optional[str]:
    phrase = _contains_any(question.question_text, DATE_RECALL_PHRASES)
    if phrase:
        return f"Focuses on date recall rather than analysis: {phrase}"
    return None


# ─── Computer science ──────────────────────────────────────────────────────────

CODE_RE = re.compile(
    r"\bif\s*\(|\bfor\s*\(|\bwhile\s*\(|\bfunction\s+\w+|\bdef\s+\w+|\bprint\s*\(|\bvar\s+\w+|\blet\s+\w+"
)
UNTERMINATED_RE = (
    re.compile(r"\bif\s*\([^)]*$"),
    re.compile(r"\bfor\s*\([^)]*$"),
    re.compile(r"\bfunction\s+\w+\s*\([^)]*\)\s*\{[^}]*$"),
)
BRACKET_PAIRS = {")": "(", "]": "[", "}": "{"}


def _brackets_balanced(text: str) -> bool:
    stack: List[str] = []
    for char in text:
        if char in "([{":
            stack.append(char)
        elif char in BRACKET_PAIRS:
            if not stack or stack.pop() != BRACKET_PAIRS[char]:
                return False
    return not stack


def check_code_syntax(question: Question) -> Optional[str]:
    pieces = [question.question_text, question.explanation or ""]
    pieces.extend(question.options or [])
    for piece in pieces:
        if not CODE_RE.search(piece):
            continue
        if not _brackets_balanced(piece) or any(p.search(piece) for p in UNTERMINATED_RE):
            return "Code snippet has unbalanced or unterminated constructs"
    return None


# ─── Languages / arts / health ─────────────────────────────────────────────────

AUDIO_RE = re.compile(
    r"\b(listen(?:ing)? to|hear|heard|pronunciation of|pronounce|audio|recording|spoken aloud)\b"
)
VISUAL_PHRASES = (
    "look at the image", "in the picture", "what color is shown", "what colour is shown",
    "observe the painting", "see in the artwork", "shown in the image", "in the image above",
)
MEDICAL_ADVICE_PHRASES = (
    "you should take", "recommended dose", "prescribe", "diagnose with",
    "treat your", "cure for", "stop taking", "increase dosage", "increase your dose",
)
DOSAGE_RE = re.compile(r"\b\d+(?:\.\d+)?\s*(?:mg|mcg|µg|ml|milligrams?|micrograms?)\b")


def check_audio_requirement(question: Question) -> Optional[str]:
    match = AUDIO_RE.search(question.question_text.lower())
    if match:
        return f"Requires audio: {match.group(0)}"
    return None


def check_visual_requirement(question: Question) -> Optional[str]:
    phrase = _contains_any(question.question_text, VISUAL_PHRASES)
    if phrase:
        return f"Requires an image that is not provided: {phrase}"
    return None


def check_medical_advice(question: Question) -> Optional[str]:
    text = _full_text(question)
    phrase = _contains_any(text, MEDICAL_ADVICE_PHRASES)
    if phrase:
        return f"Gives prescriptive medical advice: {phrase}"
    if DOSAGE_RE.search(text.lower()):
        return "Gives a medication dosage"
    return None


# ─── Rule tables ───────────────────────────────────────────────────────────────

GENERAL_RULES: List[Rule] = [
    check_question_length,
    check_answer_present,
    check_choice_structure,
    check_answer_matches_option,
]
GENERAL_WARNINGS: List[Rule] = [flag_vague_wording]

SUBJECT_RULES: Dict[SubjectCategory, List[Rule]] = {
    SubjectCategory.MATHEMATICS: [check_arithmetic],
    SubjectCategory.NATURAL_SCIENCES: [check_misconceptions],
    SubjectCategory.LITERATURE: [check_plot_summary],
    SubjectCategory.COMPUTER_SCIENCE: [check_code_syntax],
    SubjectCategory.LANGUAGES: [check_audio_requirement],
    SubjectCategory.ARTS: [check_visual_requirement],
    SubjectCategory.HEALTH_MEDICINE: [check_medical_advice],
}
SUBJECT_WARNINGS: Dict[SubjectCategory, List[Rule]] = {
    SubjectCategory.HISTORY: [flag_date_recall],
}


class QuestionValidator:
    def rules_for(self, subject: SubjectCategory) -> List[Rule]:
        return GENERAL_RULES + SUBJECT_RULES.get(subject, [])

    def warnings_for(self, subject: SubjectCategory) -> List[Rule]:
        return GENERAL_WARNINGS + SUBJECT_WARNINGS.get(subject, [])

    def validate(self, question: Question, subject: SubjectCategory) -> ValidationOutcome:
        errors = [reason for reason in (rule(question) for rule in self.rules_for(subject)) if reason]
        warnings = [reason for reason in (rule(question) for rule in self.warnings_for(subject)) if reason]
        return ValidationOutcome(accepted=not errors, errors=errors, warnings=warnings)

    def validate_all(self, questions: List[Question], subject: SubjectCategory) -> List[Question]:
        accepted: List[Question] = []
        reasons: Dict[str, int] = {}
        warned = 0
        for question in questions:
            try:
                outcome = self.validate(question, subject)
            except Exception as e:
                logger.warning(
                    "question_validation_failed",
                    subject=subject.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                outcome = ValidationOutcome(accepted=False, errors=[f"Validation error: {e}"], warnings=[])
            if outcome.warnings:
                warned += 1
            if outcome.accepted:
                accepted.append(question)
            else:
                for reason in outcome.errors:
                    key = reason.split(":", 1)[0]
                    reasons[key] = reasons.get(key, 0) + 1

        logger.info(
            "questions_validated",
            subject=subject.value,
            candidates=len(questions),
            accepted=len(accepted),
            rejected=len(questions) - len(accepted),
            warned=warned,
            rejection_reasons=reasons,
        )
        return accepted
