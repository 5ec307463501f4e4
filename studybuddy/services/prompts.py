"""
Prompt construction for question generation.

Every prompt embeds the same machine-parseable output contract that
``studybuddy.services.parsing`` reads. Changing one means changing the other.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence

from studybuddy.models import Pattern, QuestionType, SubjectCategory


class StrategyKind(str, Enum):
    SUBJECT_CONTEXT = "subject_context"
    CONSERVATIVE = "conservative"
    SIMPLIFIED = "simplified"
    PATTERN_BASED = "pattern_based"
    BASIC = "basic"


# Attempt n uses STRATEGY_SEQUENCE[n - 1]
STRATEGY_SEQUENCE = [
    StrategyKind.SUBJECT_CONTEXT,
    StrategyKind.CONSERVATIVE,
    StrategyKind.SIMPLIFIED,
    StrategyKind.PATTERN_BASED,
    StrategyKind.BASIC,
]

CONTENT_BUDGETS: Dict[StrategyKind, int] = {
    StrategyKind.SUBJECT_CONTEXT: 2000,
    StrategyKind.CONSERVATIVE: 1500,
    StrategyKind.SIMPLIFIED: 800,
    StrategyKind.PATTERN_BASED: 1200,
}

OUTPUT_CONTRACT = """QUESTION 1:
[Question text]
A) [Option A]
B) [Option B]
C) [Option C]
D) [Option D]
CORRECT: [A/B/C/D]
EXPLANATION: [Explanation]"""


class SubjectGuidance(NamedTuple):
    teacher: str
    focus: str
    requirements: List[str]
    do: List[str]
    dont: List[str]
    example: str


SUBJECT_GUIDANCE: Dict[SubjectCategory, SubjectGuidance] = {
    SubjectCategory.MATHEMATICS: SubjectGuidance(
        teacher="MATHEMATICS",
        focus="computational skills and mathematical reasoning",
        requirements=[
            "VERIFY ALL ARITHMETIC: every calculation must be mathematically correct",
            "Work each calculation out step by step before writing it down",
            "Example: 5 × 4 = 20 (NOT 15, NOT 18)",
            "Example: 12 - 5 = 7 (NOT 8, NOT 6)",
            "Write every equation in the form a × b = c so it can be checked",
        ],
        do=[
            "Ask about calculations, problem-solving and formulas",
            "Use numerical examples taken from the material",
        ],
        dont=[
            "Don't include an equation you have not double-checked",
            "Don't use operations the material does not cover",
        ],
        example="""QUESTION 1:
A rectangle is 6 cm wide and 7 cm long. What is its area?
A) 13 square centimetres
B) 42 square centimetres
C) 36 square centimetres
D) 48 square centimetres
CORRECT: B
EXPLANATION: Area is width times length, so 6 × 7 = 42 square centimetres.""",
    ),
    SubjectCategory.NATURAL_SCIENCES: SubjectGuidance(
        teacher="SCIENCE",
        focus="scientific concepts, processes and reasoning",
        requirements=[
            "Test understanding of cause and effect relationships",
            "Use proper scientific terminology from the material",
            "Ensure scientific accuracy: no common misconceptions",
            "Ask about HOW and WHY, not just WHAT",
        ],
        do=[
            "Ask about relationships between concepts",
            "Include scientific reasoning and evidence",
        ],
        dont=[
            "Don't require lab equipment or experiments",
            "Don't ask about measurements that are not in the material",
            "Don't repeat misconceptions such as heavier objects falling faster",
        ],
        example="""QUESTION 1:
Why do plants need sunlight to carry out photosynthesis?
A) Sunlight provides the energy that drives the conversion of carbon dioxide and water into glucose
B) Sunlight supplies the minerals that roots absorb
C) Sunlight cools the leaves so that water does not evaporate
D) Sunlight removes oxygen from the leaf cells
CORRECT: A
EXPLANATION: Chlorophyll absorbs light energy, and that energy drives the reactions that build glucose.""",
    ),
    SubjectCategory.LITERATURE: SubjectGuidance(
        teacher="LITERATURE",
        focus="literary analysis rather than plot summary",
        requirements=[
            "Test understanding of themes, character development and literary devices",
            "Ask about the author's purpose and writing techniques",
            "Frame every question analytically: why, how, what effect",
        ],
        do=[
            "Ask about themes, symbolism and character motivation",
            "Focus on interpretation and textual evidence",
        ],
        dont=[
            "Don't ask plot summary questions such as what happens next",
            "Don't ask about events not covered in the material",
            "Don't require knowledge of other works not mentioned",
        ],
        example="""QUESTION 1:
How does the recurring image of the locked garden develop the theme of isolation in the passage?
A) It symbolises the narrator's emotional distance from the rest of the family
B) It shows that the story is set during winter
C) It introduces a new character who owns the garden
D) It explains why the narrator enjoys gardening
CORRECT: A
EXPLANATION: The locked garden returns whenever the narrator feels shut out, so the symbol reinforces isolation.""",
    ),
    SubjectCategory.HISTORY: SubjectGuidance(
        teacher="HISTORY",
        focus="historical causation, significance and context",
        requirements=[
            "Test understanding of causes and effects of events",
            "Ask about historical context and different perspectives",
            "Include change and continuity over time",
        ],
        do=[
            "Ask why events happened and what they led to",
            "Ask about the significance of people and developments",
        ],
        dont=[
            "Don't ask for bare memorisation of dates",
            "Don't require information that is not in the material",
        ],
        example="""QUESTION 1:
Why did the expansion of the railways change patterns of trade in the nineteenth century?
A) Goods could be moved faster and more cheaply between distant markets
B) Railways replaced the need for any coastal shipping
C) Railways were only used to move soldiers
D) Trade stopped growing once railways were built
CORRECT: A
EXPLANATION: Faster and cheaper transport connected producers to distant buyers, which expanded trade.""",
    ),
    SubjectCategory.COMPUTER_SCIENCE: SubjectGuidance(
        teacher="COMPUTER SCIENCE",
        focus="programming concepts, algorithms and computational thinking",
        requirements=[
            "Test understanding of code logic and problem-solving",
            "Only use syntax and languages that appear in the material",
            "Any code shown must be complete, with balanced brackets",
        ],
        do=[
            "Ask about algorithm behaviour and efficiency",
            "Ask what a piece of code from the material does",
        ],
        dont=[
            "Don't use programming languages not mentioned in the material",
            "Don't include syntax errors or unfinished code",
        ],
        example="""QUESTION 1:
What is the main advantage of binary search over linear search on a sorted list?
A) It halves the remaining search space at every step
B) It works on unsorted lists
C) It always checks every element
D) It needs no comparisons
CORRECT: A
EXPLANATION: Each comparison discards half of the remaining elements, giving logarithmic running time.""",
    ),
    SubjectCategory.LANGUAGES: SubjectGuidance(
        teacher="LANGUAGE",
        focus="grammar, vocabulary and language structure",
        requirements=[
            "Test language rules, word meanings and usage",
            "Everything must be answerable from written text alone",
        ],
        do=[
            "Ask about grammar rules and sentence structure",
            "Ask about vocabulary meaning and translation",
        ],
        dont=[
            "Don't require audio, listening or pronunciation",
            "Don't use languages not mentioned in the material",
        ],
        example="""QUESTION 1:
Which form of the verb completes the sentence "Yesterday she ___ to the market"?
A) goes
B) went
C) going
D) gone
CORRECT: B
EXPLANATION: "Yesterday" signals the simple past tense, and the simple past of "go" is "went".""",
    ),
    SubjectCategory.BUSINESS: SubjectGuidance(
        teacher="BUSINESS",
        focus="business concepts, strategy and real-world application",
        requirements=[
            "Test understanding of business principles and decisions",
            "Keep any financial figures consistent with the material",
        ],
        do=[
            "Ask about strategic thinking and decision-making",
            "Ask about markets, competition and finance",
        ],
        dont=[
            "Don't require company knowledge not in the material",
            "Don't give personal financial advice",
        ],
        example="""QUESTION 1:
What is the most likely effect on demand when a close substitute product becomes cheaper?
A) Demand for the original product falls
B) Demand for the original product rises
C) Demand for the original product is unaffected
D) The original product becomes a luxury good
CORRECT: A
EXPLANATION: Buyers switch to the cheaper substitute, so demand for the original product falls.""",
    ),
    SubjectCategory.ARTS: SubjectGuidance(
        teacher="ARTS",
        focus="artistic techniques, movements and cultural significance",
        requirements=[
            "Test understanding of styles, techniques and context",
            "Describe any artwork in words; students cannot see images",
        ],
        do=[
            "Ask about artistic interpretation and influence",
            "Ask about creative processes and movements",
        ],
        dont=[
            "Don't require viewing artworks that are not described",
            "Don't ask for purely subjective aesthetic judgements",
        ],
        example="""QUESTION 1:
How did Impressionist painters typically try to capture changing light?
A) By painting outdoors with quick, visible brushstrokes
B) By copying old master paintings in the studio
C) By using only black and white paint
D) By avoiding landscapes entirely
CORRECT: A
EXPLANATION: Working outdoors with rapid strokes let them record fleeting effects of light and colour.""",
    ),
    SubjectCategory.HEALTH_MEDICINE: SubjectGuidance(
        teacher="HEALTH EDUCATION",
        focus="general health concepts, body systems and prevention",
        requirements=[
            "Ensure medical accuracy but never give medical advice",
            "Keep questions educational rather than diagnostic",
        ],
        do=[
            "Ask about anatomy, physiology and prevention",
            "Ask about nutrition and wellness principles",
        ],
        dont=[
            "Don't include drug dosages or specific medications",
            "Don't tell the reader what they should take or do",
        ],
        example="""QUESTION 1:
What is the main role of red blood cells in the human body?
A) Carrying oxygen from the lungs to the tissues
B) Producing digestive enzymes
C) Fighting infections directly
D) Storing calcium for the bones
CORRECT: A
EXPLANATION: Haemoglobin in red blood cells binds oxygen in the lungs and releases it in the tissues.""",
    ),
}

GENERAL_GUIDANCE = SubjectGuidance(
    teacher="",
    focus="key concepts and understanding from the material",
    requirements=[
        "Test comprehension and application of ideas",
        "Ensure accuracy and clarity",
    ],
    do=[
        "Ask about relationships between ideas",
        "Ask questions that require reasoning",
    ],
    dont=[
        "Don't ask about information not covered in the material",
        "Don't assume prior knowledge",
    ],
    example="""QUESTION 1:
What is the main purpose of summarising a text before studying it in detail?
A) To identify the key ideas and how they connect
B) To memorise every sentence word for word
C) To avoid reading the text at all
D) To find spelling mistakes
CORRECT: A
EXPLANATION: A summary highlights the central ideas, which makes detailed study easier.""",
)


def guidance_for(subject: SubjectCategory) -> SubjectGuidance:
    return SUBJECT_GUIDANCE.get(subject, GENERAL_GUIDANCE)


def _bullets(items: Sequence[str], prefix: str = "-") -> str:
    return "\n".join(f"{prefix} {item}" for item in items)


class PromptBuilder:
    def example_block(self, subject: SubjectCategory) -> str:
        return guidance_for(subject).example

    def build(
        self,
        kind: StrategyKind,
        content: str,
        count: int,
        subject: SubjectCategory,
        topic_name: str,
        type_sequence: Optional[Sequence[QuestionType]] = None,
        pattern: Optional[Pattern] = None,
    ) -> str:
        if kind == StrategyKind.BASIC:
            raise ValueError("The basic strategy does not use a prompt")
        if kind == StrategyKind.CONSERVATIVE:
            return self.conservative_prompt(content, count, subject, topic_name)
        if kind == StrategyKind.SIMPLIFIED:
            return self.simplified_prompt(content, count, topic_name)
        if kind == StrategyKind.PATTERN_BASED and pattern is not None:
            return self.pattern_prompt(content, count, subject, topic_name, pattern)
        return self.subject_prompt(content, count, subject, topic_name, type_sequence)

    def subject_prompt(
        self,
        content: str,
        count: int,
        subject: SubjectCategory,
        topic_name: str,
        type_sequence: Optional[Sequence[QuestionType]] = None,
    ) -> str:
        guidance = guidance_for(subject)
        material = content[: CONTENT_BUDGETS[StrategyKind.SUBJECT_CONTEXT]]
        if guidance.teacher:
            opening = f'You are a {guidance.teacher} teacher creating {count} practice questions for "{topic_name}".'
        else:
            opening = (
                f'You are an educator creating {count} practice questions for "{topic_name}" '
                f"in {subject.display_name}."
            )

        return f"""{opening}

STUDY MATERIAL:
{material}

REQUIREMENTS (focus on {guidance.focus}):
{_bullets(guidance.requirements)}

DO:
{_bullets(guidance.do)}

DON'T:
{_bullets(guidance.dont)}
{self._type_mix_section(type_sequence)}
Create exactly {count} multiple choice questions in this format:

{OUTPUT_CONTRACT}

EXAMPLE:
{guidance.example}

Continue for all {count} questions, numbering them QUESTION 1 to QUESTION {count}."""

    def conservative_prompt(self, content: str, count: int, subject: SubjectCategory, topic_name: str) -> str:
        material = content[: CONTENT_BUDGETS[StrategyKind.CONSERVATIVE]]
        return f"""Create {count} basic educational questions about "{topic_name}" for {subject.display_name}.

STUDY MATERIAL:
{material}

Requirements:
- Make questions simple and clear
- Test basic understanding of the material
- Avoid complex calculations or interpretations
- Ensure all information comes from the provided material

Format each question as:

{OUTPUT_CONTRACT}

Create exactly {count} questions following this format."""

    def simplified_prompt(self, content: str, count: int, topic_name: str) -> str:
        material = content[: CONTENT_BUDGETS[StrategyKind.SIMPLIFIED]]
        return f"""Based on this material about "{topic_name}", create {count} basic questions:

{material}

QUESTION 1:
What does the material say about [topic]?
A) [Direct answer from material]
B) [Incorrect option]
C) [Incorrect option]
D) [Incorrect option]
CORRECT: A
EXPLANATION: This is stated in the material.

Create {count} questions in this format."""

    def pattern_prompt(
        self,
        content: str,
        count: int,
        subject: SubjectCategory,
        topic_name: str,
        pattern: Pattern,
    ) -> str:
        material = content[: CONTENT_BUDGETS[StrategyKind.PATTERN_BASED]]
        example = pattern.question_text
        if pattern.options and len(pattern.options) == 4:
            example += "\n" + "\n".join(
                f"{letter}) {option}" for letter, option in zip("ABCD", pattern.options)
            )
        return f"""You are a {subject.display_name} teacher. Create {count} questions about "{topic_name}" similar to this successful example:

STUDY MATERIAL:
{material}

EXAMPLE SUCCESSFUL QUESTION:
{example}

Use this format for every question:

{OUTPUT_CONTRACT}

Create {count} similar questions based on the study material."""

    def _type_mix_section(self, type_sequence: Optional[Sequence[QuestionType]]) -> str:
        if not type_sequence:
            return ""
        open_numbers = [str(i + 1) for i, tag in enumerate(type_sequence) if tag == QuestionType.TEXT_BASED]
        if not open_numbers:
            return ""
        return f"""
QUESTION MIX:
- Questions {", ".join(open_numbers)} will be asked as open-response questions.
- Phrase them so they can be answered in a sentence without seeing the options.
- Still give four options and a CORRECT line for every question.
"""
