"""
Shared fakes for the completion provider and sample material
"""
import pytest

from studybuddy.middleware.rate_limit import limiter
from studybuddy.services.cache import CacheService
from studybuddy.services.llm import LLMProviderError
from studybuddy.services.patterns import PatternStore

PHYSICS_PASSAGE = (
    "Newton's first law states that an object remains at rest or in uniform motion unless a net force acts on it. "
    "The second law relates force, mass and acceleration through the equation F = ma. "
    "Friction is a force that opposes the relative motion of two surfaces in contact. "
    "Gravity accelerates all objects near the surface of the Earth at about 9.8 metres per second squared. "
    "Air resistance depends on the speed and the shape of a moving object. "
    "Momentum is the product of the mass and the velocity of an object. "
    "In a closed system the total momentum is conserved during a collision. "
    "Work is done when a force moves an object through a distance in the direction of the force."
)


def make_block(number, question, options, correct="A", explanation="Because the material says so."):
    lines = [f"QUESTION {number}:", question]
    lines += [f"{letter}) {option}" for letter, option in zip("ABCD", options)]
    lines.append(f"CORRECT: {correct}")
    if explanation is not None:
        lines.append(f"EXPLANATION: {explanation}")
    return "\n".join(lines)


def science_completion(count, start=1):
    blocks = []
    for i in range(start, start + count):
        blocks.append(make_block(
            i,
            f"Which statement about force and motion number {i} matches the material?",
            [f"Correct statement {i}", f"Wrong statement {i}a", f"Wrong statement {i}b", f"Wrong statement {i}c"],
        ))
    return "\n\n".join(blocks)


class ScriptedProvider:
    """Returns queued completions in order; an exception in the queue is raised instead."""

    name = "scripted"

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, prompt, options):
        self.calls.append((prompt, options))
        if not self.responses:
            return ""
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class FailingProvider:
    name = "failing"

    def __init__(self):
        self.calls = 0

    def complete(self, prompt, options):
        self.calls += 1
        raise LLMProviderError("Connection refused")


@pytest.fixture(autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def memory_cache():
    return CacheService(redis_url=None)


@pytest.fixture
def pattern_store():
    return PatternStore()
