"""Test the generate / validate / repair loop with a scripted generator."""
import asyncio
import itertools

import pytest

from copyrepair.core.knowledge_selector import LIMITS, LEXICON
from copyrepair.core.repair_loop import RepairOrchestrator, select_best_attempt
from copyrepair.exceptions import GenerationFailure
from copyrepair.models.violation import Attempt, Severity, ValidationResult, Violation
from conftest import BRIEF, LONG_SUBJECT, SUBJECT_SECTION, VALID_EMAIL, ScriptedGenerator


# Subject and preheader share "раз два три"
TRIGRAM_EMAIL = VALID_EMAIL.replace(
    "1. Осенняя подборка уже здесь", "1. Раз два три и всё"
).replace(
    "1. Собрали позиции, которые согреют в октябре", "1. Раз два три, скидки недели"
)

PREHEADER_SECTION = """ПРЕХЕДЕР — 3 варианта
1. Собрали позиции, которые согреют в октябре
2. Сомелье выбрали лучшее из новых поставок
3. Скидка 15% на избранное до конца месяца

"""

LONG_SUBJECT_EMAIL = VALID_EMAIL.replace("3. Красные к холодам", f"3. {LONG_SUBJECT}")

KNOWLEDGE_BASE = {LIMITS: "limits text", LEXICON: "lexicon text"}


def make_orchestrator(responses, **kwargs):
    generator = ScriptedGenerator(responses)
    kwargs.setdefault("max_attempts", 3)
    kwargs.setdefault("enable_repair", True)
    orchestrator = RepairOrchestrator(generator, knowledge_base=KNOWLEDGE_BASE, **kwargs)
    return orchestrator, generator


def run(orchestrator, brief=BRIEF, progress=None):
    return asyncio.run(orchestrator.run(brief, progress=progress))


# =============================================================================
# STOPPING
# =============================================================================

def test_valid_first_draft_stops_immediately():
    orchestrator, generator = make_orchestrator([VALID_EMAIL])

    result = run(orchestrator)

    assert result.success
    assert result.stopped_reason == "valid"
    assert result.attempts == 1
    assert result.content == VALID_EMAIL
    assert len(generator.calls) == 1
    assert generator.calls[0][1].purpose == "generate"


def test_repair_disabled_returns_first_draft():
    orchestrator, generator = make_orchestrator([TRIGRAM_EMAIL], enable_repair=False)

    result = run(orchestrator)

    assert not result.success
    assert result.stopped_reason == "repair_disabled"
    assert result.content == TRIGRAM_EMAIL
    assert len(generator.calls) == 1


def test_exhausted_after_max_attempts():
    orchestrator, generator = make_orchestrator([TRIGRAM_EMAIL, LONG_SUBJECT_EMAIL], max_attempts=2)

    result = run(orchestrator)

    assert not result.success
    assert result.stopped_reason == "exhausted"
    assert result.attempts == 2
    assert [a.index for a in result.attempt_history] == [1, 2]


def test_same_signature_twice_stops_at_attempt_three():
    """Test that two identical repair outcomes end the session before max_attempts."""
    orchestrator, generator = make_orchestrator([TRIGRAM_EMAIL] * 5, max_attempts=5)

    result = run(orchestrator)

    assert result.stopped_reason == "non_convergence"
    assert result.attempts == 3
    assert len(generator.calls) == 3
    assert result.best_attempt == 1
    assert not result.success


# =============================================================================
# REPAIR STRATEGIES
# =============================================================================

def test_long_subject_is_repaired_surgically():
    """Test that a subject-only error regenerates the subject section and splices it in."""
    orchestrator, generator = make_orchestrator([LONG_SUBJECT_EMAIL, SUBJECT_SECTION])

    result = run(orchestrator)

    assert result.success
    assert result.content == VALID_EMAIL
    assert result.attempt_history[1].strategy == "surgical"
    prompt, options = generator.calls[1]
    assert options.purpose == "surgical"
    assert LONG_SUBJECT in prompt.content
    assert "45 > 30" in prompt.content
    assert "ВВОДНЫЙ ТЕКСТ" not in prompt.content


def test_cross_field_error_needs_full_repair():
    orchestrator, generator = make_orchestrator([TRIGRAM_EMAIL, VALID_EMAIL])

    result = run(orchestrator)

    assert result.success
    assert result.attempt_history[1].strategy == "full"
    prompt, options = generator.calls[1]
    assert options.purpose == "repair"
    assert "TRIGRAM_DUPLICATION" in prompt.content
    assert TRIGRAM_EMAIL.strip() in prompt.content
    assert "limits text" in prompt.instructions + prompt.content
    assert "lexicon text" not in prompt.instructions + prompt.content


def test_missing_section_falls_back_to_full_repair():
    """Test that a missing preheader cannot be spliced and gets a full repair."""
    draft = VALID_EMAIL.replace(PREHEADER_SECTION, "")
    orchestrator, generator = make_orchestrator([draft, VALID_EMAIL])

    result = run(orchestrator)

    assert result.attempt_history[0].validation.errors()[0].location == "preheader"
    assert result.success
    assert result.attempt_history[1].strategy == "full"
    assert generator.calls[1][1].purpose == "repair"


# =============================================================================
# FAILURES AND PROGRESS
# =============================================================================

def test_first_generation_failure_is_raised():
    orchestrator, _ = make_orchestrator([GenerationFailure("upstream down")])

    with pytest.raises(GenerationFailure) as exc_info:
        run(orchestrator)

    assert exc_info.value.attempt == 1


def test_later_generation_failure_consumes_the_attempt():
    orchestrator, generator = make_orchestrator(
        [TRIGRAM_EMAIL, GenerationFailure("timeout"), VALID_EMAIL], max_attempts=3
    )

    result = run(orchestrator)

    assert result.success
    assert result.attempts == 3
    assert [a.index for a in result.attempt_history] == [1, 3]
    assert len(generator.calls) == 3


def test_progress_callback_is_called():
    events = []
    orchestrator, _ = make_orchestrator([TRIGRAM_EMAIL, VALID_EMAIL])

    run(orchestrator, progress=lambda message, attempt, violations: events.append((message, attempt)))

    assert events[0] == ("Generating draft", 1)
    assert ("Draft validated", 1) in events
    assert ("Repair attempt 2/3", 2) in events
    assert events[-1] == ("Draft validated", 2)


def test_async_progress_callback_is_awaited():
    events = []

    async def progress(message, attempt, violations):
        events.append(message)

    orchestrator, _ = make_orchestrator([VALID_EMAIL])
    run(orchestrator, progress=progress)

    assert events == ["Generating draft", "Draft generated", "Draft validated"]


def test_failing_progress_callback_is_ignored():
    def progress(message, attempt, violations):
        raise RuntimeError("UI gone")

    orchestrator, _ = make_orchestrator([VALID_EMAIL])

    assert run(orchestrator, progress=progress).success


# =============================================================================
# BEST ATTEMPT
# =============================================================================

def make_attempt(index, errors, valid=False):
    violations = [
        Violation(f"CODE_{i}", Severity.ERROR, "test", "subject") for i in range(errors)
    ]
    return Attempt(index, f"draft {index}", ValidationResult(is_valid=valid, violations=violations))


def test_best_attempt_prefers_first_valid_then_fewest_errors():
    assert select_best_attempt([make_attempt(1, 3), make_attempt(2, 0, True), make_attempt(3, 0, True)]).index == 2
    assert select_best_attempt([make_attempt(1, 3), make_attempt(2, 1), make_attempt(3, 1)]).index == 2
    assert select_best_attempt([make_attempt(1, 1), make_attempt(2, 4)]).index == 1

    with pytest.raises(ValueError):
        select_best_attempt([])


@pytest.mark.parametrize("error_counts", sorted(set(itertools.permutations([3, 1, 2]))))
def test_best_attempt_is_fewest_errors_in_any_order(error_counts):
    """Test that with no valid attempt the one with a single error wins wherever it arrives."""
    history = [make_attempt(i, errors) for i, errors in enumerate(error_counts, 1)]

    best = select_best_attempt(history)

    assert best.validation.error_count == 1
    assert best.index == error_counts.index(1) + 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
