"""
Repair Prompt Builder - prompts for generation, full repair and surgical repair.

Three prompt shapes:
1. GENERATION  - brief + field requirements + the whole knowledge base
2. FULL REPAIR - previous draft + every violation grouped by field + the
                 knowledge sections those violations need
3. SURGICAL    - one field's current text + only that field's violations;
                 the model must answer with that section alone

Requirements (variant counts, character limits) are read from the rulebook
and the per-request ValidationContext, so a brief's [VAR]/[LIMIT] overrides
reach the model as well as the validator.
"""
import logging
import re
from typing import Optional

from ..generators.base import GenerationPrompt
from ..models.violation import Violation
from ..utils.rulebook import FieldKind, FieldSpec, Rulebook, SubFieldSpec
from ..validators.base import ValidationContext

logger = logging.getLogger(__name__)

BRIEF_EXCERPT_CHARS = 500

_LABEL_TAIL = re.compile(r"[\s:—–\-]+$")


# =============================================================================
# SYSTEM INSTRUCTIONS
# =============================================================================

SYSTEM_INSTRUCTIONS = """Ты — старший копирайтер SimpleWine. Пишешь маркетинговые тексты на русском языке
строго по редполитике SimpleWine. Правила из раздела лексики и запретов имеют абсолютный приоритет
над брифом: если бриф противоречит правилам, следуй правилам."""

CRITICAL_CONSTRAINTS = """CRITICAL CONSTRAINTS:
1. NO emojis anywhere
2. "дегустация" FORBIDDEN except ONLY in exact phrase "мероприятие с дегустацией вин"
3. "купить" FORBIDDEN except with "в винотеке"; "покупка/покупать" FORBIDDEN except with "в винотеке"
4. "букет" FORBIDDEN (use "профиль" or specific aromas/flavors)
5. "послевкусие" FORBIDDEN (use "финиш")
6. "напиток" in any form FORBIDDEN (use "алкоголь", "категория", "ассортимент", "подборка")
7. NO banned clichés from the lexicon
8. Geography: regions/countries need "вина" or a wine adjective nearby, never a standalone label
9. NO 3+ word repetition between fields
10. NO service phrases, checklists or status messages in the output"""

FORMAT_RULES = """FORMAT:
- Use the exact section headers shown below, without numbering prefixes like "1)"
- Each variant on its own line, numbered 1., 2., 3.
- Output ONLY the final copy. Nothing else."""


# =============================================================================
# HELPERS
# =============================================================================

def field_label(rulebook: Rulebook, field_id: str) -> str:
    """Human label of a field id ("ТЕМА", "Кнопка" inside "БЛОК 2")."""
    spec = rulebook.field_spec(field_id)
    if spec is None:
        return field_id
    label = _LABEL_TAIL.sub("", spec.label)
    if isinstance(spec, SubFieldSpec):
        parent = rulebook.parent_spec(field_id)
        ordinal = _ordinal_of(field_id)
        return f"{_LABEL_TAIL.sub('', parent.render_label(ordinal))} / {label}"
    return _LABEL_TAIL.sub("", spec.render_label(_ordinal_of(field_id))) or label


def _ordinal_of(field_id: str) -> int:
    m = re.search(r"\[(\d+)\]", field_id)
    return int(m.group(1)) if m else 1


def _requirement_line(label: str, field_id: str, spec, context: ValidationContext) -> Optional[str]:
    parts = []
    if spec.kind == FieldKind.VARIANTS:
        required = context.required_for(field_id, spec)
        if required:
            parts.append(f"{required} variants")
    limit = context.max_chars_for(field_id, spec)
    if limit:
        parts.append(f"≤ {limit} chars each" if spec.kind == FieldKind.VARIANTS else f"≤ {limit} chars")
    if spec.min_chars:
        parts.append(f"≥ {spec.min_chars} chars")
    if not parts:
        return None
    return f"- {label}: {', '.join(parts)}"


def describe_requirements(rulebook: Rulebook, context: ValidationContext) -> str:
    """One line per field that carries a variant count or a length bound."""
    lines = []
    for spec in rulebook.fields:
        field_id = spec.field_id(1) if not spec.repeatable else spec.id
        label = _LABEL_TAIL.sub("", spec.label)
        line = _requirement_line(label, field_id, spec, context)
        if line:
            lines.append(line)
        for sub in spec.subfields:
            sub_line = _requirement_line(
                f"{label} / {_LABEL_TAIL.sub('', sub.label)}", sub.field_id(field_id), sub, context
            )
            if sub_line:
                lines.append(sub_line)
    return "\n".join(lines)


def format_example(rulebook: Rulebook) -> str:
    """Skeleton of the expected output, one section per field."""
    sections = []
    for spec in rulebook.fields:
        lines = [_example_header(spec)]
        if spec.kind == FieldKind.VARIANTS:
            lines.extend(_example_variants(spec.required_variants))
        elif spec.kind == FieldKind.TEXT:
            lines.append("...")
        else:
            for sub in spec.subfields:
                if sub.kind == FieldKind.TEXT:
                    lines.extend([sub.label, "..."])
                elif sub.inline and not sub.required_variants:
                    lines.append(f"{sub.label} ...")
                else:
                    lines.append(_example_header(sub))
                    lines.extend(_example_variants(sub.required_variants))
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


def _example_header(spec) -> str:
    label = spec.render_label(1) if isinstance(spec, FieldSpec) else spec.label
    if spec.kind == FieldKind.VARIANTS and spec.required_variants:
        return f"{_LABEL_TAIL.sub('', label)} — {spec.required_variants} варианта"
    return label


def _example_variants(count: int) -> list[str]:
    return [f"{i}. ..." for i in range(1, max(count, 1) + 1)]


def format_violations(violations: list[Violation]) -> str:
    """Violations grouped by location, one indented line each."""
    by_location: dict[str, list[Violation]] = {}
    for violation in violations:
        by_location.setdefault(violation.location, []).append(violation)

    blocks = []
    for location, items in by_location.items():
        lines = [f"{location}:"]
        for v in items:
            line = f"  - [{v.code}] {v.message}"
            if v.evidence:
                line += f' | Evidence: "{v.evidence}"'
            if v.suggested_fix:
                line += f" | Fix: {v.suggested_fix}"
            lines.append(line)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _knowledge_block(knowledge: str) -> str:
    if not knowledge:
        return ""
    return f"===== KNOWLEDGE =====\n{knowledge}\n===== END KNOWLEDGE ====="


# =============================================================================
# PROMPT BUILDERS
# =============================================================================

def build_generation_prompt(
    brief: str,
    knowledge: str,
    rulebook: Rulebook,
    context: Optional[ValidationContext] = None,
) -> GenerationPrompt:
    """Prompt for the first draft."""
    context = context or ValidationContext()
    instructions = "\n\n".join(part for part in (
        SYSTEM_INSTRUCTIONS,
        _knowledge_block(knowledge),
        f"You are writing {rulebook.name} copy for SimpleWine. Follow the "
        f"{rulebook.description or rulebook.name} output format and ALL rules strictly.",
        CRITICAL_CONSTRAINTS,
    ) if part)

    content = f"""Generate compliant copy based on this parsed brief:

{brief}

Requirements:
{describe_requirements(rulebook, context)}

CHARACTER LIMITS ARE ABSOLUTE: count every letter, space and punctuation mark.
Aim for 5-10 chars below the limit; rewrite a variant shorter before including it.

{FORMAT_RULES}

Example of the expected format:

{format_example(rulebook)}"""

    return GenerationPrompt(instructions=instructions, content=content)


def build_full_repair_prompt(
    brief: str,
    previous_draft: str,
    violations: list[Violation],
    knowledge: str,
    rulebook: Rulebook,
    context: Optional[ValidationContext] = None,
) -> GenerationPrompt:
    """Prompt for regenerating a whole draft around its violations."""
    context = context or ValidationContext()
    instructions = "\n\n".join(part for part in (
        SYSTEM_INSTRUCTIONS,
        _knowledge_block(knowledge),
        "You are REPAIRING copy that had validation violations. Follow ALL rules strictly.",
        "This is a REPAIR operation. Fix ONLY what violates. Preserve the meaning and structure where valid.",
    ) if part)

    content = f"""REPAIR TASK

Original Brief:
{brief}

Previous Draft (with violations):
{previous_draft}

VIOLATIONS TO FIX:
{format_violations(violations)}

Правки вносить МИНИМАЛЬНО, не переписывая весь текст и не меняя структуру, если этого не требуют нарушения.

Instructions:
1. Fix ALL violations listed above
2. Preserve valid content and meaning
3. Keep the required variant counts and limits:
{describe_requirements(rulebook, context)}
4. Output ONLY the corrected copy in the same format, nothing else"""

    return GenerationPrompt(instructions=instructions, content=content)


def build_surgical_repair_prompt(
    brief: str,
    field_id: str,
    current_section: str,
    violations: list[Violation],
    rulebook: Rulebook,
    context: Optional[ValidationContext] = None,
) -> GenerationPrompt:
    """Prompt for rewriting one field; the answer replaces that section only."""
    context = context or ValidationContext()
    label = field_label(rulebook, field_id)
    problems = "\n".join(f"- {v.message}" + (f" ({v.evidence})" if v.evidence else "") for v in violations)
    fixes = "\n".join(f"- {v.suggested_fix}" for v in violations if v.suggested_fix) or "- Устрани указанную проблему"

    spec = rulebook.field_spec(field_id)
    requirement = _requirement_line(label, field_id, spec, context) if spec else None

    content = f"""Ты — email-маркетолог. Нужно исправить {label}.

**ТЕКУЩИЙ ВАРИАНТ:**
{current_section}

**ПРОБЛЕМА:**
{problems}

**КОНТЕКСТ ИЗ БРИФА:**
{(brief or '')[:BRIEF_EXCERPT_CHARS]}...

**ЗАДАЧА:**
Перепиши ТОЛЬКО {label}, исправив проблему.
Сохрани тот же стиль и креативное направление, но:
{fixes}
{requirement or ''}

**ФОРМАТ ВЫВОДА:**
Выведи только секцию {label} с заголовком и исправленными вариантами в том же формате."""

    return GenerationPrompt(instructions=SYSTEM_INSTRUCTIONS, content=content.rstrip())
