"""
Deterministic checks run by the RuleValidator.

Each check is independent: it reads the DraftView and returns violations in
document order. Messages are in Russian, like the rulebook they enforce.
"""
import logging
import re
from typing import Iterator

from ..extractors.structure_extractor import FieldValue
from ..models.violation import DOCUMENT_LOCATION, Severity, Violation
from ..utils.rulebook import FieldKind, FieldSpec
from ..utils.text import grapheme_length, paragraphs, snippet, word_ngrams
from .base import BaseCheck, DraftView, ValidationContext

logger = logging.getLogger(__name__)


def _applies(field_id: str, prefixes: tuple[str, ...]) -> bool:
    return not prefixes or any(field_id.startswith(p) for p in prefixes)


def _leaf_fields(draft: DraftView) -> Iterator[FieldValue]:
    """Fields that hold text directly (variants, blobs, composite free text)."""
    for fv in draft.fields:
        if fv.texts:
            yield fv


# =============================================================================
# STRUCTURE
# =============================================================================

class VariantCountCheck(BaseCheck):
    """Every field with a required variant count has at least that many."""

    name = "variant_count"
    description = "Structural completeness"

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        violations = []
        for field_id, spec, observed in self._expected_fields(draft):
            required = context.required_for(field_id, spec)
            if required <= 0 or observed >= required:
                continue
            violations.append(self._violation(
                code="VARIANT_COUNT_INSUFFICIENT",
                message=f"Недостаточно вариантов ({spec.description or field_id}): {observed} < {required}",
                location=field_id,
                evidence=f"{observed} < {required}",
                suggested_fix=f"Добавьте {required - observed} вариант(а)",
            ))
        return violations

    def _expected_fields(self, draft: DraftView):
        """(field id, spec, observed count) for every field that should be there."""
        for spec in draft.rulebook.fields:
            instances = [fv for fv in draft.fields if fv.parent_id is None and fv.spec is spec]
            if not instances:
                if spec.optional or spec.repeatable:
                    continue
                # Absent parent: each required part counts as zero
                if spec.kind == FieldKind.VARIANTS:
                    yield spec.field_id(), spec, 0
                for sub in spec.subfields:
                    yield sub.field_id(spec.field_id()), sub, 0
                continue

            for instance in instances:
                if spec.kind == FieldKind.VARIANTS:
                    yield instance.field_id, spec, len(instance.texts)
                for sub in spec.subfields:
                    sub_id = sub.field_id(instance.field_id)
                    sub_value = draft.get_field(sub_id)
                    yield sub_id, sub, len(sub_value.texts) if sub_value else 0


class CharLimitCheck(BaseCheck):
    """Grapheme-aware upper (ERROR) and lower (WARNING) length bounds."""

    name = "char_limits"
    description = "Length bounds"

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        violations = []
        for fv in _leaf_fields(draft):
            if fv.spec is None or isinstance(fv.value, dict):
                continue
            limit = context.max_chars_for(fv.field_id, fv.spec)
            minimum = fv.spec.min_chars

            units = fv.texts if fv.spec.kind == FieldKind.VARIANTS else [fv.text]
            for text in units:
                length = grapheme_length(text.strip())
                if limit is not None and length > limit:
                    over = length - limit
                    violations.append(self._violation(
                        code="CHAR_LIMIT_EXCEEDED",
                        message=f"Превышен лимит символов: {length} > {limit} (на {over})",
                        location=fv.field_id,
                        evidence=text,
                        suggested_fix=f"Сократите на {over} символов",
                    ))
                if minimum is not None and length < minimum:
                    violations.append(self._violation(
                        code="CHAR_LIMIT_UNDER_MINIMUM",
                        message=f"Недостаточно символов: {length} < {minimum}",
                        location=fv.field_id,
                        severity=Severity.WARNING,
                        evidence=text,
                        suggested_fix=f"Добавьте не менее {minimum - length} символов",
                    ))
        return violations


class BlockLengthCheck(BaseCheck):
    """Content blocks stay within their paragraph limit."""

    name = "block_length"
    description = "Block paragraphs"

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        violations = []
        for fv in draft.fields:
            spec = fv.spec
            if fv.parent_id is not None or not isinstance(spec, FieldSpec) or not spec.max_paragraphs:
                continue
            count = self._paragraph_count(fv)
            if count > spec.max_paragraphs:
                violations.append(self._violation(
                    code="BLOCK_TOO_LONG",
                    message=f"Блок слишком длинный: {count} абзаца(ев) > {spec.max_paragraphs}",
                    location=fv.field_id,
                    severity=Severity.WARNING,
                    suggested_fix=f"Сократите до {spec.max_paragraphs} абзацев",
                ))
        return violations

    @staticmethod
    def _paragraph_count(fv: FieldValue) -> int:
        if isinstance(fv.value, str):
            return len(paragraphs(fv.value))
        if not isinstance(fv.value, dict):
            return 0
        return sum(len(paragraphs(v)) for v in fv.value.values() if isinstance(v, str))


# =============================================================================
# LEXICON
# =============================================================================

class LexicalBanCheck(BaseCheck):
    """Forbidden terms, unless an allowed context surrounds the occurrence."""

    name = "lexical_bans"
    description = "Lexical bans with allowed context"
    runs_on_unparsed = True

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        violations = []
        for fv in _leaf_fields(draft):
            for ban in draft.rulebook.lexical_bans:
                if not _applies(fv.field_id, ban.fields):
                    continue
                for text in fv.texts:
                    offending = self._first_offending(ban, text)
                    if offending is None:
                        continue
                    violations.append(self._violation(
                        code=ban.code,
                        message=ban.message,
                        location=fv.field_id,
                        evidence=snippet(text, offending.start(), offending.end(), 10, 30).strip(),
                        suggested_fix=ban.suggested_fix,
                    ))
        return violations

    @staticmethod
    def _first_offending(ban, text: str):
        for m in re.finditer(ban.pattern, text, re.IGNORECASE):
            window = snippet(text, m.start(), m.end(), ban.window_before, ban.window_after)
            if any(re.search(allowed, window, re.IGNORECASE) for allowed in ban.allowed_context):
                continue
            return m
        return None


class PatternBanCheck(BaseCheck):
    """Clichés, emoji, geography labels, abbreviations."""

    name = "pattern_bans"
    description = "Cliché and pattern bans"
    runs_on_unparsed = True

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        violations = []
        bans = draft.rulebook.pattern_bans

        for fv in _leaf_fields(draft):
            for ban in bans:
                if ban.document_level or not _applies(fv.field_id, ban.fields):
                    continue
                for text in fv.texts:
                    m = re.search(ban.pattern, text, re.IGNORECASE)
                    if m:
                        violations.append(self._ban_violation(ban, fv.field_id, text, m))

        for ban in bans:
            if not ban.document_level:
                continue
            m = re.search(ban.pattern, draft.raw_text, re.IGNORECASE)
            if m:
                violations.append(self._ban_violation(ban, DOCUMENT_LOCATION, draft.raw_text, m))
        return violations

    def _ban_violation(self, ban, location: str, text: str, m: re.Match) -> Violation:
        return self._violation(
            code=ban.code,
            message=ban.message,
            location=location,
            severity=ban.severity,
            evidence=snippet(text, m.start(), m.end(), 10, 20).strip(),
            suggested_fix=ban.suggested_fix,
        )


class RequiredPatternCheck(BaseCheck):
    """Variants of certain fields must carry a marker (e.g. the timer tag)."""

    name = "required_patterns"
    description = "Required markers"

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        violations = []
        for rule in draft.rulebook.required_patterns:
            for fv in draft.fields:
                if not any(fv.field_id == f or fv.field_id.startswith(f + ".") for f in rule.fields):
                    continue
                for text in fv.texts:
                    if not re.search(rule.pattern, text, re.IGNORECASE):
                        violations.append(self._violation(
                            code=rule.code,
                            message=rule.message,
                            location=fv.field_id,
                            evidence=text,
                            suggested_fix=rule.suggested_fix,
                        ))
        return violations


# =============================================================================
# CROSS-FIELD
# =============================================================================

class NgramDuplicationCheck(BaseCheck):
    """No word n-gram may appear in two different fields."""

    name = "ngram_duplication"
    description = "Cross-field near duplication"

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        n = draft.rulebook.ngram_size
        if n <= 0:
            return []

        grams = []
        for fv in _leaf_fields(draft):
            if fv.spec is None or not fv.spec.compare_ngrams or isinstance(fv.value, dict):
                continue
            field_grams = set()
            for text in fv.texts:
                field_grams |= word_ngrams(text, n)
            grams.append((fv.field_id, field_grams))

        violations = []
        for i in range(len(grams)):
            for j in range(i + 1, len(grams)):
                (a, grams_a), (b, grams_b) = grams[i], grams[j]
                shared = grams_a & grams_b
                if not shared:
                    continue
                violations.append(self._violation(
                    code="TRIGRAM_DUPLICATION" if n == 3 else "NGRAM_DUPLICATION",
                    message=f"Дублирование {n}+ слов между {a} и {b}",
                    location=f"{a} <-> {b}",
                    evidence="; ".join(sorted(shared)[:3]),
                    suggested_fix="Переформулируйте один из фрагментов",
                ))
        return violations


class ExactEqualityCheck(BaseCheck):
    """Paired fields must never carry identical text."""

    name = "exact_equality"
    description = "Cross-field exact equality"

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        violations = []
        for a, b in draft.rulebook.exact_equality_pairs:
            left, right = draft.get_field(a), draft.get_field(b)
            if left is None or right is None:
                continue
            for x in left.texts:
                for y in right.texts:
                    if x.strip() and x.strip() == y.strip():
                        violations.append(self._violation(
                            code="EXACT_EQUALITY",
                            message=f"{a} не должен точно совпадать с {b}",
                            location=f"{a} == {b}",
                            evidence=x.strip(),
                            suggested_fix="Сделайте формулировки разными",
                        ))
        return violations


class NumericConsistencyCheck(BaseCheck):
    """Coordinated formats should not quote too many different discounts."""

    name = "numeric_consistency"
    description = "Numeric consistency"

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        rule = draft.rulebook.numeric_consistency
        if rule is None:
            return []

        values = []
        for fv in _leaf_fields(draft):
            for text in fv.texts:
                for m in re.finditer(rule.pattern, text):
                    value = re.sub(r"\s+", "", m.group(0)).lstrip("-")
                    if value not in values:
                        values.append(value)

        threshold = context.discount_threshold if context.discount_threshold is not None else rule.max_distinct
        if len(values) <= threshold:
            return []
        return [self._violation(
            code="INCONSISTENT_DISCOUNTS",
            message=f"Найдено {len(values)} разных значений ({rule.label}): {', '.join(values)}",
            location=DOCUMENT_LOCATION,
            severity=Severity.WARNING,
            evidence=", ".join(values),
            suggested_fix="Проверьте единообразие значений во всех форматах",
        )]


# =============================================================================
# DOCUMENT
# =============================================================================

class MetaCommentaryCheck(BaseCheck):
    """Generator status lines and checklists must not leak into the copy."""

    name = "meta_commentary"
    description = "Meta commentary with allow-list"
    runs_on_unparsed = True

    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        rule = draft.rulebook.meta_commentary
        if rule is None:
            return []

        raw = draft.raw_text or ""
        for pattern in rule.patterns:
            for m in re.finditer(pattern, raw, re.IGNORECASE):
                window = snippet(raw, m.start(), m.end(), rule.window, rule.window)
                if any(re.search(allowed, window, re.IGNORECASE) for allowed in rule.allow_list):
                    continue
                return [self._violation(
                    code="SERVICE_PHRASE_DETECTED",
                    message=rule.message,
                    location=DOCUMENT_LOCATION,
                    evidence=snippet(raw, m.start(), m.end(), 10, 40).strip(),
                    suggested_fix=rule.suggested_fix,
                )]
        return []


def default_checks() -> list[BaseCheck]:
    """The full battery, in reporting order."""
    return [
        VariantCountCheck(),
        CharLimitCheck(),
        LexicalBanCheck(),
        PatternBanCheck(),
        RequiredPatternCheck(),
        NgramDuplicationCheck(),
        ExactEqualityCheck(),
        MetaCommentaryCheck(),
        NumericConsistencyCheck(),
        BlockLengthCheck(),
    ]
