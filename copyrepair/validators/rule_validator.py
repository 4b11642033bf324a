"""
Rule Validator - runs the check battery over one draft.

Checks never short-circuit: a draft with a broken structure still gets its
lexical and meta-commentary checks. When no field could be parsed at all the
text-only checks run on the raw draft and PARSE_FAILED is added.
"""
import logging
from typing import Optional

from langsmith import traceable

from ..extractors.structure_extractor import FieldValue, StructureExtractor
from ..models.violation import (
    DOCUMENT_LOCATION,
    Severity,
    ValidationResult,
    ValidationStats,
    Violation,
)
from ..utils.rulebook import Rulebook
from .base import BaseCheck, DraftView, ValidationContext
from .checks import default_checks

logger = logging.getLogger(__name__)


class RuleValidator:
    """Deterministic validator for one rulebook."""

    def __init__(
        self,
        rulebook: Rulebook,
        checks: Optional[list[BaseCheck]] = None,
        extractor: Optional[StructureExtractor] = None,
    ):
        self.rulebook = rulebook
        self.extractor = extractor or StructureExtractor(rulebook)
        self.checks = checks if checks is not None else default_checks()

    @traceable(name="validate_draft", run_type="chain")
    def validate(self, raw_text: str, context: Optional[ValidationContext] = None) -> ValidationResult:
        """
        Validate a draft against the rulebook.

        Args:
            raw_text: Draft text as produced by the generator
            context: Per-request overrides (defaults to the rulebook values)

        Returns:
            ValidationResult; ``is_valid`` is True exactly when there is no ERROR
        """
        context = context or ValidationContext()
        raw_text = raw_text or ""
        tree = self.extractor.extract(raw_text)
        parsed = bool(tree)

        if parsed:
            fields = list(self.extractor.iter_fields(tree))
        else:
            fields = [FieldValue(DOCUMENT_LOCATION, None, raw_text)]

        draft = DraftView(raw_text=raw_text, tree=tree, fields=fields, rulebook=self.rulebook, parsed=parsed)
        violations: list[Violation] = []
        checked = 0

        if not parsed:
            violations.append(Violation(
                code="PARSE_FAILED",
                severity=Severity.ERROR,
                message="Не удалось распознать структуру: ни один заголовок не найден",
                location=DOCUMENT_LOCATION,
                evidence=raw_text[:200],
                suggested_fix="Выведите все разделы с заголовками в формате спецификации",
            ))

        for check in self.checks:
            if not parsed and not check.runs_on_unparsed:
                continue
            checked += 1
            violations.extend(check.run(draft, context))

        stats = ValidationStats(
            checked=checked,
            errors=sum(1 for v in violations if v.severity == Severity.ERROR),
            warnings=sum(1 for v in violations if v.severity == Severity.WARNING),
        )
        result = ValidationResult(
            is_valid=stats.errors == 0,
            violations=violations,
            structure=tree,
            stats=stats,
        )

        logger.debug(
            f"Validated draft ({self.rulebook.name}): {stats.errors} errors, "
            f"{stats.warnings} warnings from {checked} checks"
        )
        return result
