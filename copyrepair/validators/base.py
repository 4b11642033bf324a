"""
Base classes for draft checks.

Every check inherits from BaseCheck and implements run(). A check looks at
one aspect of a draft and returns the violations it found; it never raises
on content and never stops the other checks from running.
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..extractors.structure_extractor import FieldValue
from ..models.violation import Severity, Violation
from ..utils.rulebook import AnyFieldSpec, Rulebook

logger = logging.getLogger(__name__)

_VAR_DIRECTIVE = re.compile(r"\[VAR\s+([^\]]+)\]", re.IGNORECASE)
_LIMIT_DIRECTIVE = re.compile(r"\[LIMIT\s+([^\]]+)\]", re.IGNORECASE)
_VAR_PAIR = re.compile(r"([\w\-\[\].]+)\s*=\s*(\d+)")
_LIMIT_PAIR = re.compile(r"([\w\-\[\].]+)\s*(?:<=|≤)\s*(\d+)")


@dataclass(frozen=True)
class ValidationContext:
    """
    Per-request overrides for the rulebook defaults.

    Keys are field ids. ``discount_threshold`` replaces the rulebook's
    numeric-consistency limit when set.
    """
    required_variants: dict[str, int] = field(default_factory=dict)
    char_limits: dict[str, int] = field(default_factory=dict)
    discount_threshold: Optional[int] = None

    def required_for(self, field_id: str, spec: AnyFieldSpec) -> int:
        return self.required_variants.get(field_id, spec.required_variants)

    def max_chars_for(self, field_id: str, spec: AnyFieldSpec) -> Optional[int]:
        return self.char_limits.get(field_id, spec.max_chars)

    @classmethod
    def from_brief(
        cls,
        brief: str,
        rulebook: Rulebook,
        discount_threshold: Optional[int] = None,
    ) -> "ValidationContext":
        """
        Read ``[VAR field=N]`` and ``[LIMIT field<=N]`` directives from a brief.

        Field names may be rulebook aliases (``subject``, ``тема``, ``cta``) or
        field ids. Unknown names are ignored.
        """
        required: dict[str, int] = {}
        limits: dict[str, int] = {}

        for directive in _VAR_DIRECTIVE.findall(brief or ""):
            for name, value in _VAR_PAIR.findall(directive):
                field_id = _resolve_field(name, rulebook)
                if field_id:
                    required[field_id] = int(value)

        for directive in _LIMIT_DIRECTIVE.findall(brief or ""):
            for name, value in _LIMIT_PAIR.findall(directive):
                field_id = _resolve_field(name, rulebook)
                if field_id:
                    limits[field_id] = int(value)

        if required or limits:
            logger.debug(f"Brief overrides: variants={required}, limits={limits}")
        return cls(required_variants=required, char_limits=limits, discount_threshold=discount_threshold)


def _resolve_field(name: str, rulebook: Rulebook) -> Optional[str]:
    alias = rulebook.resolve_alias(name)
    if alias:
        return alias
    if rulebook.is_known_field(name):
        return name
    logger.debug(f"Ignoring directive for unknown field '{name}'")
    return None


@dataclass
class DraftView:
    """Everything a check may look at for one draft."""
    raw_text: str
    tree: dict[str, Any]
    fields: list[FieldValue]
    rulebook: Rulebook
    parsed: bool = True

    def get_field(self, field_id: str) -> Optional[FieldValue]:
        for fv in self.fields:
            if fv.field_id == field_id:
                return fv
        return None

    def has_field(self, field_id: str) -> bool:
        return self.get_field(field_id) is not None


class BaseCheck(ABC):
    """
    Abstract base class for draft checks.

    Each check covers ONE rule family:
    - Structural completeness
    - Length bounds
    - Lexical bans
    - Cross-field duplication
    - Meta commentary
    """

    name: str = "BaseCheck"
    description: str = "Base check"

    # Still meaningful when no field could be parsed (runs on the raw text)
    runs_on_unparsed: bool = False

    @abstractmethod
    def run(self, draft: DraftView, context: ValidationContext) -> list[Violation]:
        """
        Check a draft.

        Args:
            draft: Raw text, structure tree and flattened fields
            context: Per-request overrides

        Returns:
            Violations found, in a stable order
        """
        pass

    def _violation(
        self,
        code: str,
        message: str,
        location: str,
        severity: Severity = Severity.ERROR,
        evidence: str = "",
        suggested_fix: str = None,
    ) -> Violation:
        """Helper to create a Violation."""
        return Violation(
            code=code,
            severity=severity,
            message=message,
            location=location,
            evidence=evidence or "",
            suggested_fix=suggested_fix,
        )
