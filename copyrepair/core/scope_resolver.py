"""
Repair Scope Resolver - decides how much of a draft a repair must touch.

Field-scoped violations (a too-long subject, a banned word in one block) are
repaired by regenerating that field alone and splicing it back. Cross-field
and document-level violations need a whole new draft.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from ..extractors.structure_extractor import StructureExtractor
from ..models.violation import RepairScope, Violation
from ..utils.rulebook import Rulebook, SubFieldSpec

logger = logging.getLogger(__name__)


class ScopeKind(Enum):
    FIELD = "field"          # repair at violation.location
    DOCUMENT = "document"    # needs the whole draft


DEFAULT_SCOPE_TABLE: Mapping[str, ScopeKind] = MappingProxyType({
    # Field-scoped
    "VARIANT_COUNT_INSUFFICIENT": ScopeKind.FIELD,
    "CHAR_LIMIT_EXCEEDED": ScopeKind.FIELD,
    "CHAR_LIMIT_UNDER_MINIMUM": ScopeKind.FIELD,
    "FORBIDDEN_DEGUSTATSIYA": ScopeKind.FIELD,
    "FORBIDDEN_KUPIT": ScopeKind.FIELD,
    "FORBIDDEN_POKUPKA": ScopeKind.FIELD,
    "FORBIDDEN_BUKET": ScopeKind.FIELD,
    "FORBIDDEN_POSLEVKUSIE": ScopeKind.FIELD,
    "FORBIDDEN_NAPITOK": ScopeKind.FIELD,
    "SMS_ALCOHOL_MENTION": ScopeKind.FIELD,
    "BANNED_CLICHE": ScopeKind.FIELD,
    "EMOJI_FORBIDDEN": ScopeKind.FIELD,
    "GEOGRAPHY_LABEL_MISUSE": ScopeKind.FIELD,
    "ABBREVIATED_WORD": ScopeKind.FIELD,
    "STICKY_TIMER_MISSING_TAG": ScopeKind.FIELD,
    "BLOCK_TOO_LONG": ScopeKind.FIELD,
    # Cross-field / document
    "TRIGRAM_DUPLICATION": ScopeKind.DOCUMENT,
    "NGRAM_DUPLICATION": ScopeKind.DOCUMENT,
    "EXACT_EQUALITY": ScopeKind.DOCUMENT,
    "SERVICE_PHRASE_DETECTED": ScopeKind.DOCUMENT,
    "INCONSISTENT_DISCOUNTS": ScopeKind.DOCUMENT,
    "PARSE_FAILED": ScopeKind.DOCUMENT,
})


@dataclass(frozen=True)
class FieldSpan:
    """Lines [start_line, end_line) of a draft that belong to one field."""
    field_id: str
    start_line: int
    end_line: int
    text: str


class RepairScopeResolver:
    """Maps violations to repair scopes and splices field spans."""

    def __init__(
        self,
        rulebook: Rulebook,
        scope_table: Mapping[str, ScopeKind] = DEFAULT_SCOPE_TABLE,
        extractor: Optional[StructureExtractor] = None,
    ):
        self.rulebook = rulebook
        self.scope_table = scope_table
        self.extractor = extractor or StructureExtractor(rulebook)

    # =========================================================================
    # SCOPE
    # =========================================================================

    def scope_of(self, violation: Violation) -> RepairScope:
        """Scope needed to repair one violation. Total: never raises."""
        kind = self.scope_table.get(violation.code)
        if kind is None:
            logger.warning(f"Scope fallback: unknown violation code '{violation.code}', repairing all")
            return RepairScope.full()
        if kind == ScopeKind.DOCUMENT:
            return RepairScope.full()
        if not self.rulebook.is_known_field(violation.location):
            logger.warning(
                f"Scope fallback: {violation.code} at unknown location '{violation.location}', repairing all"
            )
            return RepairScope.full()
        return RepairScope.for_field(violation.location)

    def resolve(self, violations: list[Violation]) -> RepairScope:
        """
        Reduce a batch of violations to one scope.

        Only ERROR violations count. A single field when every one of them is
        confined to the same field, otherwise the whole draft.
        """
        errors = [v for v in violations if v.is_error]
        if not errors:
            return RepairScope.full()

        fields = set()
        for violation in errors:
            scope = self.scope_of(violation)
            if scope.requires_full_context:
                return RepairScope.full()
            fields.add(scope.field)

        if len(fields) == 1:
            return RepairScope.for_field(fields.pop())
        return RepairScope.full()

    # =========================================================================
    # SPANS
    # =========================================================================

    def extract_field_span(self, raw_text: str, field_id: str) -> Optional[FieldSpan]:
        """The header line of ``field_id`` and everything up to the next unrelated header."""
        sites = self.extractor.locate_headers(raw_text)
        for index, site in enumerate(sites):
            if site.field_id != field_id:
                continue
            lines = raw_text.split("\n")
            end = len(lines)
            for later in sites[index + 1:]:
                if later.parent_id != field_id:
                    end = later.line
                    break
            text = "\n".join(lines[site.line:end]).rstrip()
            return FieldSpan(field_id=field_id, start_line=site.line, end_line=end, text=text)
        return None

    def replace_field_span(self, raw_text: str, field_id: str, new_span: str) -> str:
        """
        Swap the span of ``field_id`` for ``new_span``.

        Text outside the span is kept byte for byte and exactly one blank line
        follows the new span. A field without a header leaves the draft as is.
        """
        span = self.extract_field_span(raw_text, field_id)
        if span is None:
            logger.warning(f"Cannot replace '{field_id}': header not found in draft")
            return raw_text

        lines = raw_text.split("\n")
        new_lines = _trim_blank_lines(new_span.split("\n"))
        if not new_lines or not self._starts_with_header(new_lines[0], field_id):
            new_lines = [lines[span.start_line]] + new_lines

        return "\n".join(lines[:span.start_line] + new_lines + [""] + lines[span.end_line:])

    def _starts_with_header(self, line: str, field_id: str) -> bool:
        candidates = self.extractor.lexer.match_header(line)
        target = self.rulebook.field_spec(field_id)
        if isinstance(target, SubFieldSpec):
            return any(c.sub is target for c in candidates)
        return any(c.sub is None and c.spec is target for c in candidates)


def _trim_blank_lines(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]
