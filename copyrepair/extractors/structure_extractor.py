"""
Structure Extractor - builds an addressable field tree from a draft.

The tree is an ordered dict keyed by field id:

    {
        "subject": ["...", "...", "..."],           # variants
        "banner": {"title": [...], "subtitle": [...]},  # composite
        "intro": "paragraph one\\n\\nparagraph two",  # text
        "block[1]": {"title": [...], "copy": "...", "cta": [...]},
    }

Composite sub-fields are addressed by their own ids (``bannerTitle``,
``block[1].cta``). Text inside a composite that belongs to no sub-field is
kept under ``"text"``. An empty tree means nothing recognisable was found.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from ..utils.rulebook import (
    FREE_TEXT_KEY,
    AnyFieldSpec,
    FieldKind,
    FieldSpec,
    Rulebook,
    SubFieldSpec,
)
from .lexer import (
    BlankToken,
    DraftLexer,
    HeaderMatch,
    HeaderToken,
    SeparatorToken,
    TextToken,
    VariantToken,
)

logger = logging.getLogger(__name__)

_ORDINAL = re.compile(r"\[(\d+)\]")


@dataclass(frozen=True)
class HeaderSite:
    """Where a field's header sits in the draft."""
    line: int
    field_id: str
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class FieldValue:
    """One addressable field of a tree, flattened for checks."""
    field_id: str
    spec: Optional[AnyFieldSpec]
    value: Any
    parent_id: Optional[str] = None

    @property
    def texts(self) -> list[str]:
        """Checkable strings: each variant, the text blob, or a composite's free text."""
        if isinstance(self.value, list):
            return [v for v in self.value if v]
        if isinstance(self.value, dict):
            free = self.value.get(FREE_TEXT_KEY, "")
            return [free] if free else []
        return [self.value] if self.value else []

    @property
    def text(self) -> str:
        return "\n".join(self.texts)


@dataclass
class _BuildState:
    tree: dict = field(default_factory=dict)
    sites: list = field(default_factory=list)
    spec: Optional[FieldSpec] = None
    field_id: Optional[str] = None
    sub: Optional[SubFieldSpec] = None
    after_separator: bool = False
    counters: dict = field(default_factory=dict)
    # (field_id, sub key or None) -> list of paragraphs, each a list of lines
    text_parts: dict = field(default_factory=dict)


class StructureExtractor:
    """Parses drafts into field trees for one rulebook."""

    def __init__(self, rulebook: Rulebook):
        self.rulebook = rulebook
        self.lexer = DraftLexer(rulebook)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def extract(self, raw_text: str) -> dict[str, Any]:
        """Parse ``raw_text`` into a structure tree (empty when nothing matched)."""
        tree, _ = self._build(raw_text)
        return tree

    def locate_headers(self, raw_text: str) -> list[HeaderSite]:
        """Header positions of every field and sub-field, in document order."""
        _, sites = self._build(raw_text)
        return sites

    def iter_fields(self, tree: dict[str, Any]) -> Iterator[FieldValue]:
        """Every addressable field of ``tree``, sub-fields right after their parent."""
        for field_id, value in tree.items():
            spec = self.rulebook.parent_spec(field_id)
            if spec is None:
                continue
            yield FieldValue(field_id, spec, value)
            if spec.kind != FieldKind.COMPOSITE or not isinstance(value, dict):
                continue
            for sub in spec.subfields:
                if sub.key in value:
                    yield FieldValue(sub.field_id(field_id), sub, value[sub.key], parent_id=field_id)

    def present_fields(self, tree: dict[str, Any]) -> set[str]:
        return {fv.field_id for fv in self.iter_fields(tree)}

    def render(self, tree: dict[str, Any]) -> str:
        """Print ``tree`` in canonical draft form."""
        blocks = []
        for field_id, value in tree.items():
            spec = self.rulebook.parent_spec(field_id)
            if spec is None:
                continue
            ordinal = _ordinal(field_id)
            lines = [spec.render_label(ordinal)]

            if spec.kind == FieldKind.VARIANTS:
                lines.extend(_numbered(value))
            elif spec.kind == FieldKind.TEXT:
                lines.extend(_text_lines(value))
            else:
                lines.extend(_text_lines(value.get(FREE_TEXT_KEY, "")))
                for sub in spec.subfields:
                    if sub.key not in value:
                        continue
                    lines.extend(_render_sub(sub, value[sub.key]))
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks) + "\n" if blocks else ""

    # =========================================================================
    # TREE BUILDER
    # =========================================================================

    def _build(self, raw_text: str) -> tuple[dict, list[HeaderSite]]:
        state = _BuildState()

        for token in self.lexer.tokenize(raw_text):
            if isinstance(token, HeaderToken):
                self._on_header(state, token)
            elif isinstance(token, VariantToken):
                self._on_value(state, token.text, token.raw.strip())
            elif isinstance(token, SeparatorToken):
                if self._target_kind(state) == FieldKind.TEXT:
                    self._append_text(state, token.raw.strip())
                else:
                    state.after_separator = True
            elif isinstance(token, TextToken):
                self._on_text(state, token.text)
            elif isinstance(token, BlankToken):
                self._paragraph_break(state)

        self._finalize_text(state)
        if not state.tree:
            logger.debug("No field headers recognised in draft")
        return state.tree, state.sites

    def _on_header(self, state: _BuildState, token: HeaderToken):
        choice = self._choose(state, token.candidates)
        if choice is None:
            self._on_text(state, token.raw.strip())
            return

        state.after_separator = False
        if choice.sub is None:
            spec = choice.spec
            if spec.repeatable:
                state.counters[spec.id] = state.counters.get(spec.id, 0) + 1
                field_id = spec.field_id(state.counters[spec.id])
            else:
                field_id = spec.field_id()
            if field_id not in state.tree:
                state.tree[field_id] = _empty_value(spec.kind)
            state.spec, state.field_id, state.sub = spec, field_id, None
            state.sites.append(HeaderSite(token.line, field_id))
            inline = spec.inline
        else:
            sub = choice.sub
            container = state.tree[state.field_id]
            if sub.key not in container:
                container[sub.key] = _empty_value(sub.kind)
            state.sub = sub
            state.sites.append(HeaderSite(token.line, sub.field_id(state.field_id), state.field_id))
            inline = sub.inline

        # Re-entering a text target starts a new paragraph
        self._paragraph_break(state)
        if inline and choice.inline:
            self._on_value(state, choice.inline, choice.inline)

    def _choose(self, state: _BuildState, candidates: tuple[HeaderMatch, ...]) -> Optional[HeaderMatch]:
        # A sub-field of the open composite wins over a top-level field
        if state.spec is not None and state.spec.kind == FieldKind.COMPOSITE:
            for candidate in candidates:
                if candidate.spec is state.spec and candidate.sub is not None:
                    return candidate
        for candidate in candidates:
            if candidate.sub is None:
                return candidate
        return None

    def _target_kind(self, state: _BuildState) -> Optional[FieldKind]:
        if state.spec is None:
            return None
        if state.spec.kind != FieldKind.COMPOSITE:
            return state.spec.kind
        if state.sub is None:
            return FieldKind.TEXT
        return state.sub.kind

    def _on_value(self, state: _BuildState, text: str, line: str):
        kind = self._target_kind(state)
        if kind == FieldKind.VARIANTS:
            self._variants(state).append(text)
        elif kind == FieldKind.TEXT:
            self._append_text(state, line)
        state.after_separator = False

    def _on_text(self, state: _BuildState, text: str):
        kind = self._target_kind(state)
        if kind == FieldKind.TEXT:
            self._append_text(state, text)
        elif kind == FieldKind.VARIANTS:
            if state.after_separator:
                self._variants(state).append(text)
            elif state.spec.kind == FieldKind.COMPOSITE:
                self._append_text(state, text, free=True)
        state.after_separator = False

    def _variants(self, state: _BuildState) -> list:
        if state.sub is None:
            return state.tree[state.field_id]
        return state.tree[state.field_id][state.sub.key]

    def _text_key(self, state: _BuildState, free: bool = False) -> tuple:
        if state.spec.kind != FieldKind.COMPOSITE:
            return (state.field_id, None)
        if free or state.sub is None:
            return (state.field_id, FREE_TEXT_KEY)
        return (state.field_id, state.sub.key)

    def _append_text(self, state: _BuildState, line: str, free: bool = False):
        parts = state.text_parts.setdefault(self._text_key(state, free), [[]])
        parts[-1].append(line)

    def _paragraph_break(self, state: _BuildState):
        if self._target_kind(state) != FieldKind.TEXT:
            return
        parts = state.text_parts.get(self._text_key(state))
        if parts and parts[-1]:
            parts.append([])

    def _finalize_text(self, state: _BuildState):
        for (field_id, key), parts in state.text_parts.items():
            text = "\n\n".join("\n".join(lines) for lines in parts if lines)
            if key is None:
                state.tree[field_id] = text
            elif text or key in state.tree[field_id]:
                state.tree[field_id][key] = text


def _empty_value(kind: FieldKind):
    if kind == FieldKind.VARIANTS:
        return []
    if kind == FieldKind.TEXT:
        return ""
    return {}


def _ordinal(field_id: str) -> int:
    m = _ORDINAL.search(field_id)
    return int(m.group(1)) if m else 1


def _numbered(values) -> list[str]:
    return [f"{i}. {v}" for i, v in enumerate(values or [], 1)]


def _text_lines(text: str) -> list[str]:
    return text.split("\n") if text else []


def _render_sub(sub: SubFieldSpec, value) -> list[str]:
    if sub.kind == FieldKind.TEXT:
        return [sub.label] + _text_lines(value)
    # Inline values go on numbered lines so they read back verbatim
    return [sub.label] + _numbered(value)
