"""
Draft Lexer - single pass over a draft, one token per line.

The lexer only classifies lines. It knows which header keywords exist (from
the rulebook) but not where a field starts or ends; that is the tree
builder's job. Keeping the two apart means header detection is written once
and shared by extraction and span replacement.

Token kinds:
    HeaderToken     a line that starts with a known field or sub-field keyword
    VariantToken    "1. text", "- text", "Вариант 2: text"
    SeparatorToken  a bare "Вариант 2" label
    TextToken       anything else with content
    BlankToken      empty line
"""
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from ..utils.rulebook import FieldSpec, Rulebook, SubFieldSpec

# A header keyword must be followed by end of line, punctuation or a number
HEADER_TERMINATOR = r"(?=\s*(?:$|[:：—–\-.(\[]|\d))"

_MARKDOWN_HEADING = re.compile(r"^#{1,6}\s*")
_EMPHASIS = re.compile(r"\*\*|__")
_LEADING_EMPHASIS = re.compile(r"^[*_]+(?=\S)")
_NUMERIC_PREFIX = re.compile(r"^\d+(?:\.\d+)*(?:[.):]\s*|\s+)")
_HEADER_BULLET = re.compile(r"^[•]\s+")

_VARIANT_MARKER = re.compile(r"^(?:\d+[.)\-]|[-•*–—])\s+(.*)$")
_VARIANT_LABEL = re.compile(r"^(?:вариант|variant)\s*№?\s*\d+\s*[:.)\-—–]?\s*(.*)$", re.IGNORECASE)

_REMAINDER_SEPARATOR = re.compile(r"^\s*[:：—–\-.]?\s*")
# "ТЕМА (3 варианта): ..." - a note between the keyword and its separator
_KEYWORD_NOTE = re.compile(r"^\s*[(\[][^)\]]*[)\]]\s*(?=[:：—–\-.]|$)")
# "— 3 варианта", "(до 30 символов)": the whole remainder is a note
_BARE_NOTE = re.compile(
    r"^(?:(?:[(\[][^)\]]*[)\]]|\d+\s+(?:вариант\w*|variants?)\b)[\s,:：.]*)+$", re.IGNORECASE
)


@dataclass(frozen=True)
class HeaderMatch:
    """One way a header line can be read: a field, or a sub-field of one."""
    spec: FieldSpec
    sub: Optional[SubFieldSpec] = None
    inline: str = ""  # value written on the header line itself


@dataclass(frozen=True)
class HeaderToken:
    line: int
    raw: str
    candidates: tuple[HeaderMatch, ...]


@dataclass(frozen=True)
class VariantToken:
    line: int
    raw: str
    text: str


@dataclass(frozen=True)
class SeparatorToken:
    line: int
    raw: str


@dataclass(frozen=True)
class TextToken:
    line: int
    raw: str
    text: str


@dataclass(frozen=True)
class BlankToken:
    line: int
    raw: str = ""


Token = Union[HeaderToken, VariantToken, SeparatorToken, TextToken, BlankToken]


def normalize_header_line(line: str) -> str:
    """Strip markdown, emphasis and numeric prefixes from a candidate header line."""
    text = line.strip()
    text = _MARKDOWN_HEADING.sub("", text)
    text = _EMPHASIS.sub("", text)
    text = _LEADING_EMPHASIS.sub("", text)
    text = _HEADER_BULLET.sub("", text)
    text = _NUMERIC_PREFIX.sub("", text)
    return text.strip()


def clean_inline_value(remainder: str) -> str:
    """The value written after a header keyword, or "" if there is none.

    Only the separator (and a note placed before it) is dropped; whatever
    follows is kept verbatim, including a leading "(note)" or dash.
    """
    value = _KEYWORD_NOTE.sub("", remainder, count=1)
    value = _REMAINDER_SEPARATOR.sub("", value, count=1).strip()
    if _BARE_NOTE.match(value):
        return ""
    return value


class DraftLexer:
    """Turns draft text into a flat token stream for one rulebook."""

    def __init__(self, rulebook: Rulebook):
        self.rulebook = rulebook
        self._patterns: list[tuple[HeaderMatch, re.Pattern]] = []
        for spec in rulebook.fields:
            self._patterns.append(
                (HeaderMatch(spec), re.compile(rf"^{spec.header}{HEADER_TERMINATOR}", re.IGNORECASE))
            )
            for sub in spec.subfields:
                self._patterns.append(
                    (HeaderMatch(spec, sub), re.compile(rf"^{sub.header}{HEADER_TERMINATOR}", re.IGNORECASE))
                )

    def match_header(self, line: str) -> tuple[HeaderMatch, ...]:
        """Every field or sub-field ``line`` can be read as a header of (empty if none)."""
        normalized = normalize_header_line(line)
        if not normalized:
            return ()

        candidates = []
        for header_match, pattern in self._patterns:
            m = pattern.match(normalized)
            if m:
                inline = clean_inline_value(normalized[m.end():])
                candidates.append(HeaderMatch(header_match.spec, header_match.sub, inline))
        return tuple(candidates)

    def tokenize(self, raw_text: str) -> Iterator[Token]:
        for index, line in enumerate((raw_text or "").split("\n")):
            stripped = line.strip()
            if not stripped:
                yield BlankToken(index, line)
                continue

            candidates = self.match_header(stripped)
            if candidates:
                yield HeaderToken(index, line, candidates)
                continue

            label = _VARIANT_LABEL.match(normalize_header_line(stripped))
            if label:
                text = label.group(1).strip()
                if text:
                    yield VariantToken(index, line, text)
                else:
                    yield SeparatorToken(index, line)
                continue

            marker = _VARIANT_MARKER.match(stripped)
            if marker and marker.group(1).strip():
                yield VariantToken(index, line, marker.group(1).strip())
                continue

            yield TextToken(index, line, stripped)
