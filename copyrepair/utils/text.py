"""
Text helpers shared by the extractor and the validator.

Length limits are counted in user-perceived characters: an emoji with a skin
tone, a flag, or a ZWJ family sequence counts once, a combining accent adds
nothing.
"""
import re
import unicodedata

_ZWJ = "\u200d"

# Punctuation dropped before n-gram comparison
_NGRAM_PUNCT = re.compile(r"[.,!?;:—–\-«»\"“”„'‘’()\[\]]")
_WHITESPACE = re.compile(r"\s+")


def _is_regional_indicator(ch: str) -> bool:
    return 0x1F1E6 <= ord(ch) <= 0x1F1FF


def _is_modifier(ch: str) -> bool:
    code = ord(ch)
    return (
        0xFE00 <= code <= 0xFE0F          # variation selectors
        or 0x1F3FB <= code <= 0x1F3FF     # skin tones
        or 0xE0020 <= code <= 0xE007F     # tag sequences (subdivision flags)
        or unicodedata.combining(ch) != 0
        or unicodedata.category(ch) in ("Mn", "Me")
    )


def grapheme_length(text: str) -> int:
    """Count user-perceived characters in ``text``."""
    if not text:
        return 0

    count = 0
    join_next = False
    pending_ri = False

    for ch in text:
        if join_next:
            join_next = False
            continue
        if ch == _ZWJ:
            join_next = True
            continue
        if _is_modifier(ch):
            continue
        if _is_regional_indicator(ch):
            # Two regional indicators form one flag
            if pending_ri:
                pending_ri = False
                continue
            pending_ri = True
            count += 1
            continue
        pending_ri = False
        count += 1

    return count


def normalize_for_ngrams(text: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    if not text:
        return ""
    lowered = _NGRAM_PUNCT.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def word_ngrams(text: str, n: int = 3) -> set[str]:
    """Set of contiguous word n-grams of the normalized text."""
    words = [w for w in normalize_for_ngrams(text).split(" ") if w]
    return {" ".join(words[i:i + n]) for i in range(len(words) - n + 1)}


def snippet(text: str, start: int, end: int, before: int = 0, after: int = 0) -> str:
    """Slice of ``text`` around a match, clamped to the text bounds."""
    return text[max(0, start - before):min(len(text), end + after)]


def paragraphs(text: str) -> list[str]:
    """Non-empty paragraphs separated by blank lines."""
    return [p.strip() for p in re.split(r"\n\s*\n", text or "") if p.strip()]


def estimate_tokens(text: str) -> int:
    """Rough token count used for prompt size reporting."""
    return (len(text) + 3) // 4
