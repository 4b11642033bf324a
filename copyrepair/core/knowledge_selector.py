"""
Knowledge Selector - picks the rulebook documentation a repair needs.

A repair prompt only carries the sections relevant to the violations being
fixed. Unknown violation codes fall back to the full knowledge base.
"""
import logging
from types import MappingProxyType
from typing import Mapping

from ..models.violation import Violation
from ..utils.text import estimate_tokens

logger = logging.getLogger(__name__)

FULL_KNOWLEDGE = "FULL_KNOWLEDGE"
SECTION_SEPARATOR = "\n\n---\n\n"

LIMITS = "SPEC_CHAR_LIMITS"
LEXICON = "SW_LEXICON_AND_BANS"
GEOGRAPHY = "SW_GLOBAL_RULES_GEOGRAPHY"
CTA = "SW_GLOBAL_RULES_CTA"

DEFAULT_KNOWLEDGE_MAP: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "CHAR_LIMIT_EXCEEDED": (LIMITS,),
    "CHAR_LIMIT_UNDER_MINIMUM": (LIMITS,),
    "VARIANT_COUNT_INSUFFICIENT": (LIMITS,),
    "TRIGRAM_DUPLICATION": (LIMITS,),
    "EXACT_EQUALITY": (LIMITS,),
    "BLOCK_TOO_LONG": (LIMITS,),
    "STICKY_TIMER_MISSING_TAG": (LIMITS,),
    "FORBIDDEN_DEGUSTATSIYA": (LEXICON,),
    "FORBIDDEN_KUPIT": (LEXICON, CTA),
    "FORBIDDEN_POKUPKA": (LEXICON,),
    "FORBIDDEN_BUKET": (LEXICON,),
    "FORBIDDEN_POSLEVKUSIE": (LEXICON,),
    "FORBIDDEN_NAPITOK": (LEXICON,),
    "SMS_ALCOHOL_MENTION": (LEXICON,),
    "BANNED_CLICHE": (LEXICON,),
    "EMOJI_FORBIDDEN": (LEXICON,),
    "ABBREVIATED_WORD": (LEXICON,),
    "SERVICE_PHRASE_DETECTED": (LEXICON,),
    "GEOGRAPHY_LABEL_MISUSE": (GEOGRAPHY,),
})


class KnowledgeSelector:
    """Maps violation codes to knowledge sections."""

    def __init__(self, knowledge_map: Mapping[str, tuple[str, ...]] = DEFAULT_KNOWLEDGE_MAP):
        self.knowledge_map = knowledge_map

    def sections_for(self, violations: list[Violation]) -> list[str]:
        """Needed section names, or ``[FULL_KNOWLEDGE]`` when anything is unmapped."""
        needed: list[str] = []
        for violation in violations:
            sections = self.knowledge_map.get(violation.code)
            if not sections:
                return [FULL_KNOWLEDGE]
            for section in sections:
                if section not in needed:
                    needed.append(section)
        return needed or [FULL_KNOWLEDGE]

    def select(self, violations: list[Violation], knowledge_base: Mapping[str, str]) -> str:
        """
        Concatenate the sections ``violations`` need, in knowledge-base order.

        Args:
            violations: Violations the repair will address
            knowledge_base: Section name -> section text

        Returns:
            Selected documentation joined by a horizontal rule
        """
        needed = self.sections_for(violations)
        if needed != [FULL_KNOWLEDGE]:
            selected = [text for name, text in knowledge_base.items() if name in needed and text]
            if selected:
                return SECTION_SEPARATOR.join(selected)
            logger.debug(f"None of {needed} present in knowledge base, using full knowledge")
        return self.full_knowledge(knowledge_base)

    @staticmethod
    def full_knowledge(knowledge_base: Mapping[str, str]) -> str:
        if knowledge_base.get(FULL_KNOWLEDGE):
            return knowledge_base[FULL_KNOWLEDGE]
        return SECTION_SEPARATOR.join(text for text in knowledge_base.values() if text)

    def token_savings(self, violations: list[Violation], knowledge_base: Mapping[str, str]) -> dict:
        """Estimated prompt tokens of the selection against the full knowledge base."""
        optimized = estimate_tokens(self.select(violations, knowledge_base))
        full = estimate_tokens(self.full_knowledge(knowledge_base))
        saved = full - optimized
        return {
            "optimized": optimized,
            "full": full,
            "saved_tokens": saved,
            "saved_percent": round(saved / full * 100, 1) if full else 0.0,
        }
