"""
Deterministic draft validation.

Modules:
- base: ValidationContext, DraftView, BaseCheck
- checks: One check class per rule family
- rule_validator: Runs the check battery and builds the ValidationResult
"""
from .base import BaseCheck, DraftView, ValidationContext
from .checks import (
    BlockLengthCheck,
    CharLimitCheck,
    ExactEqualityCheck,
    LexicalBanCheck,
    MetaCommentaryCheck,
    NgramDuplicationCheck,
    NumericConsistencyCheck,
    PatternBanCheck,
    RequiredPatternCheck,
    VariantCountCheck,
    default_checks,
)
from .rule_validator import RuleValidator

__all__ = [
    "BaseCheck",
    "DraftView",
    "ValidationContext",
    "BlockLengthCheck",
    "CharLimitCheck",
    "ExactEqualityCheck",
    "LexicalBanCheck",
    "MetaCommentaryCheck",
    "NgramDuplicationCheck",
    "NumericConsistencyCheck",
    "PatternBanCheck",
    "RequiredPatternCheck",
    "VariantCountCheck",
    "default_checks",
    "RuleValidator",
]
