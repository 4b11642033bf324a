"""
Repair engine core.

Modules:
- scope_resolver: Violation -> repair scope, field span extraction and replacement
- knowledge_selector: Violation codes -> knowledge sections for repair prompts
- repair_loop: RepairOrchestrator (generate -> validate -> repair)
"""
from .knowledge_selector import DEFAULT_KNOWLEDGE_MAP, FULL_KNOWLEDGE, KnowledgeSelector
from .repair_loop import RepairOptions, RepairOrchestrator, select_best_attempt
from .scope_resolver import DEFAULT_SCOPE_TABLE, FieldSpan, RepairScopeResolver, ScopeKind

__all__ = [
    "DEFAULT_KNOWLEDGE_MAP",
    "FULL_KNOWLEDGE",
    "KnowledgeSelector",
    "RepairOptions",
    "RepairOrchestrator",
    "select_best_attempt",
    "DEFAULT_SCOPE_TABLE",
    "FieldSpan",
    "RepairScopeResolver",
    "ScopeKind",
]
