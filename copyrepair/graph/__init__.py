"""LangGraph workflow exports."""
from .state import ProgressCallback, RepairState, create_initial_state
from .workflow import build_repair_graph, route_after_repair, route_after_validation

__all__ = [
    "ProgressCallback",
    "RepairState",
    "create_initial_state",
    "build_repair_graph",
    "route_after_repair",
    "route_after_validation",
]
