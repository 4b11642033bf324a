"""
LangGraph Workflow - the repair state machine.

    generating → validating ─┬─ valid / disabled / exhausted / stuck → finalizing → END
                             └─ errors left → repairing
    repairing ─┬─ new draft           → validating
               ├─ call failed         → repairing
               └─ no attempts left    → finalizing

Node bodies live on RepairOrchestrator; this module only wires them.
"""
import logging

from langgraph.graph import END, StateGraph

from .state import RepairState

logger = logging.getLogger(__name__)

GENERATING = "generating"
VALIDATING = "validating"
REPAIRING = "repairing"
FINALIZING = "finalizing"


# =============================================================================
# ROUTING FUNCTIONS
# =============================================================================

def route_after_validation(state: RepairState) -> str:
    """Stop once a node has recorded a reason, otherwise repair."""
    if state.get("stopped_reason"):
        return FINALIZING
    return REPAIRING


def route_after_repair(state: RepairState) -> str:
    if state.get("stopped_reason"):
        return FINALIZING
    if state.get("repair_failed"):
        return REPAIRING
    return VALIDATING


# =============================================================================
# WORKFLOW GRAPH CREATION
# =============================================================================

def build_repair_graph(orchestrator):
    """
    Compile the workflow for one orchestrator.

    Args:
        orchestrator: Object exposing async ``generate_node``, ``validate_node``,
            ``repair_node`` and ``finalize_node``

    Returns:
        Compiled StateGraph workflow
    """
    workflow = StateGraph(RepairState)

    # ==========================================================================
    # ADD NODES
    # ==========================================================================
    workflow.add_node(GENERATING, orchestrator.generate_node)
    workflow.add_node(VALIDATING, orchestrator.validate_node)
    workflow.add_node(REPAIRING, orchestrator.repair_node)
    workflow.add_node(FINALIZING, orchestrator.finalize_node)

    # ==========================================================================
    # EDGES
    # ==========================================================================
    workflow.set_entry_point(GENERATING)
    workflow.add_edge(GENERATING, VALIDATING)

    workflow.add_conditional_edges(
        VALIDATING,
        route_after_validation,
        {
            REPAIRING: REPAIRING,
            FINALIZING: FINALIZING,
        }
    )
    workflow.add_conditional_edges(
        REPAIRING,
        route_after_repair,
        {
            VALIDATING: VALIDATING,
            REPAIRING: REPAIRING,
            FINALIZING: FINALIZING,
        }
    )
    workflow.add_edge(FINALIZING, END)

    return workflow.compile()
