"""
Loading graph construction.

Builds the LangGraph workflow behind the Loading waypoint. Nodes are
closures over the wizard's backend and exchange plain dicts through the
state, like the pipeline graphs they are modelled on.
"""

import logging
from typing import Any, Dict

from langgraph.graph import END, START, StateGraph

from tripflow.orchestrator.router import LoadingState, route_loading
from tripflow.services.base import PlannerBackend
from tripflow.services.errors import BackendError
from tripflow.shared.contracts import PreferenceDraft


logger = logging.getLogger(__name__)

# Outcomes reported by the complete node
OUTCOME_QUESTIONS = "questions"
OUTCOME_ITINERARY = "itinerary"
OUTCOME_FAILED = "failed"

_ROUTES = {
    "questions_node": "questions_node",
    "generate_node": "generate_node",
    "complete": "complete",
}


def create_loading_graph(backend: PlannerBackend):
    """
    Create and compile the loading graph for a backend.

    The graph structure is:
        START -> route_loading
          -> "questions_node" -> questions_node -> route_loading
          -> "generate_node"  -> generate_node  -> route_loading
          -> "complete"       -> complete        -> END

    Returns:
        Compiled LangGraph application (run with `ainvoke`).
    """

    async def _questions_node(state: LoadingState) -> Dict[str, Any]:
        """
        Fetch follow-up questions, capped by trip length.

        A failed fetch is treated as "no questions" so the wizard goes
        straight to generation.
        """
        _log = f"[wizard={state.get('wizard_id', 'unknown')}] [graph=loading] [node=questions] "
        prefs = PreferenceDraft.model_validate(state["prefs"])
        cap = state["question_cap"]

        try:
            questions = await backend.get_follow_up_questions(prefs)
        except BackendError as e:
            logger.warning(f"{_log}Question fetch failed, skipping questions: {e}")
            questions = []

        if len(questions) > cap:
            logger.info(f"{_log}Truncating {len(questions)} questions to {cap}")
            questions = questions[:cap]

        logger.info(f"{_log}Received {len(questions)} question(s)")
        return {
            "questions_requested": True,
            "questions": [q.model_dump() for q in questions],
        }

    async def _generate_node(state: LoadingState) -> Dict[str, Any]:
        _log = f"[wizard={state.get('wizard_id', 'unknown')}] [graph=loading] [node=generate] "
        prefs = PreferenceDraft.model_validate(state["prefs"])
        logger.info(
            f"{_log}Generating itinerary | destination={prefs.destination}, "
            f"days={prefs.trip_days}, answers={len(prefs.follow_up_answers)}"
        )

        try:
            resource = await backend.generate_itinerary(prefs)
        except BackendError as e:
            logger.exception(f"{_log}Generation failed: {e}")
            return {"errors": [f"Generation error: {e}"]}

        logger.info(
            f"{_log}Generation returned session {resource.id} | "
            f"days={len(resource.plan.days)}, total_days={resource.total_days}"
        )
        return {"generation": resource.model_dump()}

    def _complete_node(state: LoadingState) -> Dict[str, Any]:
        _log = f"[wizard={state.get('wizard_id', 'unknown')}] [graph=loading] [node=complete] "

        if state.get("errors"):
            outcome = OUTCOME_FAILED
        elif state.get("generation") is not None:
            outcome = OUTCOME_ITINERARY
        elif state.get("questions"):
            outcome = OUTCOME_QUESTIONS
        else:
            outcome = OUTCOME_FAILED

        logger.info(f"{_log}Loading complete | outcome={outcome} -> END")
        return {"outcome": outcome}

    graph = StateGraph(LoadingState)

    graph.add_node("questions_node", _questions_node)
    graph.add_node("generate_node", _generate_node)
    graph.add_node("complete", _complete_node)

    # Conditional entry point - resume from wherever state requires
    graph.add_conditional_edges(START, route_loading, _ROUTES)
    graph.add_conditional_edges("questions_node", route_loading, _ROUTES)
    graph.add_conditional_edges("generate_node", route_loading, _ROUTES)

    graph.add_edge("complete", END)

    return graph.compile()
