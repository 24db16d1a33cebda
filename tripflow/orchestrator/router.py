"""
Routing logic for the loading graph.

Determines what the Loading waypoint does next based on what has been
populated: fetch questions, pause for answers, generate, or finish.
"""

import logging
import operator
from typing import Annotated, List, Literal, Optional, TypedDict


logger = logging.getLogger(__name__)


class LoadingState(TypedDict):
    """
    State flowing through one pass of the Loading waypoint.

    Loading is entered twice per plan: from Specifics (questions not yet
    requested) and from Questions (answers complete). Each entry is a
    separate graph run seeded with the flags below.
    """

    wizard_id: str
    prefs: dict
    question_cap: int

    questions_requested: bool
    answers_complete: bool

    # Populated by nodes
    questions: Optional[List[dict]]
    generation: Optional[dict]
    outcome: Optional[str]
    errors: Annotated[List[str], operator.add]


def route_loading(
    state: LoadingState,
) -> Literal["questions_node", "generate_node", "complete"]:
    """
    Determine the next node to execute.

    Routing logic:
    1. If generation finished or anything failed -> complete
    2. If questions were never requested -> fetch questions
    3. If there are questions still to be answered -> complete (pause)
    4. Otherwise -> generate the itinerary

    Args:
        state: Current loading state

    Returns:
        Name of the next node to execute
    """
    wizard_id = state.get("wizard_id", "unknown")
    has_generation = state.get("generation") is not None
    num_errors = len(state.get("errors") or [])
    num_questions = len(state.get("questions") or [])
    _log = f"[wizard={wizard_id}] [graph=loading] [router=route_loading] "
    _flags = (
        f"questions={num_questions}, answered={state.get('answers_complete', False)}, "
        f"generated={has_generation}, errors={num_errors}"
    )

    if has_generation or num_errors:
        logger.info(f"{_log}Routing to 'complete' | {_flags}")
        return "complete"

    if not state.get("questions_requested"):
        logger.info(f"{_log}Routing to 'questions_node' | {_flags}")
        return "questions_node"

    if num_questions and not state.get("answers_complete"):
        logger.info(f"{_log}Routing to 'complete' (awaiting answers) | {_flags}")
        return "complete"

    logger.info(f"{_log}Routing to 'generate_node' | {_flags}")
    return "generate_node"
