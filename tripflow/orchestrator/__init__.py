"""
Planning wizard orchestrator.

Modules:
- state: Step enum, explicit wizard context, snapshot
- preferences: Step-scoped draft mutation and validation
- swipe: Gesture classification and the question traversal
- hydration: Per-day image tasks reporting through a queue
- slots: Activity regeneration and deletion
- paywall: Deep-link entry, free-preview masking, session adoption
- router, graph: The Loading waypoint as a LangGraph workflow
- steps: Transition table and step handlers
- wizard: PlanningWizard facade
- wizard_api: FastAPI router
"""

from tripflow.orchestrator.config import DEFAULT_CONFIG, WizardConfig, get_config
from tripflow.orchestrator.state import Step, WizardSnapshot
from tripflow.orchestrator.wizard import PlanningWizard

__all__ = [
    "DEFAULT_CONFIG",
    "WizardConfig",
    "get_config",
    "Step",
    "WizardSnapshot",
    "PlanningWizard",
]
