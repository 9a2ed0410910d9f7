from .conversation_types import ConversationMessage, TurnRole
from .tool_call import ToolCall
from .plan import (
    IterationTrace,
    OrchestrationOutput,
    OrchestrationPhase,
    OrchestrationState,
    Plan,
    ReplanAction,
    ReplanDecision,
    RunStatus,
)

__all__ = [
    "ConversationMessage",
    "TurnRole",
    "ToolCall",
    "Plan",
    "ReplanAction",
    "ReplanDecision",
    "OrchestrationPhase",
    "OrchestrationState",
    "IterationTrace",
    "OrchestrationOutput",
    "RunStatus",
]
