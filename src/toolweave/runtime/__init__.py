"""Runtime - the orchestration loop and the service that hosts it.

- Orchestrator: bounded model/tool loop with cached, concurrent tool calls
- OrchestrationService: client + adapter + cache lifecycle
- Prompt formatting of tool results
"""

from .orchestrator import DEFAULT_MAX_ITERATIONS, LoopState, OrchestrationResult, Orchestrator
from .prompt import MAX_ITERATIONS_MESSAGE, format_tool_result, format_tool_results_for_prompt
from .service import OrchestrationService, build_service

__all__ = [
    "Orchestrator", "OrchestrationResult", "LoopState", "DEFAULT_MAX_ITERATIONS",
    "OrchestrationService", "build_service",
    "MAX_ITERATIONS_MESSAGE", "format_tool_result", "format_tool_results_for_prompt",
]
