"""Text rendering of tool outcomes fed back to the model."""

from __future__ import annotations

from collections.abc import Sequence

from toolweave.adapters.base import ToolResult
from toolweave.io.codec import encode_pretty
from toolweave.mcp.types import CallToolResult

NO_OUTPUT_MESSAGE = "Tool executed successfully with no output"
MAX_ITERATIONS_MESSAGE = "Maximum tool execution iterations reached. Please try breaking down your request."
RESULTS_HEADER = "Tool execution results:\n\n"
RESULTS_FOOTER = "Please analyze these results and provide a response to the user."


def format_tool_result(result: CallToolResult) -> str:
    """Collapse a tool response into one string.

    A single text part is returned verbatim; several are rendered as a JSON
    array. Responses without text parts are dumped as JSON.
    """
    if not result.content:
        return NO_OUTPUT_MESSAGE
    texts = result.texts()
    if len(texts) == 1:
        return texts[0]
    if texts:
        return encode_pretty(texts)
    return encode_pretty(result.model_dump(mode="json", by_alias=True, exclude_none=True))


def format_tool_results_for_prompt(results: Sequence[ToolResult]) -> str:
    """Next-turn prompt summarizing each outcome in invocation order."""
    body = "".join(
        f"❌ Error: {r.content}\n\n" if r.is_error else f"✓ Success: {r.content}\n\n"
        for r in results
    )
    return f"{RESULTS_HEADER}{body}{RESULTS_FOOTER}"
