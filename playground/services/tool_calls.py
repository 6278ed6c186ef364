"""Merging of streamed tool call fragments."""

from collections.abc import Sequence

from playground.models.messages import ToolCall


def _matches(existing: ToolCall, incoming: ToolCall) -> bool:
    """Check whether two fragments describe the same tool call."""
    if existing.tool_call_id:
        return existing.tool_call_id == incoming.tool_call_id
    # Without ids, fall back to the name + creation time key
    if incoming.tool_name is None or incoming.created_at is None:
        return False
    return existing.identity == incoming.identity


def overlay_tool_call(existing: ToolCall, incoming: ToolCall) -> ToolCall:
    """Overlay the non-null fields of a later fragment onto an existing call."""
    updates = incoming.model_dump(exclude_none=True)
    if not updates:
        return existing
    return existing.model_copy(update=updates)


def merge_tool_calls(accumulated: Sequence[ToolCall], incoming: ToolCall | Sequence[ToolCall]) -> list[ToolCall]:
    """Reconcile incoming fragments with the tool calls accumulated for a turn.

    Args:
        accumulated: Tool calls already on the message, in arrival order
        incoming: A single fragment or a sequence of fragments

    Returns:
        New list where matching calls are overlaid and new calls appended.
        A keyless fragment equal to a call already in the list is a replay
        and is dropped.
    """
    fragments = [incoming] if isinstance(incoming, ToolCall) else list(incoming)
    merged = list(accumulated)

    for fragment in fragments:
        for index, existing in enumerate(merged):
            if _matches(existing, fragment):
                merged[index] = overlay_tool_call(existing, fragment)
                break
        else:
            if fragment not in merged:
                merged.append(fragment)

    return merged


def merge_chunk_tool_calls(
    accumulated: Sequence[ToolCall],
    tool: ToolCall | None = None,
    tools: Sequence[ToolCall] | None = None,
) -> list[ToolCall]:
    """Merge both the single ``tool`` shape and the legacy ``tools`` array of an event."""
    merged = list(accumulated)
    if tool is not None:
        merged = merge_tool_calls(merged, tool)
    if tools:
        merged = merge_tool_calls(merged, tools)
    return merged
