"""PR comment templates."""

from dataclasses import dataclass
from typing import Literal

ADDED_TO_QUEUE = "✅ Added to merge queue"


@dataclass
class ProcessingStep:
    """One line of the processing summary comment."""

    label: str
    status: Literal["success", "failure"]
    detail: str | None = None


def position_update(position: int) -> str:
    """Return the queue position comment."""
    if position == 0:
        return "📍 This PR is currently being processed"
    return f"📍 Queue position: {position}"


def removed_checks_failure(details: str) -> str:
    """Return the comment posted when a PR is rejected at enqueue time."""
    return f"❌ Removed from queue: checks no longer passing\n\n{details}"


def build_summary(title: str, steps: list[ProcessingStep]) -> str:
    """Build the single summary comment posted after processing a PR.

    Parameters
    ----------
    title : str
        Heading, e.g. "Merged Successfully".
    steps : list[ProcessingStep]
        Steps in the order they happened.

    Returns
    -------
    str
        Markdown comment body.

    """
    lines = [f"## 🔀 Merge Queue: {title}", ""]
    for step in steps:
        icon = "✅" if step.status == "success" else "❌"
        lines.append(f"- {icon} {step.label}")
        if step.detail:
            quoted = step.detail.replace("\n", "\n  > ")
            lines.append(f"  > {quoted}")
    return "\n".join(lines)
