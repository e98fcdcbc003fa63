from __future__ import annotations
import json
from llm.prompts import EXTRACTION_MARKER, FOCUS_MARKER
from llm.providers.base import LLMProvider


def _field(prompt: str, label: str) -> str:
    for line in prompt.splitlines():
        if line.startswith(label):
            try:
                return json.loads(line[len(label):])
            except json.JSONDecodeError:
                return line[len(label):].strip()
    return ""


def _important_tasks(prompt: str) -> list[str]:
    lines = prompt.splitlines()
    if "Important tasks:" not in lines:
        return []
    out = []
    for line in lines[lines.index("Important tasks:") + 1:]:
        if not line.startswith("- "):
            break
        if line != "- (none)":
            out.append(line[2:])
    return out


class MockProvider(LLMProvider):
    """Offline provider for local runs: deterministic, no network."""

    def generate(self, *, system: str, user: str, model: str | None = None) -> str:
        if EXTRACTION_MARKER in user:
            text = _field(user, "User Text: ")
            return json.dumps({
                "taskName": text[:40] if text else "Example Task",
                "priority": "Medium",
                "dueDate": None,
                "followUpQuestion": None,
            })

        if FOCUS_MARKER in user:
            activity = _field(user, "Current activity: ").lower()
            words = {
                w.lower()
                for task in _important_tasks(user)
                for w in task.split()
                if len(w) > 3
            }
            verdict = "Signal" if any(w in activity for w in words) else "Noise"
            return json.dumps({"verdict": verdict})

        # Default fallback
        return "{}"
