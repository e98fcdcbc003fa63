from __future__ import annotations

import json
from datetime import date
from typing import List, Optional

EXTRACTION_SYSTEM = "You are Nova, a helpful productivity assistant. You answer with JSON only."
FOCUS_SYSTEM = "You are Nova, a focus coach. You answer with JSON only."

EXTRACTION_MARKER = "Analyze the following user text to identify a task"
FOCUS_MARKER = "Decide whether the user's current activity is Signal or Noise"


def build_extraction_prompt(text: str, prior: Optional[dict] = None, today: Optional[date] = None) -> str:
    today = today or date.today()
    lines = [
        EXTRACTION_MARKER + ", its priority, and its due date.",
        f"Today's date is {today.isoformat()}.",
        "- Priority can be 'Top', 'Medium', or 'Low'.",
        "- Due dates are calendar dates in the form YYYY-MM-DD.",
        "- If a value is missing, set it to null.",
        "- Based on what is missing, formulate a single, concise follow-up question. "
        "If nothing is missing, set the question to null.",
    ]
    if prior:
        lines += [
            "",
            "This text answers your previous follow-up question. Your previous partial result was:",
            json.dumps(prior, ensure_ascii=False),
            "Keep every value from it unless the new text changes it, and fill in what was missing.",
        ]
    lines += [
        "",
        'Respond ONLY with a JSON object in the format: '
        '{ "taskName": "...", "priority": "...", "dueDate": "YYYY-MM-DD", "followUpQuestion": "..." }',
        "",
        "User Text: " + json.dumps(text, ensure_ascii=False),
    ]
    return "\n".join(lines)


def build_focus_prompt(current_activity: str, important_tasks: List[str]) -> str:
    tasks = "\n".join(f"- {t}" for t in important_tasks) or "- (none)"
    return "\n".join(
        [
            FOCUS_MARKER + " relative to their important open tasks.",
            "Signal means the activity moves one of these tasks forward; anything else is Noise.",
            "",
            "Important tasks:",
            tasks,
            "",
            "Current activity: " + json.dumps(current_activity, ensure_ascii=False),
            "",
            'Respond ONLY with a JSON object in the format: { "verdict": "Signal" } or { "verdict": "Noise" }',
        ]
    )
