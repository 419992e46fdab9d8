"""Prompt text for plan generation and adjustment. Wording is free to change; the JSON contract is not."""
import json
from typing import Any, Dict, List, Optional

from planteria.schemas.draft import plan_draft_json_schema
from planteria.schemas.plans import PlanDetailsOut

SYSTEM_PROMPT = (
    "You are a pragmatic planning coach. You turn an idea into a plan of outcomes, "
    "each with concrete deliverables, each with small next actions. "
    "Return ONLY a valid JSON object, no markdown or explanation, matching this JSON schema:\n"
    + json.dumps(plan_draft_json_schema(), ensure_ascii=False)
    + "\nRULES: (1) 1-7 outcomes, each with 1-9 deliverables, each with at most 7 actions. "
    "(2) doneWhen is one observable acceptance sentence. "
    "(3) Titles are short and start with a verb where it fits. "
    "(4) Echo the idea field exactly as given."
)


def _format_insights(insights: Optional[List[Dict[str, Any]]]) -> str:
    lines = []
    for item in (insights or [])[:8]:
        title = (item.get("title") or "").strip()
        snippet = (item.get("snippet") or "").strip()
        url = (item.get("url") or "").strip()
        if title or snippet:
            lines.append(f"- {title}: {snippet} ({url})" if url else f"- {title}: {snippet}")
    return "\n".join(lines)


def build_plan_draft_prompt(idea: str, insights: Optional[List[Dict[str, Any]]] = None) -> str:
    """User message for the first generation of a plan."""
    prompt = f"Idea: {idea}\n\n"
    research = _format_insights(insights)
    if research:
        prompt += f"RESEARCH (use as background, do not copy):\n{research}\n\n"
    prompt += (
        f'Create the complete plan. Set "idea" to exactly: {json.dumps(idea, ensure_ascii=False)}. '
        "Return ONLY the JSON object."
    )
    return prompt


def _plan_as_draft(plan: PlanDetailsOut) -> Dict[str, Any]:
    """Current tree in draft shape, so the model edits the same structure it must return."""
    return {
        "idea": plan.idea,
        "title": plan.title,
        "summary": plan.summary,
        "outcomes": [
            {
                "title": o.title,
                "summary": o.summary,
                "status": o.status,
                "deliverables": [
                    {
                        "title": d.title,
                        "doneWhen": d.done_when,
                        "notes": d.notes,
                        "status": d.status,
                        "actions": [{"title": a.title, "status": a.status} for a in d.actions],
                    }
                    for d in o.deliverables
                ],
            }
            for o in plan.outcomes
        ],
    }


def build_plan_adjustment_prompt(plan: PlanDetailsOut, instruction: str) -> str:
    """User message for an adjustment: current plan plus the instruction. The whole plan is re-emitted."""
    current = json.dumps(_plan_as_draft(plan), ensure_ascii=False, indent=2)
    return (
        f"CURRENT PLAN:\n{current}\n\n"
        f"INSTRUCTION: {instruction}\n\n"
        "Apply the instruction and return the COMPLETE updated plan, not a diff. "
        "Keep statuses of items you do not change. Keep the idea field unchanged. "
        "Return ONLY the JSON object."
    )
