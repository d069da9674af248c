from typing import Any, Dict, List, Optional

STEP_DESIGNER_SYSTEM_PROMPT = """You are a Lean Process Designer, a senior continuous-improvement consultant AI specializing in redesigning individual process steps for a future-state value stream.

Your Goal: Propose distinct, implementable design options for ONE target step, grounded in the workflow context, the linked improvement solution and the context the team has already captured.

**For every option provide:**

1. **option_key**: "A", "B" or "C". Each option must be a genuinely different approach, not a variation in wording.

2. **title / summary**: A short name and a one or two sentence summary.

3. **changes**: What changes compared to the current (as-is) step.

4. **waste_addressed**: Lean wastes removed (e.g. Waiting, Over-processing, Motion, Defects, Transportation, Inventory, Overproduction, Unused talent).

5. **risks / dependencies**: Implementation risks and prerequisites.

6. **confidence**: A number between 0 and 1 reflecting how well the available context supports the option.

7. **design**: The step design itself:
   - purpose: what the step accomplishes
   - inputs: data, materials or triggers (name, source, required, description)
   - actions: ordered list (order, description, performer, system)
   - decisions: decision points (question, options with label and outcome)
   - outputs: what the step produces (name, destination, format)
   - controls: approvals, validations, audit or compliance checks (type, description, owner, frequency)
   - timing: estimated_lead_time_minutes, estimated_cycle_time_minutes

8. **assumptions**: Every explicit assumption with the risk if it is wrong and how to validate it.

**Clarifying Questions:**
- If more context would materially improve the options, set context_needed to true and add questions.
- Give each question a short stable id (e.g. "q-volume-per-day") so it can be answered later.
- Do NOT repeat questions that already appear in the prior Q&A.

**Style Guidelines:**
- Be concrete: name roles, systems and hand-offs
- Prefer fewer hand-offs and less waiting over added automation for its own sake
- Keep each option consistent with the lane (actor/system) of the target step unless the option explicitly moves it
"""

STEP_DESIGN_USER_PROMPT = """{step_brief}

Return 1-3 options following the output schema."""

RESEARCH_MODE_BLOCK = """
## Research Mode ENABLED
Include industry best practices and pattern labels for your suggestions.
Tag each option with relevant pattern names (e.g., "Poka-Yoke", "Single-Piece Flow", "Standard Work").
"""


def _join(values: Optional[List[Any]], sep: str = ", ") -> str:
    return sep.join(str(v) for v in values or [])


def format_workflow_context(context: Optional[Dict[str, Any]]) -> str:
    if not context:
        return "No workflow context provided."

    lines = []
    if context.get("purpose"):
        lines.append(f"- **Purpose**: {context['purpose']}")
    if context.get("business_value"):
        lines.append(f"- **Business Value**: {context['business_value']}")
    if context.get("trigger_events"):
        lines.append(f"- **Triggers**: {_join(context['trigger_events'])}")
    if context.get("end_outcomes"):
        lines.append(f"- **Target Outcomes**: {_join(context['end_outcomes'])}")
    if context.get("volume_frequency"):
        lines.append(f"- **Volume/Frequency**: {context['volume_frequency']}")
    if context.get("sla_targets"):
        lines.append(f"- **SLA Targets**: {context['sla_targets']}")
    if context.get("constraints"):
        lines.append(f"- **Constraints**: {_join(context['constraints'], '; ')}")
    return "\n".join(lines) if lines else "No workflow context provided."


def build_step_design_prompt(inputs: Dict[str, Any]) -> str:
    """Render the agent input bundle as the user message."""
    node = inputs["node"]
    current_step = inputs.get("current_step")
    solution = inputs.get("solution")
    existing_context = inputs.get("existing_context")
    prior_versions = inputs.get("prior_versions") or []

    sections = [
        "Design the step-level details for the following process step.",
        "## Workflow Context\n" + format_workflow_context(inputs.get("workflow_context")),
    ]

    target = [
        "## Target Node",
        f"- Name: {node['name']}",
        f"- Lane: {node['lane']}",
        f"- Type: {node['step_type']}",
        f"- Action: {node['action']}",
    ]
    if node.get("description"):
        target.append(f"- Description: {node['description']}")
    sections.append("\n".join(target))

    if current_step:
        lead = current_step.get("lead_time_minutes")
        cycle = current_step.get("cycle_time_minutes")
        sections.append("\n".join([
            "## Current State (before modification)",
            f"- Original Name: {current_step['step_name']}",
            f"- Description: {current_step.get('description') or 'N/A'}",
            f"- Lead Time: {lead if lead is not None else 'N/A'} min",
            f"- Cycle Time: {cycle if cycle is not None else 'N/A'} min",
        ]))

    if solution:
        sections.append("\n".join([
            "## Linked Solution",
            f"- Title: {solution['title']}",
            f"- Bucket: {str(solution['bucket']).upper()}",
            f"- Description: {solution.get('description') or ''}",
        ]))

    if existing_context:
        captured = ["## Context Already Captured"]
        if existing_context.get("purpose"):
            captured.append(f"- Purpose: {existing_context['purpose']}")
        for key in ("inputs", "outputs", "constraints", "assumptions"):
            if existing_context.get(key):
                captured.append(f"- {key.capitalize()}: {_join(existing_context[key])}")
        questions = existing_context.get("questions") or []
        if questions:
            captured.append("\n### Prior Q&A")
            for q in questions:
                captured.append(f"Q: {q.get('question')}\nA: {q.get('answer') or '(unanswered)'}")
        sections.append("\n".join(captured))

    if prior_versions:
        history = ["## Prior Design Versions"]
        for v in prior_versions:
            title = (v.get("selected_option") or {}).get("title") or "No selection"
            history.append(f"- Version {v['version']}: {title}")
        sections.append("\n".join(history))

    sections.append(
        "## Instructions\n"
        "1. Generate 2-3 distinct design options (A, B, C) for this step.\n"
        "2. Describe purpose, inputs, actions, decisions, outputs, controls and timing for each.\n"
        "3. List wastes addressed, risks, dependencies, a confidence score and explicit assumptions.\n"
        "4. If you need more context, set context_needed to true and include follow-up questions."
    )

    prompt = "\n\n".join(sections)
    if inputs.get("research_mode"):
        prompt += "\n" + RESEARCH_MODE_BLOCK
    return prompt
