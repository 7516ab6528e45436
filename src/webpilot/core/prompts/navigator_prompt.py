"""
Navigator Prompt

System prompt for the navigator model plus the per-turn browser state
message. The action catalogue is rendered by the ActionExecutor and injected
at build time, so the prompt always matches the registered actions.
"""

from webpilot.core.domain.models import ActionResult
from webpilot.core.interfaces.browser import PageState
from webpilot.core.prompts.planner_prompts import SECURITY_RULES

NAVIGATOR_SYSTEM_PROMPT = """
You are a browser navigation agent. You operate a real web browser to carry
out ONE step of a larger plan at a time.
{security_rules}
# INPUT
Every turn you receive:
- The current URL, the open tabs and the interactive elements of the page,
  formatted as [index]<tag attributes>text</tag>
- Results of the actions you executed on the previous turn
- The current step you must work on

# RESPONSE FORMAT
Respond with a JSON object:
{{
  "current_state": {{
    "evaluation_previous_goal": "Success|Failed|Unknown - short analysis of the previous actions",
    "memory": "what has been done and what you need to remember",
    "next_goal": "what the next immediate actions should achieve"
  }},
  "action": [{{"name": "action_name", "args": {{...}}}}, ...]
}}

# RULES
- Use at most {max_actions} actions per turn. Actions run in order; the
  sequence stops early when the page changes or an action fails.
- Only use element indexes that appear in the current element list.
- When the current step is completed, call `done` with the result of the step
  in `text`. Include all information the user asked for.
- If a page requires login or a captcha, report it with `done` instead of
  guessing credentials.
- Use `search_web` when you need an overview of sources on a topic; use
  `search_google` when you need to interact with the search results page.

# AVAILABLE ACTIONS
{actions}
"""


def build_navigator_system_prompt(actions: str, max_actions: int) -> str:
    return NAVIGATOR_SYSTEM_PROMPT.format(
        security_rules=SECURITY_RULES, actions=actions, max_actions=max_actions
    )


def build_state_message(
    state: PageState | None,
    previous_results: list[ActionResult],
    step_number: int,
    max_steps: int,
) -> str:
    """Render the transient browser-state message for one navigator turn."""
    lines = [f"Step {step_number + 1}/{max_steps}", ""]

    if state is not None:
        lines.append(f"Current url: {state.url}")
        if state.tabs:
            lines.append("Open tabs:")
            lines.extend(f"  - id={tab.tab_id} url={tab.url} title={tab.title}" for tab in state.tabs)
        lines.append("Interactive elements:")
        if state.pixels_above > 0:
            lines.append(f"... {state.pixels_above} pixels above - scroll up to see more ...")
        lines.append(state.elements_text() or "(empty page)")
        if state.pixels_below > 0:
            lines.append(f"... {state.pixels_below} pixels below - scroll down to see more ...")
    else:
        lines.append("Browser state unavailable")

    visible = [r for r in previous_results if r.include_in_memory]
    if visible:
        lines.append("")
        lines.append("Previous action results:")
        for i, result in enumerate(visible, start=1):
            if result.error:
                lines.append(f"  {i}. Error: {result.error[-400:]}")
            elif result.extracted_content:
                lines.append(f"  {i}. {result.extracted_content}")

    return "\n".join(lines)
