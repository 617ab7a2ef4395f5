"""Prompt templates sent to the LLM service.

Placeholders use ``{{name}}`` and are filled with :func:`fill_prompt`.
"""

from __future__ import annotations

import re


def fill_prompt(template: str, **values: object) -> str:
    """Substitute ``{{key}}`` placeholders; unknown keys are left as-is."""
    def _replace(match: re.Match) -> str:
        key = match.group(1)
        return str(values[key]) if key in values else match.group(0)

    return re.sub(r"\{\{(\w+)\}\}", _replace, template)


RESPONSE_FORMAT_INSTRUCTIONS = """**IMPORTANT: You must respond with ONLY valid JSON. No additional text, explanations, or formatting outside the JSON object.**

Required JSON format:
{
  "analysis": "Brief analysis of the current state",
  "suggestions": ["List of actionable suggestions"],
  "proposed_changes": [
    {
      "file_path": "path/to/file",
      "change_type": "create|update|delete",
      "content": "new content if creating/updating",
      "diff": "description of changes if updating"
    }
  ],
  "reasoning": "Explanation of why these changes are recommended"
}

Response:"""


STATUS_PROMPT = """Role: You are a productivity system analyzing a user's current state.

Analyze the provided files and current context to provide:

1. Current focus summary across zoom levels (0-4):
   - Level 0: Immediate (5-15 min actions)
   - Level 1: Daily/Weekly (1-3 hour tasks)
   - Level 2: Projects (days-weeks)
   - Level 3: Quarterly goals (1-3 months)
   - Level 4: Annual/life goals

2. Recent progress highlights from completed items
3. Stalled areas that need attention (incomplete tasks that haven't moved)
4. 2-3 specific, actionable next steps
5. System health metrics and observations

Format your response as JSON with the specified structure. Use supportive, encouraging language. Focus on progress made and constructive next steps rather than criticism."""


SAVE_PROMPT = """Role: You are helping update a productivity system after a user completes or progresses on a task.

User Action: {{userAction}}

Analyze the user's reported action and the current file contents to:

1. Determine which files need updating based on the action
2. Propose specific changes to reflect the completed work
3. Suggest logical next steps that flow from this completion
4. Identify any structural improvements (e.g., breaking down large tasks, reorganizing priorities)

Consider:
- Which project/area this action relates to
- How completion affects related tasks
- Whether new tasks should be generated
- If milestones or deadlines need updating

Propose concrete file changes that accurately reflect the progress made."""


ZOOM_PROMPT = """Role: Help user navigate between productivity scale levels for better perspective.

Current Zoom Request: {{zoomRequest}}

Zoom Levels:
- 0: Immediate (5-15 min actions)
- 1: Daily/Weekly (1-3 hour tasks)
- 2: Short projects (days-weeks)
- 3: Quarterly goals (1-3 months)
- 4: Annual/life goals

Based on the current context and zoom request:

1. Analyze the current level's tasks and their relationship to other levels
2. Provide perspective on how the requested level connects to others
3. Suggest focus adjustments appropriate for the target level
4. Recommend any task breakdown (zoom in) or consolidation (zoom out)
5. Highlight dependencies or connections between levels

Help the user see their work at the appropriate scale and make informed decisions about where to focus their attention."""


REFLECT_PROMPT = """Role: Guide user through productivity reflection and system improvement.

Reflection Type: {{reflectionType}}
Time Period: {{timePeriod}}

Based on the historical data and patterns:

1. Progress Analysis:
   - What has been accomplished in this period?
   - What patterns do you see in task completion?
   - Which areas saw the most/least progress?

2. System Effectiveness:
   - What's working well in the current approach?
   - What obstacles or friction points emerged?
   - Are tasks at appropriate zoom levels?

3. Insights and Adjustments:
   - What have you learned about your productivity patterns?
   - What changes would improve effectiveness?
   - How should priorities shift for the next period?

4. Forward Planning:
   - What should be the focus for the coming period?
   - Are there structural changes needed in the system?
   - What experiments could improve productivity?

Generate actionable insights and specific recommendations for system improvement."""


PROJECT_PROMPT = """Role: Help manage project lifecycle in the productivity system.

Project Action: {{projectAction}}
Project Name: {{projectName}}

For project management:

1. If creating: Help structure the project with appropriate:
   - Goal definition and level 4 connection
   - Milestone breakdown (level 3)
   - Current tasks (levels 1-2)
   - Immediate actions (level 0)

2. If updating status: Analyze project progress and suggest:
   - Status changes based on completion
   - Task reorganization if needed
   - Next milestone priorities
   - Dependencies or blockers

3. If completing: Help with project closure:
   - Document lessons learned
   - Archive or reorganize remaining tasks
   - Identify follow-up projects or maintenance tasks
   - Update related areas and goals

Ensure projects maintain clear connections across all zoom levels and contribute to higher-level objectives."""


TASK_RELATIONSHIPS_PROMPT = """Role: You coordinate work across projects in a productivity system.

Review every task in the provided project files and identify:

1. Dependencies: tasks that must finish before others can start
2. Enablers: tasks that unlock several others at once
3. Blockers: stalled tasks holding back higher-level goals
4. Batching: similar tasks that could be grouped together
5. Priority adjustments: tasks whose zoom level or urgency looks wrong

Put each relationship and coordination idea in "suggestions" as a short sentence such as
"<task A> enables <task B>: <why>". Do not propose file changes unless a task is clearly misfiled."""
