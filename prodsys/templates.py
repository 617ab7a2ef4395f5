"""Markdown and YAML templates written when a workspace is initialized."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Optional


def current_date() -> str:
    return date.today().strftime("%Y-%m-%d")


def current_datetime() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def target_date(days_from_now: int = 30) -> str:
    return (date.today() + timedelta(days=days_from_now)).strftime("%Y-%m-%d")


def render_template(template: str, **variables: Any) -> str:
    """Fill ``{{name}}`` placeholders.

    ``date``, ``targetDate``, ``activeProjects`` and ``daysSinceReflect``
    have defaults; placeholders without a value are left untouched.
    """
    values = {
        "date": current_date(),
        "targetDate": target_date(),
        "activeProjects": 0,
        "daysSinceReflect": 0,
    }
    values.update(variables)

    def _replace(match: re.Match) -> str:
        value = values.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return re.sub(r"\{\{(\w+)\}\}", _replace, template)


README_TEMPLATE = """# Productivity System Status

**Last Updated:** {{date}}

## Current Focus (Level 2-3)
- [ ] Main project or goal

## This Week (Level 1)
- [ ] Key weekly tasks

## Today (Level 0)
- [ ] Immediate actions (5-15 min each)

## Recent Progress
- Completed: [recent wins]
- Stalled: [needs attention]

## System Health
- Active projects: {{activeProjects}}
- Days since last reflect: {{daysSinceReflect}}
"""

PLAN_TEMPLATE = """# Current Planning

**Last Updated:** {{date}}

## Focus Areas

### Level 4 (Annual/Life Goals)
- [ ] Long-term vision item

### Level 3 (Quarterly Objectives)
- [ ] 3-month goal
- [ ] Another quarterly objective

### Level 2 (Current Projects)
- [ ] Active project
- [ ] Secondary project

### Level 1 (This Week)
- [ ] Weekly milestone
- [ ] Important task

### Level 0 (Today)
- [ ] Quick action (15 min)
- [ ] Another immediate task

## Notes
*Add context, dependencies, or insights here*
"""

REFLECT_TEMPLATE = """# Reflection History

## {{date}} - System Initialization
- System created and initialized
- Ready to begin tracking productivity patterns
- Next reflection scheduled for weekly review

---

*Previous reflections will appear above this line*
"""

CONFIG_TEMPLATE = """# Productivity System Configuration

ai:
  provider: "anthropic"
  model: "claude-3-haiku-20240307"
  api_key_env: "ANTHROPIC_API_KEY"
  max_tokens: 1000
  temperature: 0.3

system:
  workspace_dir: "."
  backup_enabled: true
  auto_save: false

# Reflection schedule (in days)
reflection:
  weekly: 7
  monthly: 30

# Zoom level defaults
zoom:
  default_level: 1
  show_context: true
"""

BOOTSTRAP_PROJECT_FILENAME = "build-productivity-system.md"

BOOTSTRAP_PROJECT_TEMPLATE = """# Project: Build Productivity System

**Status:** Active
**Level:** 2
**Started:** {{date}}
**Target:** {{targetDate}}

## Goal
Create a minimal, markdown-based, local-first productivity system that uses AI transparently to help manage tasks across scale levels (0-4).

## Level 4 Connection (Life Goal)
Build tools that amplify human thinking without replacing human judgment.

## Level 3 Milestones (Quarterly)
- [ ] Core system functional (Week 1)
- [ ] Recursive development workflow (Week 2)
- [ ] Daily use validated (Week 4)

## Level 2 Projects (Current Sprint)
- [x] Design system philosophy and file structure
- [ ] Implement core commands (init, status, save, zoom, reflect)
- [ ] Test system by using it to manage its own development
- [ ] Add habit tracking capabilities
- [ ] Improve reflection algorithms

## Level 1 Tasks (This Week)
- [ ] Set up development environment
- [ ] Implement init command with templates
- [ ] Implement status command with AI integration
- [ ] Test basic workflow with real tasks
- [ ] Start recursive development pattern

## Level 0 Actions (Next 15 minutes)
- [ ] Run system init
- [ ] Complete first status check
- [ ] Save first task completion
- [ ] Test zoom functionality

## Completed
- [x] Define system philosophy
- [x] Design file structure and templates
- [x] Create implementation specification

## Notes
This project demonstrates the system managing its own development.
"""

DEFAULT_GOAL = "Define the main goal and purpose of this project."
DEFAULT_NOTES = "Add notes about dependencies, blockers, insights, or relevant context here."

PROJECT_TEMPLATE = """# Project: {{projectName}}

**Status:** Active
**Level:** 2
**Started:** {{date}}
**Target:** (Set target date)

## Goal
{{goal}}

## Level 4 Connection (Life Goal)
Connect this project to your broader life vision and long-term objectives.

## Level 3 Milestones (Quarterly)
- [ ] Major milestone 1
- [ ] Major milestone 2
- [ ] Major milestone 3

## Level 2 Tasks (Current Sprint)
- [ ] Break down project into specific deliverables
- [ ] Set up necessary tools and resources
- [ ] Define success criteria

## Level 1 Tasks (This Week)
- [ ] First concrete step
- [ ] Research and planning tasks
- [ ] Initial implementation

## Level 0 Actions (Next 15 minutes)
- [ ] Quick actionable task
- [ ] Review project scope
- [ ] Set up workspace/files

## Completed
- [x] Project created and structured

## Notes
{{notes}}

## Resources
- Links to relevant documentation
- Reference materials
"""


def render_project(name: str, goal: Optional[str] = None, notes: Optional[str] = None) -> str:
    return render_template(
        PROJECT_TEMPLATE,
        projectName=name,
        goal=goal or DEFAULT_GOAL,
        notes=notes or DEFAULT_NOTES,
    )
