"""
Built-in seed data for a Plane project-management database.

INSERT_ORDER lists every table the pipeline touches, parents before children.
Tables without an active seed config in the list are imported from existing
snapshots (users, sessions, ...) or only reset (the CDC transaction log).
"""

from pm_synth.seeds.loader import load_seed_configs, load_seed_file
from pm_synth.seeds.plane import SEED_CONFIGS

INSERT_ORDER = [
    "users",
    "instances",
    "sessions",
    "workspaces",
    "profiles",
    "projects",
    "states",
    "labels",
    "issues",
    "cycles",
    "modules",
    "pages",
    "workspace_members",
    "project_members",
    "issue_assignees",
    "module_members",
    "project_pages",
    "cycle_issues",
    "instance_admins",
    "instance_configurations",
    "user_notification_preferences",
    "workspace_member_invites",
    "issue_views",
    "issue_activities",
    "issue_subscribers",
    "module_issues",
    "transaction_log",
]

__all__ = [
    "INSERT_ORDER",
    "SEED_CONFIGS",
    "load_seed_configs",
    "load_seed_file",
]
