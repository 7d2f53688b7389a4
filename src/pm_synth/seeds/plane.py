"""
Seed configurations for the Plane schema.

Each active config describes how many rows a table gets and how every
column is filled. Columns are applied in the order they are declared, so a
column may read any column declared above it (``same_row``,
``timestamp_after``, ``generate_with_context(include_row=True)``).
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import List

from pm_synth.generator.generators import (
    ChoiceWithoutRepetition,
    ForeignRowContext,
    choice,
    constant,
    decimal,
    fake,
    generate_with_context,
    identifier,
    integer,
    parent_row,
    random_foreign_value,
    random_parent_reference,
    random_scoped_foreign_value,
    same_row,
    timestamp_after,
    timestamp_between,
)
from pm_synth.models import CountRange, ForeignTableRows, SeedConfig, StaticRows

FIVE_YEARS_AGO = datetime.now() - timedelta(days=5 * 365)

STATES = ["Cancelled", "In Progress", "Backlog", "Done", "Todo"]
LABELS = [
    "Bug",
    "Feature",
    "Task",
    "Story",
    "Epic",
    "Sub-task",
    "Improvement",
    "Documentation",
    "Chore",
    "Test",
    "Release",
]

DISPLAY_FILTERS = {
    "layout": "list",
    "group_by": None,
    "order_by": "-created_at",
    "sub_issue": True,
    "show_empty_groups": True,
}
DISPLAY_PROPERTIES = {
    "key": True,
    "link": True,
    "state": True,
    "labels": True,
    "assignee": True,
    "due_date": True,
    "estimate": True,
    "priority": True,
    "start_date": True,
    "attachment_count": True,
    "sub_issue_count": True,
}
VIEW_PROPS = {
    "filters": {},
    "display_filters": DISPLAY_FILTERS,
    "display_properties": DISPLAY_PROPERTIES,
}
DEFAULT_PROPS = {"filters": {}, "display_filters": DISPLAY_FILTERS}
ISSUE_PROPS = {"created": True, "assigned": True, "all_issues": True, "subscribed": True}

EMPTY_JSON = json.dumps({})


def _audit_columns():
    """created_at/updated_at/id, the leading columns of every Plane table."""
    return {
        "created_at": timestamp_between(FIVE_YEARS_AGO),
        "updated_at": timestamp_after("created_at"),
        "id": identifier(),
    }


def _by_project(current_column: str = "project_id") -> ForeignRowContext:
    return ForeignRowContext(current_column, "projects", "id")


def _random_user():
    return random_foreign_value("users", "id")


WORKSPACES = SeedConfig(
    table_name="workspaces",
    row_generation=StaticRows(count=1),
    concurrent_generation=True,
    columns={
        **_audit_columns(),
        "name": generate_with_context("Generate a short workspace name under 80 characters."),
        "logo": constant(None),
        "slug": generate_with_context(
            "Generate a workspace slug under 48 characters based on the name. "
            "The slug should be lowercase and words joined by hyphens.",
            include_row=True,
        ),
        "created_by_id": _random_user(),
        "owner_id": _random_user(),
        "updated_by_id": _random_user(),
        "organization_size": constant("1-20"),
        "deleted_at": constant(None),
        "logo_asset_id": constant(None),
        "timezone": constant("America/New_York"),
    },
)

PROJECTS = SeedConfig(
    table_name="projects",
    row_generation=ForeignTableRows("workspaces", "id", "workspace_id", CountRange(10, 20)),
    concurrent_generation=True,
    primary_keys=["name", "workspace_id"],
    columns={
        **_audit_columns(),
        "name": generate_with_context(
            "Generate a unique project name based on the workspace it exists in. "
            "Do not repeat any existing project names within the same workspace. "
            "Keep under 255 characters.",
            include_table=True,
            foreign_row_context=ForeignRowContext("workspace_id", "workspaces", "id"),
        ),
        "description": generate_with_context(
            "Come up with a description for the project.", include_row=True
        ),
        "description_text": constant(None),
        "description_html": constant(None),
        "network": constant(0),
        "identifier": fake("pystr", min_chars=12, max_chars=12),
        "created_by_id": _random_user(),
        "default_assignee_id": _random_user(),
        "project_lead_id": _random_user(),
        "updated_by_id": _random_user(),
        "emoji": fake("emoji"),
        "cycle_view": constant(True),
        "module_view": constant(True),
        "cover_image": constant(None),
        "issue_views_view": constant(True),
        "page_view": constant(True),
        "estimate_id": random_foreign_value("estimates", "id"),
        "icon_prop": constant(None),
        "intake_view": constant(False),
        "archive_in": constant(0),
        "close_in": constant(0),
        "default_state_id": constant(None),
        "logo_props": constant(EMPTY_JSON),
        "archived_at": constant(None),
        "is_time_tracking_enabled": constant(False),
        "is_issue_type_enabled": constant(False),
        "deleted_at": constant(None),
        "guest_view_all_features": constant(False),
        "timezone": fake("timezone"),
        "cover_image_asset_id": random_foreign_value("file_assets", "id"),
    },
)

STATES_CONFIG = SeedConfig(
    table_name="states",
    row_generation=ForeignTableRows("projects", "id", "project_id", 3),
    concurrent_generation=False,
    primary_keys=["name", "project_id"],
    columns={
        **_audit_columns(),
        "name": ChoiceWithoutRepetition(STATES, scope_column="project_id"),
        "description": constant(""),
        "color": fake("hex_color"),
        "slug": constant(""),
        "created_by_id": _random_user(),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "sequence": integer(0, 100),
        "group": choice(["started", "completed", "backlog", "cancelled", "unstarted"]),
        "default": constant(True),
        "external_id": constant(None),
        "external_source": constant(None),
        "is_triage": constant(False),
        "deleted_at": constant(None),
    },
)

LABELS_CONFIG = SeedConfig(
    table_name="labels",
    row_generation=ForeignTableRows("projects", "id", "project_id", 3),
    concurrent_generation=True,
    columns={
        **_audit_columns(),
        "name": ChoiceWithoutRepetition(LABELS, scope_column="project_id"),
        "description": generate_with_context(
            "Generate a short description for this label", include_row=True
        ),
        "created_by_id": _random_user(),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "parent_id": constant(None),
        "color": fake("hex_color"),
        "sort_order": decimal(0, 1000),
        "external_id": constant(None),
        "external_source": constant(None),
        "deleted_at": constant(None),
    },
)

ISSUES = SeedConfig(
    table_name="issues",
    row_generation=ForeignTableRows("states", "id", "state_id", CountRange(5, 10)),
    concurrent_generation=True,
    columns={
        "created_at": timestamp_between(FIVE_YEARS_AGO),
        "updated_at": timestamp_after("created_at"),
        "project_id": parent_row("project_id"),
        "id": identifier(),
        "name": generate_with_context(
            "Generate an issue name based on the project it belongs to. Do not repeat "
            "existing issues. Keep under 255 characters. Do not wrap the name in quotes.",
            foreign_row_context=_by_project(),
        ),
        "description": constant(EMPTY_JSON),
        "priority": choice(["low", "medium", "high", "urgent"]),
        "start_date": fake("date_time_between", start_date="-30d", end_date="now"),
        "target_date": fake("date_time_between", start_date="now", end_date="+30d"),
        "sequence_id": integer(1, 1000),
        "created_by_id": _random_user(),
        "parent_id": random_parent_reference("issues", 0.5, scope_column="project_id"),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "description_html": generate_with_context(
            "Generate a detailed description for the issue. ", include_row=True
        ),
        "description_stripped": generate_with_context(
            "Give the description_html but stripped", include_row=True
        ),
        "completed_at": constant(None),
        "sort_order": integer(0, 100),
        "point": integer(1, 10),
        "archived_at": constant(None),
        "is_draft": constant(False),
        "external_id": identifier(),
        "external_source": fake("domain_name"),
        "description_binary": constant(None),
        "estimate_point_id": random_foreign_value("estimate_points", "id"),
        "type_id": random_foreign_value("issue_types", "id"),
        "deleted_at": constant(None),
    },
)

CYCLES = SeedConfig(
    table_name="cycles",
    row_generation=ForeignTableRows("projects", "id", "project_id", CountRange(1, 5)),
    concurrent_generation=True,
    columns={
        **_audit_columns(),
        "name": generate_with_context(
            "Generate a short cycle name (under 255 characters) based on the project it "
            "belongs to. Do not repeat names. A Cycle is a set period of time where your "
            "team focuses on completing specific tasks or issues, similar to sprints in Agile.",
            include_table=True,
            foreign_row_context=_by_project(),
        ),
        "description": generate_with_context(
            "Generate a detailed description for the cycle based on its name.",
            include_row=True,
        ),
        "start_date": fake("date_time_between", start_date="now", end_date="+7d"),
        "end_date": fake("future_datetime", end_date="+1y"),
        "created_by_id": _random_user(),
        "owned_by_id": _random_user(),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "view_props": constant(json.dumps(VIEW_PROPS)),
        "sort_order": integer(0, 100),
        "external_id": identifier(),
        "external_source": fake("domain_name"),
        "progress_snapshot": constant(EMPTY_JSON),
        "archived_at": constant(None),
        "logo_props": constant(EMPTY_JSON),
        "deleted_at": constant(None),
        "timezone": fake("timezone"),
        "version": integer(1, 10),
    },
)

MODULES = SeedConfig(
    table_name="modules",
    row_generation=ForeignTableRows("projects", "id", "project_id", CountRange(1, 3)),
    concurrent_generation=False,
    primary_keys=["name", "project_id"],
    columns={
        **_audit_columns(),
        "name": generate_with_context(
            "Generate exactly one short, unique module name (under 255 characters) "
            "based on the project it belongs to",
            include_table=True,
            foreign_row_context=_by_project(),
        ),
        "description": generate_with_context(
            "Generate a brief description for the module based on its name",
            include_row=True,
        ),
        "description_text": constant(None),
        "description_html": constant(None),
        "start_date": fake("date_between", start_date="today", end_date="+7d"),
        "target_date": fake("future_date", end_date="+1y"),
        "status": choice(["backlog", "planned", "in_progress", "paused", "completed", "cancelled"]),
        "created_by_id": _random_user(),
        "lead_id": _random_user(),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "view_props": constant(EMPTY_JSON),
        "sort_order": integer(0, 100),
        "external_id": constant(None),
        "external_source": constant(None),
        "archived_at": constant(None),
        "logo_props": constant(EMPTY_JSON),
        "deleted_at": constant(None),
    },
)

PAGES = SeedConfig(
    table_name="pages",
    row_generation=ForeignTableRows("workspaces", "id", "workspace_id", CountRange(5, 10)),
    concurrent_generation=False,
    primary_keys=["id"],
    columns={
        **_audit_columns(),
        "name": generate_with_context(
            "Generate a page name based on the workspace it exists in. ",
            foreign_row_context=ForeignRowContext("workspace_id", "workspaces", "id"),
        ),
        "description_stripped": generate_with_context(
            "Come up with a description for the page.", include_row=True
        ),
        "description_html": generate_with_context(
            'Format the description_stripped text as: <p class="editor-paragraph-block">'
            '{description_stripped}</p><p class="editor-paragraph-block"></p>'
            '<p class="editor-paragraph-block"></p>',
            include_row=True,
        ),
        "description": generate_with_context(
            'Generate a JSON string with format: {"type": "doc", "content": [{"type": '
            '"paragraph", "attrs": {"textAlign": null}, "content": [{"text": '
            '{description_stripped}, "type": "text"}]}, {"type": "paragraph", "attrs": '
            '{"textAlign": null}}, {"type": "paragraph", "attrs": {"textAlign": null}}]}',
            include_row=True,
        ),
        "access": constant(0),
        "created_by_id": _random_user(),
        "owned_by_id": _random_user(),
        "updated_by_id": _random_user(),
        "color": constant(""),
        "archived_at": constant(None),
        "is_locked": constant(False),
        "parent_id": constant(None),
        "view_props": constant(EMPTY_JSON),
        "logo_props": constant(EMPTY_JSON),
        "description_binary": constant(None),
        "is_global": constant(False),
        "deleted_at": constant(None),
    },
)

WORKSPACE_MEMBERS = SeedConfig(
    table_name="workspace_members",
    row_generation=ForeignTableRows("users", "id", "created_by_id", 1),
    concurrent_generation=False,
    primary_keys=["workspace_id", "member_id"],
    columns={
        **_audit_columns(),
        "role": constant(20),
        "member_id": same_row("created_by_id"),
        "updated_by_id": same_row("created_by_id"),
        "workspace_id": random_foreign_value("workspaces", "id"),
        "company_role": constant(None),
        "view_props": constant(json.dumps(VIEW_PROPS)),
        "default_props": constant(json.dumps(DEFAULT_PROPS)),
        "issue_props": constant(json.dumps(ISSUE_PROPS)),
        "is_active": constant(True),
        "deleted_at": constant(None),
    },
)

PROJECT_MEMBERS = SeedConfig(
    table_name="project_members",
    row_generation=ForeignTableRows("projects", "id", "project_id", CountRange(1, 2)),
    concurrent_generation=False,
    primary_keys=["project_id", "member_id"],
    columns={
        **_audit_columns(),
        "comment": constant(None),
        "role": constant(20),
        "created_by_id": _random_user(),
        "member_id": same_row("created_by_id"),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "view_props": constant(json.dumps(VIEW_PROPS)),
        "default_props": constant(json.dumps(DEFAULT_PROPS)),
        "sort_order": constant(0),
        "preferences": constant(EMPTY_JSON),
        "is_active": constant(True),
        "deleted_at": constant(None),
    },
)

ISSUE_ASSIGNEES = SeedConfig(
    table_name="issue_assignees",
    row_generation=ForeignTableRows("issues", "id", "issue_id", 1),
    concurrent_generation=False,
    primary_keys=["issue_id", "assignee_id"],
    columns={
        **_audit_columns(),
        "assignee_id": _random_user(),
        "created_by_id": _random_user(),
        "project_id": parent_row("project_id"),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "deleted_at": constant(None),
    },
)

MODULE_MEMBERS = SeedConfig(
    table_name="module_members",
    row_generation=ForeignTableRows("modules", "id", "module_id", CountRange(1, 2)),
    concurrent_generation=False,
    primary_keys=["member_id", "module_id"],
    columns={
        **_audit_columns(),
        "created_by_id": _random_user(),
        "member_id": _random_user(),
        "project_id": parent_row("project_id"),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "deleted_at": constant(None),
    },
)

PROJECT_PAGES = SeedConfig(
    table_name="project_pages",
    row_generation=ForeignTableRows("projects", "id", "project_id", CountRange(1, 5)),
    concurrent_generation=False,
    primary_keys=["project_id", "page_id"],
    columns={
        **_audit_columns(),
        "workspace_id": parent_row("workspace_id"),
        "created_by_id": _random_user(),
        "page_id": random_scoped_foreign_value("pages", "id", "workspace_id"),
        "updated_by_id": _random_user(),
        "deleted_at": constant(None),
    },
)

CYCLE_ISSUES = SeedConfig(
    table_name="cycle_issues",
    row_generation=ForeignTableRows("cycles", "id", "cycle_id", CountRange(10, 15)),
    concurrent_generation=True,
    primary_keys=["cycle_id", "issue_id"],
    columns={
        **_audit_columns(),
        "created_by_id": _random_user(),
        "project_id": parent_row("project_id"),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "issue_id": random_scoped_foreign_value("issues", "id", "project_id"),
        "deleted_at": constant(None),
    },
)

WORKSPACE_MEMBER_INVITES = SeedConfig(
    table_name="workspace_member_invites",
    row_generation=ForeignTableRows("workspaces", "id", "workspace_id", 1),
    concurrent_generation=False,
    primary_keys=["id"],
    columns={
        **_audit_columns(),
        "email": fake("email"),
        "accepted": constant(True),
        "token": fake("pystr", min_chars=32, max_chars=32),
        "message": constant(""),
        "responded_at": constant(None),
        "role": integer(0, 100),
        "created_by_id": _random_user(),
        "updated_by_id": same_row("created_by_id"),
        "deleted_at": constant(None),
    },
)

ISSUE_VIEWS = SeedConfig(
    table_name="issue_views",
    row_generation=ForeignTableRows("projects", "id", "project_id", CountRange(1, 2)),
    concurrent_generation=False,
    columns={
        **_audit_columns(),
        "name": generate_with_context(
            "Generate a name for the issue view, maximum 255 characters. Views are saved "
            "collections of filters that you can apply to work items. The name should be "
            "a short, descriptive title that helps you identify the purpose of the view.",
            include_row=True,
        ),
        "description": generate_with_context(
            "Generate a description for the issue view.", include_row=True
        ),
        "query": constant(EMPTY_JSON),
        "access": integer(0, 100),
        "filters": constant(EMPTY_JSON),
        "created_by_id": _random_user(),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "display_filters": constant(json.dumps(DISPLAY_FILTERS)),
        "display_properties": constant(json.dumps(DISPLAY_PROPERTIES)),
        "sort_order": integer(0, 100),
        "logo_props": constant(EMPTY_JSON),
        "is_locked": constant(False),
        "owned_by_id": _random_user(),
        "deleted_at": constant(None),
    },
)

ISSUE_ACTIVITIES = SeedConfig(
    table_name="issue_activities",
    row_generation=ForeignTableRows("issues", "id", "issue_id", CountRange(0, 1)),
    concurrent_generation=False,
    columns={
        **_audit_columns(),
        "verb": constant("created"),
        "field": constant("assignees"),
        "old_value": constant(None),
        "new_value": constant(None),
        "comment": generate_with_context(
            "Generate a comment for the issue activity.",
            include_table=True,
            foreign_row_context=ForeignRowContext("issue_id", "issues", "id"),
        ),
        "attachments": constant(EMPTY_JSON),
        "created_by_id": _random_user(),
        "issue_comment_id": constant(None),
        "project_id": parent_row("project_id"),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "actor_id": _random_user(),
        "new_identifier": constant(None),
        "old_identifier": constant(None),
        "epoch": integer(1, 1000000),
        "deleted_at": constant(None),
    },
)

ISSUE_SUBSCRIBERS = SeedConfig(
    table_name="issue_subscribers",
    row_generation=ForeignTableRows("issues", "id", "issue_id", CountRange(1, 2)),
    concurrent_generation=False,
    primary_keys=["issue_id", "subscriber_id"],
    columns={
        **_audit_columns(),
        "created_by_id": _random_user(),
        "project_id": parent_row("project_id"),
        "subscriber_id": _random_user(),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "deleted_at": constant(None),
    },
)

MODULE_ISSUES = SeedConfig(
    table_name="module_issues",
    row_generation=ForeignTableRows("modules", "id", "module_id", CountRange(10, 15)),
    concurrent_generation=False,
    primary_keys=["module_id", "issue_id"],
    columns={
        **_audit_columns(),
        "created_by_id": _random_user(),
        "project_id": parent_row("project_id"),
        "issue_id": random_scoped_foreign_value("issues", "id", "project_id"),
        "updated_by_id": _random_user(),
        "workspace_id": parent_row("workspace_id"),
        "deleted_at": constant(None),
    },
)

# Imported from existing snapshots, never generated
PASSIVE_TABLES = [
    "users",
    "instances",
    "sessions",
    "profiles",
    "instance_admins",
    "instance_configurations",
    "user_notification_preferences",
]

SEED_CONFIGS: List[SeedConfig] = [
    *(SeedConfig.passive(name) for name in PASSIVE_TABLES),
    WORKSPACES,
    PROJECTS,
    STATES_CONFIG,
    LABELS_CONFIG,
    ISSUES,
    CYCLES,
    MODULES,
    PAGES,
    WORKSPACE_MEMBERS,
    PROJECT_MEMBERS,
    ISSUE_ASSIGNEES,
    MODULE_MEMBERS,
    PROJECT_PAGES,
    CYCLE_ISSUES,
    WORKSPACE_MEMBER_INVITES,
    ISSUE_VIEWS,
    ISSUE_ACTIVITIES,
    ISSUE_SUBSCRIBERS,
    MODULE_ISSUES,
]
