"""
EntitySpec instances for the simple CRUD panels.

    holidays         organization-wide holiday calendar
    team-tags        tags users are grouped under (capacity reporting)
    executive-goals  goal tags attachable to strategies
    template-types   custom template categories (create/delete only)
    pto              one user's time-off entries
"""

from strategicflow.core.exceptions import NotFoundError
from strategicflow.panels.base import PanelContext
from strategicflow.panels.crud_panel import CrudPanel, EntitySpec, date_order, required, unique
from strategicflow.services.query_cache import tagged
from strategicflow.services.template_catalog import DEFAULT_CATEGORIES

DEFAULT_TAG_COLOR = "#3B82F6"

# Every user's team-tag assignment list is tagged with this.
TEAM_TAG_ASSIGNMENTS = "team-tags"


def holidays_spec() -> EntitySpec:
    return EntitySpec(
        name="holidays",
        label="Holiday",
        list_path="/api/holidays",
        item_path="/api/holidays/{id}",
        cache_key=("holidays",),
        fields=("date", "name", "description"),
        messages={
            "created": "Holiday added successfully",
            "updated": "Holiday updated successfully",
            "deleted": "Holiday deleted successfully",
            "create_failed": "Failed to add holiday",
            "update_failed": "Failed to update holiday",
            "delete_failed": "Failed to delete holiday",
        },
        validators=[required("date", "name", message="Please enter a date and name for the holiday")],
        sort_key=lambda row: str(row.get("date") or ""),
        delete_prompt=lambda row: f'Are you sure you want to delete "{row.get("name")}"?',
    )


def team_tags_spec() -> EntitySpec:
    return EntitySpec(
        name="team-tags",
        label="Team Tag",
        list_path="/api/team-tags",
        item_path="/api/team-tags/{id}",
        cache_key=("team-tags",),
        fields=("name", "colorHex"),
        defaults={"colorHex": DEFAULT_TAG_COLOR},
        messages={
            "created": "Team Tag created successfully",
            "updated": "Team Tag updated successfully",
            "deleted": "Team Tag deleted successfully",
            "create_failed": "Failed to create Team Tag",
            "update_failed": "Failed to update Team Tag",
            "delete_failed": "Failed to delete Team Tag",
        },
        validators=[
            required("name", message="Team tag name cannot be empty"),
            unique("name", "A Team Tag with this name already exists"),
        ],
        delete_invalidations=(tagged(TEAM_TAG_ASSIGNMENTS),),
        delete_prompt=lambda row: (
            f'Are you sure you want to delete the "#{row.get("name")}" tag? '
            "This will remove it from all projects. This action cannot be undone."
        ),
    )


def executive_goals_spec() -> EntitySpec:
    return EntitySpec(
        name="executive-goals",
        label="Executive Goal",
        list_path="/api/executive-goals",
        item_path="/api/executive-goals/{id}",
        cache_key=("executive-goals",),
        fields=("name", "description"),
        messages={
            "created": "Executive Goal created successfully",
            "updated": "Executive Goal updated successfully",
            "deleted": "Executive Goal deleted successfully",
            "create_failed": "Failed to create Executive Goal",
            "update_failed": "Failed to update Executive Goal",
            "delete_failed": "Failed to delete Executive Goal",
        },
        validators=[
            required("name", message="Please enter a goal tag", edit_message="Goal tag cannot be empty"),
            unique("name", "An Executive Goal with this tag already exists"),
        ],
        delete_prompt=lambda row: (
            f'Are you sure you want to delete the "{row.get("name")}" goal? This action cannot be undone.'
        ),
    )


def template_types_spec() -> EntitySpec:
    return EntitySpec(
        name="template-types",
        label="Template Category",
        list_path="/api/template-types",
        item_path="/api/template-types/{id}",
        cache_key=("template-types",),
        fields=("name",),
        editable=False,
        messages={
            "created": "Template category created successfully",
            "deleted": "Template category deleted successfully",
            "create_failed": "Failed to create template category",
            "delete_failed": "Failed to delete template category",
        },
        validators=[
            required("name", message="Please enter a category name"),
            unique("name", "A category with this name already exists", reserved=DEFAULT_CATEGORIES),
        ],
        delete_prompt=lambda row: (
            f'Are you sure you want to delete the "{row.get("name")}" category? This action cannot be undone.'
        ),
    )


def pto_spec(user_id) -> EntitySpec:
    """Time-off entries of *user_id*; the list stays disabled until it is known."""
    return EntitySpec(
        name="pto",
        label="Time Off",
        list_path=f"/api/users/{user_id}/pto",
        item_path="/api/pto/{id}",
        cache_key=("users", user_id, "pto"),
        fields=("startDate", "endDate", "notes"),
        messages={
            "created": "Time off added successfully",
            "updated": "Time off updated successfully",
            "deleted": "Time off deleted successfully",
            "create_failed": "Failed to add time off",
            "update_failed": "Failed to update time off",
            "delete_failed": "Failed to delete time off",
        },
        validators=[
            required("startDate", "endDate", message="Please select start and end dates"),
            date_order("startDate", "endDate", "Start date must be before end date"),
        ],
        sort_key=lambda row: str(row.get("startDate") or ""),
        delete_prompt=lambda row: "Are you sure you want to delete this time off entry?",
        enabled=bool(user_id),
        capability=None,
    )


ENTITY_SPECS = {
    "holidays": holidays_spec,
    "team-tags": team_tags_spec,
    "executive-goals": executive_goals_spec,
    "template-types": template_types_spec,
}


def build_panel(ctx: PanelContext, entity: str) -> CrudPanel:
    try:
        factory = ENTITY_SPECS[entity]
    except KeyError:
        raise NotFoundError("Settings entity", entity) from None
    return CrudPanel(ctx, factory())


def build_pto_panel(ctx: PanelContext, user_id) -> CrudPanel:
    return CrudPanel(ctx, pto_spec(user_id))
