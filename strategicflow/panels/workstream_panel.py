"""
Workstreams & phases of one strategy.

Both lists are keyed by the selected strategy and stay disabled until one
is selected. Rows edit independently (one draft per row id).

Every successful workstream/phase write dirties the whole workstream
family plus the project, action and strategy lists, since the server keeps
rollups of those that depend on workstreams.
"""

from __future__ import annotations

import logging

from strategicflow.core.exceptions import NotFoundError, ValidationError
from strategicflow.panels.base import ConfirmDialog, Panel, PanelContext, blank
from strategicflow.panels.crud_panel import CrudPanel, EntitySpec, date_order, required
from strategicflow.services.mutation import MutationResult, validation_failure
from strategicflow.services.query_cache import tagged

logger = logging.getLogger(__name__)

WORKSTREAM_FAMILY = (
    tagged("workstreams"),
    tagged("phases"),
    tagged("workstream-tasks"),
    tagged("workstream-calculations"),
    tagged("projects"),
    tagged("actions"),
    tagged("strategies"),
)

SEED_PROMPT = (
    "This will create default workstreams and phases for the selected strategy. "
    "Existing data will not be removed."
)


def _whole_number(value, label: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a whole number") from None


def _workstream_body(strategy_id):
    def prepare(body: dict) -> dict:
        if body.get("sortOrder") is not None:
            body["sortOrder"] = _whole_number(body["sortOrder"], "Sort order")
        if strategy_id is not None:
            body.setdefault("strategyId", strategy_id)
        return body
    return prepare


def _phase_body(strategy_id):
    def prepare(body: dict) -> dict:
        body["sequence"] = _whole_number(body.get("sequence"), "Sequence")
        if strategy_id is not None:
            body.setdefault("strategyId", strategy_id)
        return body
    return prepare


def workstreams_spec(strategy_id) -> EntitySpec:
    return EntitySpec(
        name="workstreams",
        label="Workstream",
        list_path="/api/workstreams",
        list_params={"strategyId": strategy_id},
        item_path="/api/workstreams/{id}",
        cache_key=("workstreams", strategy_id),
        fields=("name", "lead", "sortOrder"),
        messages={
            "created": "Workstream created",
            "updated": "Workstream updated",
            "deleted": "Workstream deleted",
            "create_failed": "Failed to create workstream",
            "update_failed": "Failed to update workstream",
            "delete_failed": "Failed to delete workstream",
        },
        validators=[required("name", message="Please enter a workstream name")],
        prepare=_workstream_body(strategy_id),
        sort_key=lambda row: (row.get("sortOrder") is None, row.get("sortOrder") or 0),
        extra_invalidations=WORKSTREAM_FAMILY,
        enabled=bool(strategy_id),
    )


def phases_spec(strategy_id) -> EntitySpec:
    return EntitySpec(
        name="phases",
        label="Phase",
        list_path="/api/phases",
        list_params={"strategyId": strategy_id},
        item_path="/api/phases/{id}",
        cache_key=("phases", strategy_id),
        fields=("name", "sequence", "plannedStart", "plannedEnd"),
        messages={
            "created": "Phase created",
            "updated": "Phase updated",
            "deleted": "Phase deleted",
            "create_failed": "Failed to create phase",
            "update_failed": "Failed to update phase",
            "delete_failed": "Failed to delete phase",
        },
        validators=[
            required("name", "sequence", message="Please enter a phase name and sequence"),
            date_order("plannedStart", "plannedEnd", "Planned start must be before planned end"),
        ],
        prepare=_phase_body(strategy_id),
        sort_key=lambda row: (row.get("sequence") is None, row.get("sequence") or 0),
        extra_invalidations=WORKSTREAM_FAMILY,
        enabled=bool(strategy_id),
    )


class WorkstreamPanel(Panel):
    def __init__(self, ctx: PanelContext):
        super().__init__(ctx)
        self.strategy_id = None
        self.workstreams = CrudPanel(ctx, workstreams_spec(None))
        self.phases = CrudPanel(ctx, phases_spec(None))
        self.pending_seed: ConfirmDialog | None = None

        self._seed = self.mutation(
            lambda strategy_id: self.gateway.send_json(
                "POST", "/api/workstreams/seed-program", {"strategyId": strategy_id}
            ),
            invalidates=WORKSTREAM_FAMILY,
            success="ERP program defaults have been seeded",
            failure="Failed to seed program",
        )

    def strategies(self) -> list[dict]:
        rows = self.rows(("strategies",), "/api/strategies")
        rows.sort(key=lambda s: (s.get("displayOrder") is None, s.get("displayOrder") or 0))
        return rows

    def select_strategy(self, strategy_id) -> None:
        """Scope both lists to *strategy_id*; drafts of the old scope are dropped."""
        if blank(strategy_id):
            strategy_id = None
        elif not any(str(s["id"]) == str(strategy_id) for s in self.strategies()):
            raise NotFoundError("Strategy", strategy_id)
        self.strategy_id = strategy_id
        self.workstreams = CrudPanel(self.ctx, workstreams_spec(strategy_id))
        self.phases = CrudPanel(self.ctx, phases_spec(strategy_id))
        self.pending_seed = None

    def sub_panel(self, kind: str) -> CrudPanel:
        if kind == "workstreams":
            return self.workstreams
        if kind == "phases":
            return self.phases
        raise NotFoundError("Workstream list", kind)

    def _require_strategy(self) -> None:
        if self.strategy_id is None:
            raise ValidationError("Select a strategy first")

    def create(self, kind: str, values: dict) -> MutationResult:
        self.capabilities.require("can_manage_users", f"create {kind}")
        try:
            self._require_strategy()
        except ValidationError as exc:
            return validation_failure(self.toasts, exc)
        return self.sub_panel(kind).create(values)

    # ── Seeding ──────────────────────────────────────────────────────────

    def request_seed(self) -> ConfirmDialog:
        self.capabilities.require("can_manage_users", "seed program defaults")
        self._require_strategy()
        self.pending_seed = ConfirmDialog(
            action="seed-program",
            target_id=self.strategy_id,
            title="Seed ERP Program Defaults",
            description=SEED_PROMPT,
            confirm_label="Seed Defaults",
        )
        return self.pending_seed

    def cancel_seed(self) -> None:
        self.pending_seed = None

    def confirm_seed(self) -> MutationResult:
        dialog = self.pending_seed
        if dialog is None or dialog.target_id != self.strategy_id:
            raise NotFoundError("Seed confirmation", self.strategy_id)
        self.pending_seed = None
        return self._seed.mutate(self.strategy_id)

    def describe(self) -> dict:
        return {
            "strategyId": self.strategy_id,
            "strategies": [{"id": s["id"], "title": s.get("title")} for s in self.strategies()],
            "workstreams": self.workstreams.describe(),
            "phases": self.phases.describe(),
            "pendingSeed": self.pending_seed.to_dict() if self.pending_seed else None,
        }
