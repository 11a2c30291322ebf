"""
Communication templates: PowerPoint/Word links per tactic milestone.

Edits are buffered per template until saved; a successful save clears
every buffered edit. Only users who can edit tactics may save.
"""

from __future__ import annotations

import logging

from strategicflow.core.exceptions import NotFoundError, ValidationError
from strategicflow.panels.base import Panel, PanelContext, blank
from strategicflow.services.mutation import MutationResult
from strategicflow.services.query_cache import exact

logger = logging.getLogger(__name__)

URL_FIELDS = ("pptUrl", "wordUrl")


def templates_key(tactic_id) -> tuple:
    return ("communication-templates", tactic_id)


def is_archived(tactic: dict) -> bool:
    flag = tactic.get("isArchived")
    if isinstance(flag, str):
        return flag.lower() == "true"
    return bool(flag)


class CommunicationTemplatesPanel(Panel):
    def __init__(self, ctx: PanelContext):
        super().__init__(ctx)
        self.tactic_id = None
        self.edits: dict[str, dict] = {}
        self._save = self.mutation(
            lambda v: self.gateway.send_json("PATCH", f"/api/communication-templates/{v['id']}", v["body"]),
            invalidates=lambda _v: [exact(*templates_key(self.tactic_id))],
            success="Communication template updated successfully",
            failure="Failed to update communication template",
            on_success=lambda _v, _d: self.edits.clear(),
        )

    def tactics(self, search: str = "", strategy_id: str | None = None) -> list[dict]:
        strategies = {s["id"]: s for s in self.rows(("strategies",), "/api/strategies")}
        term = (search or "").lower()
        result = []
        for tactic in self.rows(("tactics",), "/api/tactics"):
            if is_archived(tactic):
                continue
            if term and term not in (tactic.get("title") or "").lower():
                continue
            if strategy_id and strategy_id != "all" and tactic.get("strategyId") != strategy_id:
                continue
            result.append({**tactic, "strategy": strategies.get(tactic.get("strategyId"))})
        return result

    def select_tactic(self, tactic_id) -> None:
        self.tactic_id = None if blank(tactic_id) else tactic_id
        self.edits.clear()

    def templates(self) -> list[dict]:
        rows = self.rows(
            templates_key(self.tactic_id),
            f"/api/communication-templates/{self.tactic_id}",
            enabled=self.tactic_id is not None,
        )
        rows.sort(key=lambda t: t.get("milestoneNumber") or 0)
        return [{**t, **self.edits.get(str(t["id"]), {})} for t in rows]

    def edit(self, template_id, field: str, value) -> dict:
        if field not in URL_FIELDS:
            raise ValidationError(f"Unknown template field: {field}")
        template = next((t for t in self.templates() if str(t["id"]) == str(template_id)), None)
        if template is None:
            raise NotFoundError("Communication template", template_id)
        buffered = self.edits.setdefault(
            str(template_id), {f: template.get(f) for f in URL_FIELDS}
        )
        buffered[field] = None if blank(value) else str(value).strip()
        return dict(buffered)

    def save(self, template_id) -> MutationResult | None:
        """Save buffered edits for one template; None when nothing was edited."""
        self.capabilities.require("can_edit_tactics", "edit communication templates")
        buffered = self.edits.get(str(template_id))
        if buffered is None:
            return None
        return self._save.mutate({"id": template_id, "body": dict(buffered)})

    def describe(self, search: str = "", strategy_id: str | None = None) -> dict:
        return {
            "tacticId": self.tactic_id,
            "tactics": self.tactics(search, strategy_id),
            "templates": self.templates(),
            "canEdit": self.capabilities.can_edit_tactics,
        }
