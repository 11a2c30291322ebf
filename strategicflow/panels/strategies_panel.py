"""
Framework order: reorder strategies (priorities) and delete them.

The working order is a local copy of the strategy list sorted by
displayOrder. Moves only touch the copy; save_order() posts the whole list
with dense ranks 0..n-1.
"""

from __future__ import annotations

import logging

from strategicflow.core.exceptions import NotFoundError, ValidationError
from strategicflow.panels.base import ConfirmDialog, Panel, PanelContext
from strategicflow.services.mutation import MutationResult, validation_failure
from strategicflow.services.query_cache import exact, tagged

logger = logging.getLogger(__name__)

STRATEGIES_KEY = ("strategies",)


def dense_ranks(strategies: list[dict]) -> list[dict]:
    """Rank payload for POST /api/strategies/reorder."""
    return [{"id": s["id"], "displayOrder": index} for index, s in enumerate(strategies)]


class FrameworkOrderPanel(Panel):
    def __init__(self, ctx: PanelContext):
        super().__init__(ctx)
        self._order: list[dict] | None = None
        self.pending_delete: ConfirmDialog | None = None

        self._reorder = self.mutation(
            lambda orders: self.gateway.send_json(
                "POST", "/api/strategies/reorder", {"strategyOrders": orders}
            ),
            invalidates=[exact(*STRATEGIES_KEY)],
            success="Framework order updated successfully",
            failure="Failed to update framework order",
            on_success=lambda _v, _d: self.reset(),
        )
        self._delete = self.mutation(
            lambda strategy_id: self.gateway.send_json("DELETE", f"/api/strategies/{strategy_id}"),
            invalidates=[
                exact(*STRATEGIES_KEY), tagged("workstreams"), tagged("phases"), tagged("users"),
            ],
            success="Priority deleted successfully",
            failure="Failed to delete priority",
            on_success=lambda _v, _d: self.reset(),
        )

    def strategies(self) -> list[dict]:
        rows = self.rows(STRATEGIES_KEY, "/api/strategies")
        rows.sort(key=lambda s: (s.get("displayOrder") is None, s.get("displayOrder") or 0))
        return rows

    @property
    def order(self) -> list[dict]:
        """The working order, seeded from the server list on first use."""
        if self._order is None:
            self._order = self.strategies()
        return self._order

    def reset(self) -> None:
        """Drop local moves; the next read reseeds from the server."""
        self._order = None

    def move(self, from_index: int, to_index: int) -> list[dict]:
        order = list(self.order)
        if not order:
            return order
        if not 0 <= from_index < len(order):
            raise NotFoundError("Framework position", from_index)
        to_index = max(0, min(len(order) - 1, to_index))
        item = order.pop(from_index)
        order.insert(to_index, item)
        self._order = order
        return order

    def move_up(self, index: int) -> list[dict]:
        return self.move(index, index - 1)

    def move_down(self, index: int) -> list[dict]:
        return self.move(index, index + 1)

    def set_order(self, strategy_ids: list) -> list[dict]:
        """Replace the working order with an explicit id sequence."""
        by_id = {str(s["id"]): s for s in self.strategies()}
        if sorted(map(str, strategy_ids)) != sorted(by_id):
            raise ValidationError("Order must list every strategy exactly once")
        self._order = [by_id[str(sid)] for sid in strategy_ids]
        return self._order

    def save_order(self) -> MutationResult:
        self.capabilities.require("can_manage_users", "reorder strategies")
        if not self.order:
            return validation_failure(self.toasts, ValidationError("No strategic frameworks found."))
        return self._reorder.mutate(dense_ranks(self.order))

    def request_delete(self, strategy_id) -> ConfirmDialog:
        self.capabilities.require("can_manage_users", "delete strategies")
        strategy = next((s for s in self.strategies() if str(s["id"]) == str(strategy_id)), None)
        if strategy is None:
            raise NotFoundError("Strategy", strategy_id)
        self.pending_delete = ConfirmDialog(
            action="delete-strategy",
            target_id=strategy_id,
            title="Delete Priority",
            description=(
                f'Are you sure you want to delete "{strategy.get("title")}"? This action '
                "cannot be undone and will affect all associated projects."
            ),
        )
        return self.pending_delete

    def cancel_delete(self) -> None:
        self.pending_delete = None

    def confirm_delete(self, strategy_id) -> MutationResult:
        dialog = self.pending_delete
        if dialog is None or str(dialog.target_id) != str(strategy_id):
            raise NotFoundError("Strategy delete confirmation", strategy_id)
        self.pending_delete = None
        return self._delete.mutate(strategy_id)

    def describe(self) -> dict:
        return {
            "order": [
                {
                    "id": s["id"],
                    "title": s.get("title"),
                    "colorCode": s.get("colorCode"),
                    "status": s.get("status"),
                    "position": i + 1,
                }
                for i, s in enumerate(self.order)
            ],
            "pendingDelete": self.pending_delete.to_dict() if self.pending_delete else None,
        }
