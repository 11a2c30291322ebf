"""Shared plumbing for settings panels."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from strategicflow.integrations.api_gateway import ApiGateway
from strategicflow.services.capabilities import Capabilities
from strategicflow.services.mutation import Mutation
from strategicflow.services.query_cache import QueryCache, QueryResult
from strategicflow.services.toast import ToastLog


@dataclass
class PanelContext:
    """Everything a panel needs, injected at construction."""

    gateway: ApiGateway
    cache: QueryCache
    toasts: ToastLog
    capabilities: Capabilities = field(default_factory=Capabilities)


@dataclass(frozen=True)
class ConfirmDialog:
    """A pending destructive action waiting for explicit confirmation."""

    action: str
    target_id: Any
    title: str
    description: str
    confirm_label: str = "Delete"

    def to_dict(self) -> dict:
        d = asdict(self)
        d["targetId"] = d.pop("target_id")
        d["confirmLabel"] = d.pop("confirm_label")
        return d


class Panel:
    """Base class: convenience wrappers over the injected context."""

    def __init__(self, ctx: PanelContext):
        self.ctx = ctx

    @property
    def gateway(self) -> ApiGateway:
        return self.ctx.gateway

    @property
    def cache(self) -> QueryCache:
        return self.ctx.cache

    @property
    def toasts(self) -> ToastLog:
        return self.ctx.toasts

    @property
    def capabilities(self) -> Capabilities:
        return self.ctx.capabilities

    def query(self, key, path: str, *, params: dict | None = None,
              enabled: bool = True, tags=()) -> QueryResult:
        return self.cache.read(
            key,
            lambda: self.gateway.get_json(path, params=params),
            enabled=enabled,
            tags=tags,
        )

    def rows(self, key, path: str, **kwargs) -> list[dict]:
        """Read a list query; failures and disabled queries yield []."""
        result = self.query(key, path, **kwargs)
        return list(result.data or [])

    def mutation(self, fn, **kwargs) -> Mutation:
        return Mutation(fn, cache=self.cache, toasts=self.toasts, **kwargs)


def blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def clean(value):
    """Strip strings; empty strings become None."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value
