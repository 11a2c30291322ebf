"""
Generic list / inline-create / inline-edit / confirm-delete panel.

Holidays, team tags, executive goals, template categories and PTO entries
all have the same shape. An EntitySpec describes one of them: its API
paths, cache key, form fields, toast texts and validation rules. CrudPanel
runs the shared flow against it.

Validation rules are plain callables taking a FormCheck and raising
ValidationError; the factories below build the common ones.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable

from strategicflow.core.exceptions import NotFoundError, ValidationError
from strategicflow.panels.base import ConfirmDialog, Panel, PanelContext, blank, clean
from strategicflow.services.mutation import MutationResult, validation_failure
from strategicflow.services.query_cache import Invalidation, exact

logger = logging.getLogger(__name__)


# ── Validation ───────────────────────────────────────────────────────────


class FormCheck:
    """What a validator sees: the cleaned values, current rows and mode.

    Rows are loaded on first use so rules that only look at the values
    never touch the list query.
    """

    def __init__(self, values: dict, load_rows: Callable[[], list], editing_id: Any = None):
        self.values = values
        self.editing_id = editing_id
        self._load_rows = load_rows
        self._rows: list[dict] | None = None

    @property
    def rows(self) -> list[dict]:
        if self._rows is None:
            self._rows = self._load_rows()
        return self._rows

    @property
    def is_edit(self) -> bool:
        return self.editing_id is not None

    def others(self) -> list[dict]:
        if self.editing_id is None:
            return self.rows
        return [r for r in self.rows if str(r.get("id")) != str(self.editing_id)]


Validator = Callable[[FormCheck], None]


def required(*fields: str, message: str, edit_message: str | None = None) -> Validator:
    def check(form: FormCheck) -> None:
        if any(blank(form.values.get(f)) for f in fields):
            raise ValidationError(
                edit_message if form.is_edit and edit_message else message,
                details={"fields": list(fields)},
            )
    return check


def unique(field_name: str, message: str, reserved: tuple = ()) -> Validator:
    """Case-insensitive uniqueness against the other rows and *reserved* names."""
    def check(form: FormCheck) -> None:
        value = form.values.get(field_name)
        if blank(value):
            return
        taken = {str(r.get(field_name) or "").strip().lower() for r in form.others()}
        taken.update(name.lower() for name in reserved)
        if value.strip().lower() in taken:
            raise ValidationError(message, details={"field": field_name})
    return check


def parse_date(value) -> date | None:
    if blank(value):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Invalid date: {value}") from None


def _present(body: dict) -> dict:
    return {k: v for k, v in body.items() if v is not None}


def date_order(start: str, end: str, message: str) -> Validator:
    """Require values[start] <= values[end] when both are present."""
    def check(form: FormCheck) -> None:
        lo, hi = parse_date(form.values.get(start)), parse_date(form.values.get(end))
        if lo and hi and lo > hi:
            raise ValidationError(message, details={"fields": [start, end]})
    return check


# ── Entity description ───────────────────────────────────────────────────


@dataclass
class EntitySpec:
    """Static description of one CRUD entity.

    Attributes:
        name:          Registry name ("holidays").
        label:         Singular label for dialogs ("Holiday").
        list_path:     GET (and default POST) path.
        item_path:     Format string with {id} for PATCH/DELETE.
        cache_key:     Cache key of the list query.
        fields:        Form fields sent to the API.
        messages:      Toast texts keyed created/updated/deleted and
                       create_failed/update_failed/delete_failed.
        validators:    Rules run before create and save_edit.
        defaults:      Initial form values.
        create_path:   POST path when it differs from list_path.
        editable:      False for create/delete-only entities.
        sort_key:      Optional ordering applied to the listed rows.
        extra_invalidations: Additional targets dirtied by every write.
        delete_invalidations: Additional targets dirtied by deletes only.
        enabled:       False defers the list query (e.g. no user id yet).
        delete_prompt: Builds the confirm-dialog text from the row.
        list_params:   Query-string parameters of the list GET.
        prepare:       Turns a validated body into the request body
                       (type conversion, parent ids).
        capability:    Capabilities predicate every write requires; None
                       for entities each user manages for themself.
    """

    name: str
    label: str
    list_path: str
    item_path: str
    cache_key: tuple
    fields: tuple
    messages: dict
    validators: list = field(default_factory=list)
    defaults: dict = field(default_factory=dict)
    create_path: str | None = None
    editable: bool = True
    sort_key: Callable[[dict], Any] | None = None
    extra_invalidations: tuple = ()
    delete_invalidations: tuple = ()
    enabled: bool = True
    delete_prompt: Callable[[dict], str] | None = None
    list_params: dict | None = None
    prepare: Callable[[dict], dict] | None = None
    capability: str | None = "can_manage_users"

    def path_for(self, item_id) -> str:
        return self.item_path.format(id=item_id)

    def invalidations(self, *, deleting: bool = False) -> list[Invalidation]:
        targets = [exact(*self.cache_key), *self.extra_invalidations]
        if deleting:
            targets.extend(self.delete_invalidations)
        return targets


# ── Panel ────────────────────────────────────────────────────────────────


class CrudPanel(Panel):
    """List, create, inline edit and confirm-gated delete for one entity.

    Each row edits independently: drafts are keyed by row id and several
    rows may be in edit mode at once.
    """

    def __init__(self, ctx: PanelContext, spec: EntitySpec):
        super().__init__(ctx)
        self.spec = spec
        self.drafts: dict[str, dict] = {}
        self.pending_delete: ConfirmDialog | None = None
        self._lock = threading.Lock()

        msgs = spec.messages
        self._create = self.mutation(
            lambda body: self.gateway.send_json("POST", spec.create_path or spec.list_path, body),
            invalidates=spec.invalidations(),
            success=msgs["created"],
            failure=msgs["create_failed"],
        )
        self._update = self.mutation(
            lambda v: self.gateway.send_json("PATCH", spec.path_for(v["id"]), v["body"]),
            invalidates=spec.invalidations(),
            success=msgs.get("updated"),
            failure=msgs.get("update_failed", msgs["create_failed"]),
            on_success=lambda v, _data: self._drop_draft(v["id"]),
        )
        self._delete = self.mutation(
            lambda item_id: self.gateway.send_json("DELETE", spec.path_for(item_id)),
            invalidates=spec.invalidations(deleting=True),
            success=msgs["deleted"],
            failure=msgs["delete_failed"],
        )

    # ── Read ─────────────────────────────────────────────────────────────

    def list(self) -> list[dict]:
        rows = self.rows(
            self.spec.cache_key,
            self.spec.list_path,
            params=self.spec.list_params,
            enabled=self.spec.enabled,
        )
        if self.spec.sort_key:
            rows.sort(key=self.spec.sort_key)
        return rows

    def get(self, item_id) -> dict:
        for row in self.list():
            if str(row.get("id")) == str(item_id):
                return row
        raise NotFoundError(self.spec.label, item_id)

    @property
    def is_loading(self) -> bool:
        return self.cache.peek(self.spec.cache_key).is_loading

    # ── Form helpers ─────────────────────────────────────────────────────

    def _body(self, values: dict) -> dict:
        merged = {**self.spec.defaults, **values}
        return {f: clean(merged.get(f)) for f in self.spec.fields}

    def _prepare(self, body: dict, *, keep_nulls: bool = False) -> dict:
        """Request body for a write. Edits keep nulls so a cleared field is cleared."""
        if not keep_nulls:
            body = _present(body)
        return self.spec.prepare(body) if self.spec.prepare else body

    def _require(self, action: str) -> None:
        if self.spec.capability:
            self.capabilities.require(self.spec.capability, f"{action} {self.spec.label.lower()}")

    def _validate(self, body: dict, editing_id=None) -> None:
        form = FormCheck(body, self.list, editing_id=editing_id)
        for rule in self.spec.validators:
            rule(form)

    # ── Create ───────────────────────────────────────────────────────────

    def create(self, values: dict) -> MutationResult:
        self._require("create")
        body = self._body(values)
        try:
            self._validate(body)
            payload = self._prepare(body)
        except ValidationError as exc:
            return validation_failure(self.toasts, exc)
        return self._create.mutate(payload)

    # ── Inline edit ──────────────────────────────────────────────────────

    def start_edit(self, item_id) -> dict:
        if not self.spec.editable:
            raise NotFoundError(f"{self.spec.label} edit")
        self._require("edit")
        row = self.get(item_id)
        draft = {f: row.get(f) for f in self.spec.fields}
        with self._lock:
            self.drafts[str(item_id)] = draft
        return dict(draft)

    def update_draft(self, item_id, **changes) -> dict:
        with self._lock:
            draft = self.drafts.get(str(item_id))
            if draft is None:
                raise NotFoundError(f"{self.spec.label} draft", item_id)
            unknown = set(changes) - set(self.spec.fields)
            if unknown:
                raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")
            draft.update(changes)
            return dict(draft)

    def save_edit(self, item_id) -> MutationResult:
        with self._lock:
            draft = self.drafts.get(str(item_id))
        if draft is None:
            raise NotFoundError(f"{self.spec.label} draft", item_id)
        self._require("edit")
        body = self._body(draft)
        try:
            self._validate(body, editing_id=item_id)
            payload = self._prepare(body, keep_nulls=True)
        except ValidationError as exc:
            return validation_failure(self.toasts, exc)
        return self._update.mutate({"id": item_id, "body": payload})

    def cancel_edit(self, item_id) -> None:
        self._drop_draft(item_id)

    def is_editing(self, item_id) -> bool:
        with self._lock:
            return str(item_id) in self.drafts

    def _drop_draft(self, item_id) -> None:
        with self._lock:
            self.drafts.pop(str(item_id), None)

    # ── Delete ───────────────────────────────────────────────────────────

    def request_delete(self, item_id) -> ConfirmDialog:
        self._require("delete")
        row = self.get(item_id)
        if self.spec.delete_prompt:
            prompt = self.spec.delete_prompt(row)
        else:
            name = row.get("name") or row.get("title") or item_id
            prompt = f'Are you sure you want to delete "{name}"? This action cannot be undone.'
        dialog = ConfirmDialog(
            action=f"delete-{self.spec.name}",
            target_id=item_id,
            title=f"Delete {self.spec.label}",
            description=prompt,
        )
        self.pending_delete = dialog
        return dialog

    def cancel_delete(self) -> None:
        self.pending_delete = None

    def confirm_delete(self, item_id) -> MutationResult:
        dialog = self.pending_delete
        if dialog is None or str(dialog.target_id) != str(item_id):
            raise NotFoundError(f"{self.spec.label} delete confirmation", item_id)
        self._require("delete")
        self.pending_delete = None
        return self._delete.mutate(item_id)

    def describe(self) -> dict:
        return {
            "entity": self.spec.name,
            "label": self.spec.label,
            "editable": self.spec.editable,
            "items": self.list(),
            "editing": sorted(self.drafts),
            "pendingDelete": self.pending_delete.to_dict() if self.pending_delete else None,
        }
