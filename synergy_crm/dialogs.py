"""
synergy_crm/dialogs.py

Dialog/selection state, one store per entity kind.

A store answers "which modal is open, and on which record" for one entity kind:
- open_dialog: DialogVariant | None  (Add<Entity> / Edit<Entity> / Delete<Entity>)
- current_row: the record targeted by an in-flight Edit or Delete, or None

Setters are plain synchronous assignments (last write wins) and notify subscribers
synchronously. There is no validation here; schemas validate at submission time.

Closing a dialog clears open_dialog at once but keeps current_row readable until the
close transition completes (transition_complete()), so the closing modal can still
render the record it was showing.

The web layer binds each user's stores to the Flask session (bind_session_store),
so state lives exactly as long as the browser session. Only the dialog name and the
row id go into the cookie.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Type, TypeVar

from flask import session
from pydantic import BaseModel

from .errors import BackendError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

Listener = Callable[["DialogStore[Any]"], None]
RowFetcher = Callable[[str], Any]

SESSION_PREFIX = "dialogs."


class DialogAction(str, Enum):
    ADD = "Add"
    EDIT = "Edit"
    DELETE = "Delete"


@dataclass(frozen=True)
class DialogVariant:
    """One modal of one entity kind, e.g. DialogVariant(EDIT, "Client") -> "EditClient"."""

    action: DialogAction
    entity: str

    @property
    def name(self) -> str:
        return f"{self.action.value}{self.entity}"

    @property
    def targets_row(self) -> bool:
        return self.action is not DialogAction.ADD

    def __str__(self) -> str:
        return self.name


class DialogStore(Generic[T]):
    def __init__(self, entity: str, row_model: Type[T]) -> None:
        self.entity = entity
        self.row_model = row_model
        self.variants: Dict[DialogAction, DialogVariant] = {
            action: DialogVariant(action, entity) for action in DialogAction
        }
        self._open_dialog: Optional[DialogVariant] = None
        self._current_row: Optional[T] = None
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def open_dialog(self) -> Optional[DialogVariant]:
        return self._open_dialog

    @property
    def current_row(self) -> Optional[T]:
        return self._current_row

    def variant(self, action: DialogAction | str) -> DialogVariant:
        return self.variants[DialogAction(action)]

    def parse_variant(self, name: str | None) -> Optional[DialogVariant]:
        """Resolve "EditClient" back to its variant; None for empty or foreign names."""
        for variant in self.variants.values():
            if variant.name == name:
                return variant
        return None

    def is_open(self, action: DialogAction) -> bool:
        return self._open_dialog is not None and self._open_dialog.action is action

    def snapshot(self) -> Dict[str, Any]:
        return {
            "open_dialog": self._open_dialog.name if self._open_dialog else None,
            "current_row": self._current_row,
        }

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------
    def set_open_dialog(self, variant: DialogVariant | str | None) -> None:
        if isinstance(variant, str):
            resolved = self.parse_variant(variant)
            if resolved is None:
                raise ValueError(f"{variant!r} is not a dialog of {self.entity}")
            variant = resolved
        if variant is not None and variant.entity != self.entity:
            raise ValueError(f"{variant.name} is not a dialog of {self.entity}")
        if variant == self._open_dialog:
            return
        self._open_dialog = variant
        self._notify()

    def set_current_row(self, row: Optional[T]) -> None:
        if row == self._current_row:
            return
        self._current_row = row
        self._notify()

    def open(self, action: DialogAction | str, row: Optional[T] = None) -> None:
        """Target the row first, then show the modal, so a rendered Edit/Delete always has its record."""
        variant = self.variant(action)
        # Add never carries a row over from an earlier Edit or Delete.
        self.set_current_row(row if variant.targets_row else None)
        self.set_open_dialog(variant)

    def close(self) -> None:
        self.set_open_dialog(None)

    def transition_complete(self) -> None:
        """The close transition finished: drop the row, unless a dialog was reopened meanwhile."""
        if self._open_dialog is None:
            self.set_current_row(None)

    def reset(self) -> None:
        self.set_open_dialog(None)
        self.set_current_row(None)

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------
    # Serialization (session binding)
    # ------------------------------------------------------------------
    def dump(self) -> Dict[str, Any]:
        """Only the row id is kept; the record itself is fetched again on load."""
        row_id = getattr(self._current_row, "id", None)
        return {
            "open_dialog": self._open_dialog.name if self._open_dialog else None,
            "current_row_id": str(row_id) if row_id is not None else None,
        }

    def load(self, data: Optional[Mapping[str, Any]], fetch: Optional[RowFetcher] = None) -> None:
        """
        Restore state without notifying (restoring is not a state change).

        `fetch` resolves the saved row id to a record. A row that cannot be fetched
        any more also drops an Edit/Delete dialog that was showing it.
        """
        data = data or {}
        self._open_dialog = self.parse_variant(data.get("open_dialog"))
        self._current_row = None
        row_id = data.get("current_row_id")
        if row_id and fetch is not None:
            try:
                self._current_row = fetch(str(row_id))
            except BackendError as exc:
                logger.info(
                    "dialog_row_unavailable",
                    extra={"entity": self.entity, "row_id": row_id, "error": exc.message},
                )
        if self._current_row is None and self._open_dialog is not None and self._open_dialog.targets_row:
            self._open_dialog = None

    def __repr__(self) -> str:
        return f"<DialogStore {self.entity} open={self._open_dialog} row={self._current_row!r}>"


class DialogStoreRegistry:
    """Builds one store per entity kind at composition time."""

    def __init__(self, factories: Mapping[str, Callable[[], DialogStore[Any]]]) -> None:
        self._factories = dict(factories)

    @classmethod
    def for_models(cls, models: Mapping[str, Type[BaseModel]]) -> "DialogStoreRegistry":
        return cls(
            {entity: (lambda e=entity, m=model: DialogStore(e, m)) for entity, model in models.items()}
        )

    @property
    def entities(self) -> List[str]:
        return list(self._factories)

    def create(self, entity: str) -> DialogStore[Any]:
        return self._factories[entity]()

    def create_all(self) -> Dict[str, DialogStore[Any]]:
        return {entity: factory() for entity, factory in self._factories.items()}


def _log_change(store: DialogStore[Any]) -> None:
    row = store.current_row
    logger.debug(
        "dialog_state_changed",
        extra={
            "entity": store.entity,
            "open_dialog": store.open_dialog.name if store.open_dialog else None,
            "row_id": getattr(row, "id", None),
        },
    )


def bind_session_store(
    registry: DialogStoreRegistry, entity: str, fetch: Optional[RowFetcher] = None
) -> DialogStore[Any]:
    """
    Store for `entity` backed by the current user's Flask session.

    Every change is written straight back to the session, so the next request sees it.
    The session cookie only holds the dialog name and the row id; `fetch` loads the row.
    """
    store = registry.create(entity)
    key = SESSION_PREFIX + entity
    saved = session.get(key)
    store.load(saved, fetch)
    if saved is not None and store.dump() != dict(saved):
        # The saved row is gone; keep the cookie in step with what was restored.
        session[key] = store.dump()

    def persist(changed: DialogStore[Any]) -> None:
        session[key] = changed.dump()

    store.subscribe(persist)
    store.subscribe(_log_change)
    return store


def clear_session_stores() -> None:
    for key in [k for k in session.keys() if k.startswith(SESSION_PREFIX)]:
        session.pop(key, None)
