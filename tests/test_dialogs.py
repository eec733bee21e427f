import unittest

from flask import Flask, session

from synergy_crm.dialogs import (
    DialogAction,
    DialogStore,
    DialogStoreRegistry,
    DialogVariant,
    bind_session_store,
    clear_session_stores,
)
from synergy_crm.entities import ENTITY_KINDS, build_dialog_registry
from synergy_crm.errors import RecordNotFound
from tests.helpers.rows import SAMPLE_ROWS


def _row(kind_key: str, **changes):
    kind = ENTITY_KINDS[kind_key]
    return kind.record_model.model_validate({**SAMPLE_ROWS[kind_key], **changes})


class DialogStoreAllKindsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = build_dialog_registry()

    def test_registry_has_one_store_per_kind(self) -> None:
        self.assertEqual(set(self.registry.entities), set(ENTITY_KINDS))
        stores = self.registry.create_all()
        for key, store in stores.items():
            self.assertEqual(store.entity, ENTITY_KINDS[key].entity)
            self.assertIsNone(store.open_dialog)
            self.assertIsNone(store.current_row)

    def test_select_row_then_open_edit(self) -> None:
        for key, kind in ENTITY_KINDS.items():
            with self.subTest(kind=key):
                store = self.registry.create(key)
                row = _row(key)
                store.set_current_row(row)
                store.set_open_dialog(store.variant(DialogAction.EDIT))
                self.assertEqual(store.current_row, row)
                self.assertEqual(store.open_dialog.name, f"Edit{kind.entity}")

    def test_close_clears_dialog_now_and_row_after_transition(self) -> None:
        for key in ENTITY_KINDS:
            with self.subTest(kind=key):
                store = self.registry.create(key)
                row = _row(key)
                store.open(DialogAction.DELETE, row)

                store.set_open_dialog(None)
                self.assertIsNone(store.open_dialog)
                self.assertEqual(store.current_row, row)

                store.transition_complete()
                self.assertIsNone(store.current_row)

    def test_clearing_row_twice_is_a_no_op(self) -> None:
        for key in ENTITY_KINDS:
            with self.subTest(kind=key):
                store = self.registry.create(key)
                store.set_current_row(_row(key))
                seen = []
                store.subscribe(lambda s: seen.append(s.snapshot()))

                store.set_current_row(None)
                after_first = store.snapshot()
                store.set_current_row(None)

                self.assertEqual(store.snapshot(), after_first)
                self.assertEqual(len(seen), 1)


class DialogStoreBehaviourTest(unittest.TestCase):
    def setUp(self) -> None:
        self.store = build_dialog_registry().create("client")
        self.row = _row("client")

    def test_variant_names(self) -> None:
        self.assertEqual(self.store.variant("Add").name, "AddClient")
        self.assertEqual(str(self.store.variant(DialogAction.DELETE)), "DeleteClient")
        self.assertFalse(self.store.variant(DialogAction.ADD).targets_row)
        self.assertTrue(self.store.variant(DialogAction.EDIT).targets_row)

    def test_open_by_name(self) -> None:
        self.store.set_open_dialog("AddClient")
        self.assertTrue(self.store.is_open(DialogAction.ADD))

    def test_foreign_variant_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.store.set_open_dialog(DialogVariant(DialogAction.EDIT, "Vendor"))
        with self.assertRaises(ValueError):
            self.store.set_open_dialog("EditVendor")
        self.assertIsNone(self.store.open_dialog)

    def test_last_write_wins(self) -> None:
        other = _row("client", id="client-2", contact_name="Other")
        self.store.set_current_row(self.row)
        self.store.set_current_row(other)
        self.assertEqual(self.store.current_row, other)

    def test_reopen_before_transition_keeps_row(self) -> None:
        self.store.open(DialogAction.EDIT, self.row)
        self.store.close()
        self.store.open(DialogAction.DELETE, self.row)
        self.store.transition_complete()
        self.assertEqual(self.store.current_row, self.row)
        self.assertTrue(self.store.is_open(DialogAction.DELETE))

    def test_open_add_drops_the_targeted_row(self) -> None:
        self.store.open(DialogAction.EDIT, self.row)
        self.store.open(DialogAction.ADD)
        self.assertTrue(self.store.is_open(DialogAction.ADD))
        self.assertIsNone(self.store.current_row)

    def test_subscribers_are_notified_synchronously_until_unsubscribed(self) -> None:
        seen = []
        unsubscribe = self.store.subscribe(lambda s: seen.append(s.open_dialog))
        self.store.open(DialogAction.ADD)
        self.assertEqual([v.name for v in seen], ["AddClient"])

        unsubscribe()
        self.store.close()
        self.assertEqual(len(seen), 1)

    def test_setting_same_dialog_does_not_notify(self) -> None:
        self.store.open(DialogAction.ADD)
        seen = []
        self.store.subscribe(lambda s: seen.append(1))
        self.store.set_open_dialog("AddClient")
        self.assertEqual(seen, [])

    def test_reset(self) -> None:
        self.store.open(DialogAction.EDIT, self.row)
        self.store.reset()
        self.assertEqual(self.store.snapshot(), {"open_dialog": None, "current_row": None})

    def test_dump_keeps_only_the_row_id(self) -> None:
        self.store.open(DialogAction.EDIT, self.row)
        self.assertEqual(self.store.dump(), {"open_dialog": "EditClient", "current_row_id": "client-1"})

    def test_dump_and_load(self) -> None:
        self.store.open(DialogAction.EDIT, self.row)
        copy = build_dialog_registry().create("client")
        copy.load(self.store.dump(), {"client-1": self.row}.__getitem__)
        self.assertEqual(copy.open_dialog, self.store.open_dialog)
        self.assertEqual(copy.current_row, self.row)

        copy.load(None)
        self.assertIsNone(copy.open_dialog)
        self.assertIsNone(copy.current_row)

    def test_load_drops_edit_when_row_is_gone(self) -> None:
        self.store.open(DialogAction.DELETE, self.row)

        def missing(row_id):
            raise RecordNotFound(f"No clients row with id {row_id}")

        copy = build_dialog_registry().create("client")
        copy.load(self.store.dump(), missing)
        self.assertIsNone(copy.open_dialog)
        self.assertIsNone(copy.current_row)


class GenericRegistryTest(unittest.TestCase):
    def test_for_models_uses_keys_as_entity_names(self) -> None:
        registry = DialogStoreRegistry.for_models({"Vendor": ENTITY_KINDS["vendor"].record_model})
        store = registry.create("Vendor")
        self.assertIsInstance(store, DialogStore)
        self.assertEqual(store.variant(DialogAction.ADD).name, "AddVendor")


class SessionBindingTest(unittest.TestCase):
    def setUp(self) -> None:
        self.app = Flask(__name__)
        self.app.secret_key = "test"
        self.registry = build_dialog_registry()

    def test_changes_are_written_to_the_session(self) -> None:
        row = _row("vendor")
        with self.app.test_request_context("/"):
            store = bind_session_store(self.registry, "vendor")
            store.open(DialogAction.EDIT, row)
            self.assertEqual(session["dialogs.vendor"]["current_row_id"], row.id)

            restored = bind_session_store(self.registry, "vendor", lambda row_id: row)
            self.assertEqual(restored.open_dialog.name, "EditVendor")
            self.assertEqual(restored.current_row, row)

            clear_session_stores()
            fresh = bind_session_store(self.registry, "vendor")
            self.assertIsNone(fresh.open_dialog)
            self.assertIsNone(fresh.current_row)


if __name__ == "__main__":
    unittest.main()
