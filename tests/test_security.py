import unittest

from synergy_crm.schemas import Role
from synergy_crm.security import (
    Capability,
    assignable_roles,
    can,
    check_user_change,
    is_admin_role,
)
from synergy_crm.session import CrmUser


class CapabilityTest(unittest.TestCase):
    def test_capability_matrix(self) -> None:
        expected = {
            Role.SUPER_ADMIN: set(Capability),
            Role.ADMIN: set(Capability) - {Capability.MANAGE_SUPER_ADMINS},
            Role.FULL_ACCESS: {Capability.VIEW, Capability.EDIT, Capability.DELETE},
            Role.WRITE: {Capability.VIEW, Capability.EDIT},
            Role.READ: {Capability.VIEW},
        }
        for role, capabilities in expected.items():
            for capability in Capability:
                with self.subTest(role=role, capability=capability):
                    self.assertEqual(can(role, capability), capability in capabilities)

    def test_unknown_roles_are_read_only(self) -> None:
        for value in (None, "", "owner", "ADMIN "):
            self.assertTrue(can(value, Capability.VIEW))
            self.assertFalse(can(value, Capability.EDIT))
            self.assertFalse(is_admin_role(value))

    def test_string_roles(self) -> None:
        self.assertTrue(is_admin_role("super_admin"))
        self.assertTrue(can("write", Capability.EDIT))


class SignedInUserRoleTest(unittest.TestCase):
    def test_user_object_keeps_its_role(self) -> None:
        user = CrmUser({"user_id": "u-1", "email": "a@example.com", "permission": "admin"})
        self.assertIs(user.permission, Role.ADMIN)
        self.assertTrue(can(user.permission, Capability.ADMIN_CONSOLE))
        self.assertTrue(is_admin_role(user.permission))


class UserAdministrationRulesTest(unittest.TestCase):
    def test_only_super_admins_hand_out_super_admin(self) -> None:
        self.assertIn(Role.SUPER_ADMIN, assignable_roles(Role.SUPER_ADMIN))
        self.assertNotIn(Role.SUPER_ADMIN, assignable_roles(Role.ADMIN))

    def test_non_admin_cannot_manage_users(self) -> None:
        self.assertIsNotNone(check_user_change("me", Role.FULL_ACCESS, None, Role.READ))

    def test_admin_cannot_grant_or_edit_super_admin(self) -> None:
        self.assertIsNotNone(check_user_change("me", Role.ADMIN, None, Role.SUPER_ADMIN))
        target = {"id": "other", "permission": "super_admin"}
        self.assertIsNotNone(check_user_change("me", Role.ADMIN, target, Role.SUPER_ADMIN))
        self.assertIsNone(check_user_change("me", Role.SUPER_ADMIN, target, Role.READ))

    def test_nobody_changes_their_own_permission(self) -> None:
        me = {"id": "me", "permission": "admin"}
        self.assertIsNotNone(check_user_change("me", Role.ADMIN, me, Role.READ))
        self.assertIsNone(check_user_change("me", Role.ADMIN, me, Role.ADMIN))

    def test_admin_manages_regular_users(self) -> None:
        target = {"id": "other", "permission": "write"}
        self.assertIsNone(check_user_change("me", Role.ADMIN, target, Role.FULL_ACCESS))
        self.assertIsNone(check_user_change("me", Role.ADMIN, None, Role.READ))


if __name__ == "__main__":
    unittest.main()
