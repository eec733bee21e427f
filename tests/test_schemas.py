import unittest

from pydantic import ValidationError

from synergy_crm.schemas import (
    ClientInput,
    Role,
    User,
    UserInput,
    VendorQuote,
    VendorQuoteInput,
    error_fields,
    error_summary,
)
from tests.helpers.rows import SAMPLE_ROWS

VALID_USER = {
    "full_name": "Priya",
    "email": "priya@example.com",
    "permission": "write",
    "password": "abcdefg1",
    "confirm_password": "abcdefg1",
}


class InputModelTest(unittest.TestCase):
    def test_blank_strings_become_none(self) -> None:
        client = ClientInput.model_validate(
            {"contact_name": " Asha ", "contact_email": "asha@example.com", "company_name": "  "}
        )
        self.assertEqual(client.contact_name, "Asha")
        self.assertIsNone(client.company_name)

    def test_currency_code_is_three_letters(self) -> None:
        base = {"requirement_id": "r", "vendor_id": "v", "base_cost": 1}
        self.assertEqual(VendorQuoteInput.model_validate({**base, "currency_code": "usd"}).currency_code, "USD")
        with self.assertRaises(ValidationError):
            VendorQuoteInput.model_validate({**base, "currency_code": "dollars"})

    def test_vendor_quote_input_has_no_total_cost(self) -> None:
        self.assertNotIn("total_cost", VendorQuoteInput.model_fields)
        self.assertIn("total_cost", VendorQuote.model_fields)

    def test_error_fields(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            ClientInput.model_validate({"contact_name": "A", "contact_email": "not-an-email"})
        fields = error_fields(ctx.exception)
        self.assertIn("contact_email", fields)
        self.assertIn("contact email", error_summary(ctx.exception))


class UserInputTest(unittest.TestCase):
    def test_valid(self) -> None:
        user = UserInput.model_validate(VALID_USER)
        self.assertEqual(user.permission, "write")

    def test_password_rules(self) -> None:
        cases = {
            "": "Password is required.",
            "abc1": "Password must be at least 8 characters long.",
            "ABCDEFG1": "Password must contain at least one lowercase letter.",
            "abcdefgh": "Password must contain at least one number.",
        }
        for password, message in cases.items():
            with self.subTest(password=password):
                with self.assertRaises(ValidationError) as ctx:
                    UserInput.model_validate({**VALID_USER, "password": password, "confirm_password": password})
                self.assertEqual(error_fields(ctx.exception)["__all__"], message)

    def test_passwords_must_match(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            UserInput.model_validate({**VALID_USER, "confirm_password": "abcdefg2"})
        self.assertEqual(error_summary(ctx.exception), "Passwords don't match.")

    def test_edit_may_leave_password_blank(self) -> None:
        user = UserInput.model_validate({**VALID_USER, "password": "", "confirm_password": "", "is_edit": True})
        self.assertIsNone(user.password)


class RecordModelTest(unittest.TestCase):
    def test_unknown_permission_reads_as_read(self) -> None:
        user = User.model_validate({**SAMPLE_ROWS["user"], "permission": "owner"})
        self.assertEqual(user.permission, Role.READ.value)

    def test_role_parse(self) -> None:
        self.assertIs(Role.parse("admin"), Role.ADMIN)
        self.assertIs(Role.parse(None), Role.READ)

    def test_role_parse_keeps_enum_members(self) -> None:
        for role in Role:
            with self.subTest(role=role):
                self.assertIs(Role.parse(role), role)


if __name__ == "__main__":
    unittest.main()
