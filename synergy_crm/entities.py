"""
synergy_crm/entities.py

Entity kind registry.

Every entity kind (client, lead, quote, ...) is described ONCE here: backend table,
schemas, list columns, form fields, generated code, delete confirmation. Pages, dialogs,
the JSON API and the repository are all parametrized over these descriptors.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Type

from pydantic import BaseModel

from . import schemas
from .dialogs import DialogStore, DialogStoreRegistry


@dataclass(frozen=True)
class FormField:
    name: str
    label: str
    kind: str = "text"  # text | email | textarea | select | number | date | datetime-local | password
    required: bool = False
    choices: Tuple[str, ...] = ()


def _choices(enum_cls: Type[Enum]) -> Tuple[str, ...]:
    return tuple(member.value for member in enum_cls)


@dataclass(frozen=True)
class EntityKind:
    key: str
    entity: str
    label: str
    slug: str
    table: str
    record_model: Type[BaseModel]
    input_model: Type[BaseModel]
    columns: Tuple[Tuple[str, str], ...]
    form_fields: Tuple[FormField, ...]
    title_field: str
    code_field: Optional[str] = None
    code_prefix: Optional[str] = None
    confirm_field: Optional[str] = None
    owner_field: Optional[str] = "created_by"
    server_computed: FrozenSet[str] = field(default_factory=frozenset)
    create_defaults: Tuple[Tuple[str, str], ...] = ()
    status_field: Optional[str] = "status"

    @property
    def singular(self) -> str:
        """Display name, e.g. SalesOrder -> Sales Order."""
        return re.sub(r"(?<!^)(?=[A-Z])", " ", self.entity)


_CURRENCY = FormField("currency_code", "Currency", required=True)

CLIENT = EntityKind(
    key="client",
    entity="Client",
    label="Clients",
    slug="clients",
    table="clients",
    record_model=schemas.Client,
    input_model=schemas.ClientInput,
    columns=(
        ("client_code", "Code"),
        ("contact_name", "Contact"),
        ("company_name", "Company"),
        ("contact_email", "Email"),
        ("contact_phone", "Phone"),
        ("next_follow_up_at", "Next follow-up"),
    ),
    form_fields=(
        FormField("contact_name", "Contact name", required=True),
        FormField("contact_email", "Contact email", kind="email", required=True),
        FormField("contact_phone", "Contact phone"),
        FormField("company_name", "Company"),
        FormField("industry", "Industry"),
        FormField("website", "Website"),
        FormField("next_follow_up_at", "Next follow-up", kind="datetime-local"),
        FormField("last_interaction_at", "Last interaction", kind="datetime-local"),
        FormField("notes", "Notes", kind="textarea"),
    ),
    title_field="contact_name",
    code_field="client_code",
    code_prefix="C",
    confirm_field="contact_name",
    status_field=None,
)

LEAD = EntityKind(
    key="lead",
    entity="Lead",
    label="Leads",
    slug="leads",
    table="leads",
    record_model=schemas.Lead,
    input_model=schemas.LeadInput,
    columns=(
        ("contact_name", "Contact"),
        ("company_name", "Company"),
        ("contact_email", "Email"),
        ("source", "Source"),
        ("status", "Status"),
        ("follow_up_at", "Follow-up"),
    ),
    form_fields=(
        FormField("contact_name", "Contact name", required=True),
        FormField("contact_email", "Contact email", kind="email", required=True),
        FormField("contact_phone", "Contact phone"),
        FormField("company_name", "Company"),
        FormField("client_id", "Client ID"),
        FormField("source", "Source", kind="select", required=True, choices=_choices(schemas.LeadSource)),
        FormField("status", "Status", kind="select", choices=_choices(schemas.LeadStatus)),
        FormField("assigned_to", "Assigned to (user ID)"),
        FormField("follow_up_at", "Follow-up", kind="datetime-local"),
        FormField("notes", "Notes", kind="textarea"),
    ),
    title_field="contact_name",
)

QUOTE = EntityKind(
    key="quote",
    entity="Quote",
    label="Quotes",
    slug="quotes",
    table="synergy_quotes",
    record_model=schemas.Quote,
    input_model=schemas.QuoteInput,
    columns=(
        ("quote_number", "Quote #"),
        ("status", "Status"),
        ("currency_code", "Currency"),
        ("total_price", "Total"),
        ("valid_till", "Valid till"),
    ),
    form_fields=(
        FormField("quote_number", "Quote number", required=True),
        FormField("requirement_id", "Requirement ID", required=True),
        FormField("client_id", "Client ID", required=True),
        _CURRENCY,
        FormField("default_margin_pct", "Default margin %", kind="number", required=True),
        FormField("tax_pct", "Tax %", kind="number"),
        FormField("status", "Status", kind="select", choices=_choices(schemas.QuoteStatus)),
        FormField("valid_till", "Valid till", kind="date"),
        FormField("notes", "Notes", kind="textarea"),
    ),
    title_field="quote_number",
    server_computed=frozenset({"subtotal_cost", "subtotal_price", "tax_amount", "total_price"}),
)

VENDOR = EntityKind(
    key="vendor",
    entity="Vendor",
    label="Vendors",
    slug="vendors",
    table="vendors",
    record_model=schemas.Vendor,
    input_model=schemas.VendorInput,
    columns=(
        ("vendor_code", "Code"),
        ("company_name", "Company"),
        ("contact_name", "Contact"),
        ("contact_email", "Email"),
        ("payment_terms", "Payment terms"),
        ("status", "Status"),
    ),
    form_fields=(
        FormField("company_name", "Company", required=True),
        FormField("contact_name", "Contact name"),
        FormField("contact_email", "Contact email", kind="email"),
        FormField("contact_phone", "Contact phone"),
        FormField("gst_number", "GST number"),
        FormField("address", "Address", kind="textarea"),
        FormField("payment_terms", "Payment terms"),
        FormField("status", "Status", kind="select", choices=_choices(schemas.VendorStatus)),
        FormField("notes", "Notes", kind="textarea"),
    ),
    title_field="company_name",
    code_field="vendor_code",
    code_prefix="V",
    confirm_field="company_name",
    owner_field=None,
)

SALES_ORDER = EntityKind(
    key="sales_order",
    entity="SalesOrder",
    label="Sales Orders",
    slug="sales",
    table="sales_orders",
    record_model=schemas.SalesOrder,
    input_model=schemas.SalesOrderInput,
    columns=(
        ("order_number", "Order #"),
        ("order_date", "Date"),
        ("status", "Status"),
        ("currency_code", "Currency"),
        ("total_price", "Total"),
    ),
    form_fields=(
        FormField("order_number", "Order number", required=True),
        FormField("client_id", "Client ID", required=True),
        FormField("requirement_id", "Requirement ID"),
        FormField("synergy_quote_id", "Quote ID"),
        FormField("order_date", "Order date", kind="date", required=True),
        _CURRENCY,
        FormField("status", "Status", kind="select", choices=_choices(schemas.SalesOrderStatus)),
        FormField("notes", "Notes", kind="textarea"),
    ),
    title_field="order_number",
    server_computed=frozenset({"total_cost", "total_price"}),
)

REQUIREMENT = EntityKind(
    key="requirement",
    entity="Requirement",
    label="Requirements",
    slug="requirements",
    table="requirements",
    record_model=schemas.Requirement,
    input_model=schemas.RequirementInput,
    columns=(
        ("title", "Title"),
        ("client_code", "Client"),
        ("status", "Status"),
        ("priority", "Priority"),
        ("required_by_date", "Required by"),
        ("estimated_budget", "Budget"),
    ),
    form_fields=(
        FormField("title", "Title", required=True),
        FormField("client_id", "Client ID", required=True),
        FormField("description", "Description", kind="textarea"),
        FormField("status", "Status", kind="select", choices=_choices(schemas.RequirementStatus)),
        FormField("priority", "Priority", kind="select", choices=_choices(schemas.RequirementPriority)),
        FormField("required_by_date", "Required by", kind="date"),
        FormField("currency_code", "Currency"),
        FormField("estimated_budget_number", "Estimated budget", kind="number"),
        FormField("assigned_to", "Assigned to (user ID)"),
    ),
    title_field="title",
)

VENDOR_QUOTE = EntityKind(
    key="vendor_quote",
    entity="VendorQuote",
    label="Vendor Quotes",
    slug="vendor-quotes",
    table="requirement_vendor_quotes",
    record_model=schemas.VendorQuote,
    input_model=schemas.VendorQuoteInput,
    columns=(
        ("vendor_quote_ref", "Reference"),
        ("vendor_id", "Vendor"),
        ("currency_code", "Currency"),
        ("base_cost", "Base cost"),
        ("total_cost", "Total cost"),
        ("status", "Status"),
        ("valid_till", "Valid till"),
    ),
    form_fields=(
        FormField("requirement_id", "Requirement ID", required=True),
        FormField("requirement_item_id", "Requirement item ID"),
        FormField("vendor_id", "Vendor ID", required=True),
        _CURRENCY,
        FormField("base_cost", "Base cost", kind="number", required=True),
        FormField("additional_costs", "Additional costs", kind="number"),
        FormField("vendor_quote_ref", "Vendor reference"),
        FormField("valid_till", "Valid till", kind="date"),
        FormField("status", "Status", kind="select", choices=_choices(schemas.VendorQuoteStatus)),
        FormField("notes", "Notes", kind="textarea"),
    ),
    title_field="vendor_quote_ref",
    owner_field=None,
    # base_cost + additional_costs, computed by the database
    server_computed=frozenset({"total_cost"}),
)

EXPENSE = EntityKind(
    key="expense",
    entity="Expense",
    label="Expenses",
    slug="expenses",
    table="expenses",
    record_model=schemas.Expense,
    input_model=schemas.ExpenseInput,
    columns=(
        ("expense_date", "Date"),
        ("category_code", "Category"),
        ("merchant_name", "Merchant"),
        ("amount", "Amount"),
        ("currency_code", "Currency"),
        ("status", "Status"),
    ),
    form_fields=(
        FormField("expense_date", "Date", kind="date", required=True),
        FormField(
            "category_code", "Category", kind="select", required=True,
            choices=_choices(schemas.ExpenseCategoryCode),
        ),
        FormField("amount", "Amount", kind="number", required=True),
        _CURRENCY,
        FormField("merchant_name", "Merchant"),
        FormField("bill_number", "Bill number"),
        FormField("client_id", "Client ID"),
        FormField("requirement_id", "Requirement ID"),
        FormField("notes", "Notes", kind="textarea"),
    ),
    title_field="merchant_name",
    owner_field="executive_id",
    create_defaults=(("status", schemas.ExpenseStatus.SUBMITTED.value),),
)

USER = EntityKind(
    key="user",
    entity="User",
    label="Users",
    slug="users",
    table="profiles",
    record_model=schemas.User,
    input_model=schemas.UserInput,
    columns=(
        ("full_name", "Name"),
        ("email", "Email"),
        ("permission", "Permission"),
        ("status", "Status"),
    ),
    form_fields=(
        FormField("full_name", "Full name", required=True),
        FormField("email", "Email", kind="email", required=True),
        FormField("permission", "Permission", kind="select", required=True, choices=_choices(schemas.Role)),
        FormField("status", "Status", kind="select", choices=_choices(schemas.UserStatus)),
        FormField("password", "Password", kind="password"),
        FormField("confirm_password", "Confirm password", kind="password"),
    ),
    title_field="full_name",
    confirm_field="email",
    owner_field=None,
)

ENTITY_KINDS: Dict[str, EntityKind] = {
    kind.key: kind
    for kind in (CLIENT, LEAD, QUOTE, VENDOR, SALES_ORDER, REQUIREMENT, VENDOR_QUOTE, EXPENSE, USER)
}

# Kinds managed from the /app dashboard (users live in the admin console).
DASHBOARD_KINDS: List[EntityKind] = [kind for kind in ENTITY_KINDS.values() if kind is not USER]


def get_kind(key: str) -> EntityKind:
    return ENTITY_KINDS[key]


def kind_for_slug(slug: str) -> Optional[EntityKind]:
    for kind in ENTITY_KINDS.values():
        if kind.slug == slug:
            return kind
    return None


def build_dialog_registry() -> DialogStoreRegistry:
    """One dialog store factory per entity kind."""
    return DialogStoreRegistry(
        {kind.key: (lambda k=kind: DialogStore(k.entity, k.record_model)) for kind in ENTITY_KINDS.values()}
    )
