"""
synergy_crm/schemas.py

Entity shapes and validation.

Two models per entity kind:
- <Entity>: a row as the backend returns it (records are owned by the backend; what we
  hold is a transient, non-authoritative copy for display and edit staging).
- <Entity>Input: what a dialog or API caller may author. Server-computed and
  server-assigned fields (ids, generated codes on update, totals, timestamps,
  created_by) are NOT part of any input model.

Validation runs at submission time only.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator, model_validator

_CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


# ---------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------
class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    FULL_ACCESS = "full_access"
    WRITE = "write"
    READ = "read"

    @classmethod
    def parse(cls, value: object) -> "Role":
        """Unknown or missing permission strings get the least privilege."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip())
        except ValueError:
            return cls.READ


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class LeadStatus(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    WON = "won"
    LOST = "lost"


class LeadSource(str, Enum):
    WEBSITE = "website"
    REFERRAL = "referral"
    EMAIL = "email"
    PHONE = "phone"
    EVENT = "event"
    WHATSAPP = "whatsapp"


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class VendorStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class SalesOrderStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class RequirementStatus(str, Enum):
    NEW = "new"
    IN_DISCUSSION = "in_discussion"
    QUOTED = "quoted"
    ON_HOLD = "on_hold"
    CLOSED = "closed"


class RequirementPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class VendorQuoteStatus(str, Enum):
    RECEIVED = "received"
    SHORTLISTED = "shortlisted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExpenseCategoryCode(str, Enum):
    FOOD = "food"
    CAB = "cab"
    CLIENT_GIFT = "client_gift"
    LAUNDRY = "laundry"
    ACCOMMODATION = "accommodation"
    OTHER = "other"


class ExpenseStatus(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


# ---------------------------------------------------------------------
# Base classes
# ---------------------------------------------------------------------
class Record(BaseModel):
    """A backend row. Unknown columns (joins, newer schema) are ignored."""

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str


class TimestampedRecord(Record):
    created_at: datetime
    updated_at: datetime


class EntityInput(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=True, str_strip_whitespace=True)

    @field_validator("*", mode="before")
    @classmethod
    def blank_is_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value


def _check_currency(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip().upper()
    if not _CURRENCY_PATTERN.match(value):
        raise ValueError("currency_code must be a three-letter ISO code")
    return value


class PricedInput(EntityInput):
    """Inputs carrying a currency_code column."""

    @field_validator("currency_code", check_fields=False)
    @classmethod
    def normalize_currency(cls, value):
        return _check_currency(value)


# ---------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------
class Client(TimestampedRecord):
    client_code: str
    company_name: Optional[str] = None
    contact_name: str
    contact_email: str
    contact_phone: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    last_interaction_at: Optional[datetime] = None
    next_follow_up_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: str


class ClientInput(EntityInput):
    client_code: Optional[str] = None
    company_name: Optional[str] = None
    contact_name: str = Field(min_length=1)
    contact_email: EmailStr
    contact_phone: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    last_interaction_at: Optional[datetime] = None
    next_follow_up_at: Optional[datetime] = None
    notes: Optional[str] = None


# ---------------------------------------------------------------------
# Leads
# ---------------------------------------------------------------------
class Lead(TimestampedRecord):
    client_id: Optional[str] = None
    contact_name: str
    contact_email: str
    contact_phone: Optional[str] = None
    company_name: Optional[str] = None
    source: LeadSource
    status: LeadStatus
    assigned_to: Optional[str] = None
    follow_up_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: str
    # display fields from joins
    client_code: Optional[str] = None
    assigned_to_name: Optional[str] = None


class LeadInput(EntityInput):
    client_id: Optional[str] = None
    contact_name: str = Field(min_length=1)
    contact_email: EmailStr
    contact_phone: Optional[str] = None
    company_name: Optional[str] = None
    source: LeadSource
    status: LeadStatus = LeadStatus.NEW
    assigned_to: Optional[str] = None
    follow_up_at: Optional[datetime] = None
    notes: Optional[str] = None


# ---------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------
class Quote(TimestampedRecord):
    requirement_id: str
    client_id: str
    quote_number: str
    currency_code: str
    default_margin_pct: float
    tax_pct: Optional[float] = None
    subtotal_cost: float
    subtotal_price: float
    tax_amount: float
    total_price: float
    status: QuoteStatus
    valid_till: Optional[date] = None
    notes: Optional[str] = None
    created_by: str


class QuoteInput(PricedInput):
    requirement_id: str
    client_id: str
    quote_number: str = Field(min_length=1)
    currency_code: str
    default_margin_pct: float = Field(ge=0)
    tax_pct: Optional[float] = Field(default=None, ge=0)
    status: QuoteStatus = QuoteStatus.DRAFT
    valid_till: Optional[date] = None
    notes: Optional[str] = None


# ---------------------------------------------------------------------
# Vendors
# ---------------------------------------------------------------------
class Vendor(TimestampedRecord):
    vendor_code: str
    company_name: str
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    gst_number: Optional[str] = None
    address: Optional[str] = None
    payment_terms: Optional[str] = None
    status: VendorStatus = VendorStatus.ACTIVE
    notes: Optional[str] = None


class VendorInput(EntityInput):
    vendor_code: Optional[str] = None
    company_name: str = Field(min_length=1)
    contact_name: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    gst_number: Optional[str] = None
    address: Optional[str] = None
    payment_terms: Optional[str] = None
    status: VendorStatus = VendorStatus.ACTIVE
    notes: Optional[str] = None


# ---------------------------------------------------------------------
# Sales orders
# ---------------------------------------------------------------------
class SalesOrder(TimestampedRecord):
    client_id: str
    requirement_id: Optional[str] = None
    synergy_quote_id: Optional[str] = None
    order_number: str
    status: SalesOrderStatus
    order_date: date
    currency_code: str
    total_cost: float
    total_price: float
    notes: Optional[str] = None
    created_by: str


class SalesOrderInput(PricedInput):
    client_id: str
    requirement_id: Optional[str] = None
    synergy_quote_id: Optional[str] = None
    order_number: str = Field(min_length=1)
    status: SalesOrderStatus = SalesOrderStatus.DRAFT
    order_date: date
    currency_code: str
    notes: Optional[str] = None


# ---------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------
class Requirement(TimestampedRecord):
    client_id: str
    client_code: Optional[str] = None
    currency_code: Optional[str] = None
    title: str
    description: Optional[str] = None
    status: RequirementStatus
    priority: Optional[RequirementPriority] = None
    required_by_date: Optional[date] = None
    estimated_budget_number: Optional[float] = None
    estimated_budget: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_to_name: Optional[str] = None
    created_by: str


class RequirementInput(PricedInput):
    client_id: str
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: RequirementStatus = RequirementStatus.NEW
    priority: Optional[RequirementPriority] = None
    required_by_date: Optional[date] = None
    currency_code: Optional[str] = None
    estimated_budget_number: Optional[float] = Field(default=None, ge=0)
    estimated_budget: Optional[str] = None
    assigned_to: Optional[str] = None


# ---------------------------------------------------------------------
# Vendor quotes
# ---------------------------------------------------------------------
class VendorQuote(TimestampedRecord):
    requirement_id: str
    requirement_item_id: Optional[str] = None
    vendor_id: str
    currency_code: str
    base_cost: float
    additional_costs: Optional[float] = None
    total_cost: float  # computed on backend: base_cost + additional_costs
    vendor_quote_ref: Optional[str] = None
    valid_till: Optional[date] = None
    status: VendorQuoteStatus
    notes: Optional[str] = None


class VendorQuoteInput(PricedInput):
    requirement_id: str
    requirement_item_id: Optional[str] = None
    vendor_id: str
    currency_code: str
    base_cost: float = Field(ge=0)
    additional_costs: Optional[float] = Field(default=None, ge=0)
    vendor_quote_ref: Optional[str] = None
    valid_till: Optional[date] = None
    status: VendorQuoteStatus = VendorQuoteStatus.RECEIVED
    notes: Optional[str] = None


# ---------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------
class Expense(TimestampedRecord):
    executive_id: str
    client_id: Optional[str] = None
    requirement_id: Optional[str] = None
    category_code: ExpenseCategoryCode
    category_id: Optional[int] = None
    amount: float
    currency_code: str
    expense_date: date
    merchant_name: Optional[str] = None
    bill_number: Optional[str] = None
    notes: Optional[str] = None
    receipt_url: Optional[str] = None
    status: ExpenseStatus
    approved_by: Optional[str] = None


class ExpenseInput(PricedInput):
    client_id: Optional[str] = None
    requirement_id: Optional[str] = None
    category_code: ExpenseCategoryCode
    category_id: Optional[int] = None
    amount: float = Field(gt=0)
    currency_code: str
    expense_date: date
    merchant_name: Optional[str] = None
    bill_number: Optional[str] = None
    notes: Optional[str] = None
    receipt_url: Optional[str] = None
    status: ExpenseStatus = ExpenseStatus.SUBMITTED


# ---------------------------------------------------------------------
# Users (profiles joined with auth e-mail)
# ---------------------------------------------------------------------
class User(Record):
    full_name: Optional[str] = None
    email: Optional[str] = None
    permission: Role = Role.READ
    status: UserStatus = UserStatus.ACTIVE

    @field_validator("permission", mode="before")
    @classmethod
    def known_role(cls, value):
        return Role.parse(value)


class UserInput(EntityInput):
    full_name: str = Field(min_length=1)
    email: EmailStr
    permission: Role
    status: UserStatus = UserStatus.ACTIVE
    password: Optional[str] = None
    confirm_password: Optional[str] = None
    is_edit: bool = False

    @model_validator(mode="after")
    def password_rules(self) -> "UserInput":
        if self.is_edit and not self.password:
            return self
        password = self.password or ""
        if not password:
            raise ValueError("Password is required.")
        if len(password) < 8:
            raise ValueError("Password must be at least 8 characters long.")
        if not re.search(r"[a-z]", password):
            raise ValueError("Password must contain at least one lowercase letter.")
        if not re.search(r"\d", password):
            raise ValueError("Password must contain at least one number.")
        if password != (self.confirm_password or ""):
            raise ValueError("Passwords don't match.")
        return self


# ---------------------------------------------------------------------
# Error reporting
# ---------------------------------------------------------------------
def error_fields(exc: ValidationError) -> Dict[str, str]:
    """Field name -> first message. Model-level errors are reported under "__all__"."""
    fields: Dict[str, str] = {}
    for error in exc.errors():
        name = ".".join(str(part) for part in error.get("loc", ())) or "__all__"
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        fields.setdefault(name, message)
    return fields


def error_summary(exc: ValidationError) -> str:
    parts = []
    for name, message in error_fields(exc).items():
        parts.append(message if name == "__all__" else f"{name.replace('_', ' ')}: {message}")
    return "; ".join(parts)
