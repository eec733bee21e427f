"""Valid backend rows for every entity kind."""

from __future__ import annotations

from typing import Any, Dict

_STAMPS = {"created_at": "2024-05-01T10:00:00+00:00", "updated_at": "2024-05-01T10:00:00+00:00"}

SAMPLE_ROWS: Dict[str, Dict[str, Any]] = {
    "client": {
        "id": "client-1", "client_code": "C001", "contact_name": "Asha Rao",
        "contact_email": "asha@example.com", "company_name": "Rao Traders", "created_by": "user-1", **_STAMPS,
    },
    "lead": {
        "id": "lead-1", "contact_name": "Ben Ito", "contact_email": "ben@example.com",
        "source": "website", "status": "new", "created_by": "user-1", **_STAMPS,
    },
    "quote": {
        "id": "quote-1", "requirement_id": "req-1", "client_id": "client-1", "quote_number": "Q-100",
        "currency_code": "INR", "default_margin_pct": 12.5, "subtotal_cost": 100.0, "subtotal_price": 112.5,
        "tax_amount": 0.0, "total_price": 112.5, "status": "draft", "created_by": "user-1", **_STAMPS,
    },
    "vendor": {
        "id": "vendor-1", "vendor_code": "V001", "company_name": "Acme Supplies", "status": "active", **_STAMPS,
    },
    "sales_order": {
        "id": "so-1", "client_id": "client-1", "order_number": "SO-1", "status": "draft",
        "order_date": "2024-05-02", "currency_code": "INR", "total_cost": 50.0, "total_price": 80.0,
        "created_by": "user-1", **_STAMPS,
    },
    "requirement": {
        "id": "req-1", "client_id": "client-1", "title": "Laptops", "status": "new",
        "created_by": "user-1", **_STAMPS,
    },
    "vendor_quote": {
        "id": "vq-1", "requirement_id": "req-1", "vendor_id": "vendor-1", "currency_code": "INR",
        "base_cost": 90.0, "additional_costs": 10.0, "total_cost": 100.0, "status": "received", **_STAMPS,
    },
    "expense": {
        "id": "exp-1", "executive_id": "user-1", "category_code": "cab", "amount": 25.0,
        "currency_code": "INR", "expense_date": "2024-05-03", "status": "submitted", **_STAMPS,
    },
    "user": {
        "id": "user-2", "full_name": "Dana Admin", "email": "dana@example.com",
        "permission": "admin", "status": "active",
    },
}
