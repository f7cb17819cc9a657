# bookstore_requests/models/common.py
from typing import Dict, FrozenSet, Literal, Tuple, get_args

RequestType = Literal[
    "special_order",
    "book_hold",
    "backorder_request",
    "out_of_print",
    "bulk_order",
    "personalization",
]
RequestStatus = Literal["NEW", "ORDERED", "RECEIVED", "NOTIFIED", "PAID", "COMPLETED", "CANCELLED"]
Priority = Literal["low", "standard", "high", "urgent"]
EventAction = Literal["REQUEST_CREATED", "STATUS_CHANGE", "FIELDS_ADDED"]

REQUEST_TYPES: Tuple[str, ...] = get_args(RequestType)
PRIORITIES: Tuple[str, ...] = get_args(Priority)

COMMON_STATUSES: Tuple[str, ...] = get_args(RequestStatus)
BOOK_HOLD_STATUSES: Tuple[str, ...] = ("NEW", "PAID", "COMPLETED", "CANCELLED")
TERMINAL_STATUSES: FrozenSet[str] = frozenset({"COMPLETED", "CANCELLED"})
OPEN_STATES = ["ORDERED", "RECEIVED", "NOTIFIED", "PAID"]

PRIORITY_WEIGHT = {"low": 1, "standard": 2, "high": 3, "urgent": 4}

# Fields that must be non-empty at intake
REQUIRED_CREATION_FIELDS: Dict[str, Tuple[str, ...]] = {
    "special_order": ("customer_name", "customer_contact", "vendor_publisher", "details", "date_needed"),
    "book_hold": ("customer_name", "customer_contact", "isbn", "details"),
    "backorder_request": ("customer_name", "customer_contact", "isbn", "details", "date_needed"),
    "out_of_print": ("customer_name", "customer_contact", "vendor_publisher", "details", "date_needed", "condition"),
    "bulk_order": ("customer_name", "customer_contact", "isbn", "details", "date_needed"),
    "personalization": ("customer_name", "customer_contact", "isbn", "details", "date_needed"),
}

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "NEW": frozenset({"ORDERED", "CANCELLED"}),
    "ORDERED": frozenset({"RECEIVED", "CANCELLED"}),
    "RECEIVED": frozenset({"NOTIFIED", "CANCELLED"}),
    "NOTIFIED": frozenset({"PAID", "CANCELLED"}),
    "PAID": frozenset({"COMPLETED", "CANCELLED"}),
    "COMPLETED": frozenset(),
    "CANCELLED": frozenset(),
}

BOOK_HOLD_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "NEW": frozenset({"PAID", "CANCELLED"}),
    "PAID": frozenset({"COMPLETED", "CANCELLED"}),
    "COMPLETED": frozenset(),
    "CANCELLED": frozenset(),
}

_ORDER_FLOW_FIELDS: Dict[str, Tuple[str, ...]] = {
    "ORDERED": ("ordered_by", "order_method", "estimated_arrival"),
    "RECEIVED": ("arrival_date",),
    "NOTIFIED": ("notification_method", "notification_date"),
    "PAID": ("payment_method", "order_number"),
    "COMPLETED": ("completion_date",),
}

REQUIRED_FIELDS_PER_STATUS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "special_order": dict(_ORDER_FLOW_FIELDS),
    "book_hold": {
        "PAID": ("payment_method", "order_number"),
        "COMPLETED": ("completion_date",),
    },
    "backorder_request": dict(_ORDER_FLOW_FIELDS),
    "out_of_print": {
        "ORDERED": ("source", "estimated_cost"),
        "RECEIVED": ("arrival_date", "actual_cost"),
        "NOTIFIED": ("notification_method", "notification_date"),
        "PAID": ("payment_method", "order_number"),
        "COMPLETED": ("completion_date",),
    },
    "bulk_order": dict(_ORDER_FLOW_FIELDS),
    "personalization": {
        "ORDERED": ("personalization_details", "estimated_completion"),
        "NOTIFIED": ("notification_method", "notification_date"),
        "PAID": ("payment_method", "payment_amount"),
        "COMPLETED": ("completion_date",),
    },
}
