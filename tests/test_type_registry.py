from types import MappingProxyType

import pytest

from bookstore_requests.core.errors import UnknownRequestType
from bookstore_requests.models.common import REQUEST_TYPES
from bookstore_requests.services.type_registry import TypeConfig, TypeRegistry


def test_every_request_type_is_configured():
    registry = TypeRegistry()
    assert set(registry.request_types()) == set(REQUEST_TYPES)


def test_unknown_type_raises():
    registry = TypeRegistry()
    with pytest.raises(UnknownRequestType) as exc:
        registry.get_config("gift_wrap")
    assert exc.value.invalid == {"type": "Unknown request type: gift_wrap"}


def test_creation_fields_per_type():
    registry = TypeRegistry()
    assert registry.get_required_creation_fields("book_hold") == ("customer_name", "customer_contact", "isbn", "details")
    assert "condition" in registry.get_required_creation_fields("out_of_print")
    assert "vendor_publisher" in registry.get_required_creation_fields("special_order")


def test_required_fields_for_status():
    registry = TypeRegistry()
    assert registry.get_required_fields_for_status("special_order", "ORDERED") == (
        "ordered_by",
        "order_method",
        "estimated_arrival",
    )
    assert registry.get_required_fields_for_status("out_of_print", "RECEIVED") == ("arrival_date", "actual_cost")
    assert registry.get_required_fields_for_status("personalization", "PAID") == ("payment_method", "payment_amount")
    # no fields configured for CANCELLED
    assert registry.get_required_fields_for_status("bulk_order", "CANCELLED") == ()


def test_personalization_collects_work_details_when_ordered():
    registry = TypeRegistry()
    assert registry.get_required_fields_for_status("personalization", "ORDERED") == (
        "personalization_details",
        "estimated_completion",
    )


def test_book_hold_paid_requires_payment_and_order_number():
    registry = TypeRegistry()
    assert registry.get_required_fields_for_status("book_hold", "PAID") == ("payment_method", "order_number")


def test_overrides_replace_per_status_fields():
    registry = TypeRegistry(overrides={"book_hold": {"PAID": ["payment_method"]}})
    assert registry.get_required_fields_for_status("book_hold", "PAID") == ("payment_method",)
    # untouched statuses keep their defaults
    assert registry.get_required_fields_for_status("book_hold", "COMPLETED") == ("completion_date",)
    assert TypeRegistry().get_required_fields_for_status("book_hold", "PAID") == ("payment_method", "order_number")


def test_overrides_for_unknown_type_are_rejected():
    with pytest.raises(UnknownRequestType):
        TypeRegistry(overrides={"gift_wrap": {"NEW": ["ribbon"]}})


def test_overrides_for_unknown_status_are_rejected():
    with pytest.raises(ValueError):
        TypeRegistry(overrides={"book_hold": {"RECEIVED": ["arrival_date"]}})


def test_config_rejects_transitions_to_unknown_statuses():
    with pytest.raises(ValueError):
        TypeConfig(
            required_creation_fields=("customer_name",),
            possible_statuses=("NEW", "COMPLETED"),
            status_transitions=MappingProxyType({"NEW": frozenset({"SHIPPED"})}),
            required_fields_per_status=MappingProxyType({}),
        )


def test_registry_is_read_only():
    registry = TypeRegistry()
    cfg = registry.get_config("special_order")
    with pytest.raises(TypeError):
        cfg.status_transitions["NEW"] = frozenset({"COMPLETED"})
    with pytest.raises(AttributeError):
        cfg.possible_statuses = ("NEW",)


def test_describe_is_json_friendly():
    described = TypeRegistry().describe()
    assert described["book_hold"]["status_transitions"]["NEW"] == ["CANCELLED", "PAID"]
    assert described["special_order"]["required_fields_per_status"]["PAID"] == ["payment_method", "order_number"]
