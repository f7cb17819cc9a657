# bookstore_requests/services/type_registry.py
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from bookstore_requests.core.errors import UnknownRequestType
from bookstore_requests.models.common import (
    ALLOWED_TRANSITIONS,
    BOOK_HOLD_STATUSES,
    BOOK_HOLD_TRANSITIONS,
    COMMON_STATUSES,
    REQUEST_TYPES,
    REQUIRED_CREATION_FIELDS,
    REQUIRED_FIELDS_PER_STATUS,
)


@dataclass(frozen=True)
class TypeConfig:
    required_creation_fields: Tuple[str, ...]
    possible_statuses: Tuple[str, ...]
    status_transitions: Mapping[str, FrozenSet[str]]
    required_fields_per_status: Mapping[str, Tuple[str, ...]]

    def __post_init__(self):
        known = set(self.possible_statuses)
        for source, targets in self.status_transitions.items():
            unknown = ({source} | set(targets)) - known
            if unknown:
                raise ValueError(f"Transition table references unknown statuses: {sorted(unknown)}")
        unknown = set(self.required_fields_per_status) - known
        if unknown:
            raise ValueError(f"Required fields configured for unknown statuses: {sorted(unknown)}")


def _build_config(request_type: str, fields_per_status: Mapping[str, Iterable[str]]) -> TypeConfig:
    if request_type == "book_hold":
        statuses, transitions = BOOK_HOLD_STATUSES, BOOK_HOLD_TRANSITIONS
    else:
        statuses, transitions = COMMON_STATUSES, ALLOWED_TRANSITIONS
    return TypeConfig(
        required_creation_fields=tuple(REQUIRED_CREATION_FIELDS[request_type]),
        possible_statuses=tuple(statuses),
        status_transitions=MappingProxyType({k: frozenset(v) for k, v in transitions.items()}),
        required_fields_per_status=MappingProxyType({k: tuple(v) for k, v in fields_per_status.items()}),
    )


def default_type_configs() -> Dict[str, TypeConfig]:
    return {t: _build_config(t, REQUIRED_FIELDS_PER_STATUS[t]) for t in REQUEST_TYPES}


class TypeRegistry:
    """Read-only per-type configuration, built once at startup.

    ``overrides`` replaces required-field lists per status, e.g.
    ``{"book_hold": {"PAID": ["payment_method", "order_number"]}}``.
    """

    def __init__(
        self,
        configs: Optional[Mapping[str, TypeConfig]] = None,
        overrides: Optional[Mapping[str, Mapping[str, Iterable[str]]]] = None,
    ):
        base = dict(configs) if configs is not None else default_type_configs()
        for request_type, per_status in (overrides or {}).items():
            cfg = base.get(request_type)
            if cfg is None:
                raise UnknownRequestType(request_type)
            merged = dict(cfg.required_fields_per_status)
            merged.update({status: tuple(fields) for status, fields in per_status.items()})
            base[request_type] = TypeConfig(
                required_creation_fields=cfg.required_creation_fields,
                possible_statuses=cfg.possible_statuses,
                status_transitions=cfg.status_transitions,
                required_fields_per_status=MappingProxyType(merged),
            )
        self._configs: Mapping[str, TypeConfig] = MappingProxyType(base)

    def request_types(self) -> Tuple[str, ...]:
        return tuple(self._configs)

    def get_config(self, request_type: str) -> TypeConfig:
        try:
            return self._configs[request_type]
        except KeyError:
            raise UnknownRequestType(request_type) from None

    def get_required_creation_fields(self, request_type: str) -> Tuple[str, ...]:
        return self.get_config(request_type).required_creation_fields

    def get_possible_statuses(self, request_type: str) -> Tuple[str, ...]:
        return self.get_config(request_type).possible_statuses

    def get_transitions(self, request_type: str, status: str) -> FrozenSet[str]:
        return self.get_config(request_type).status_transitions.get(status, frozenset())

    def get_required_fields_for_status(self, request_type: str, status: str) -> Tuple[str, ...]:
        return self.get_config(request_type).required_fields_per_status.get(status, ())

    def is_terminal(self, request_type: str, status: str) -> bool:
        return not self.get_transitions(request_type, status)

    def is_transition_allowed(self, request_type: str, from_status: str, to_status: str) -> bool:
        return to_status in self.get_transitions(request_type, from_status)

    def describe_type(self, request_type: str) -> dict:
        """Plain-dict dump of one type for the API."""
        cfg = self.get_config(request_type)
        return {
            "required_creation_fields": list(cfg.required_creation_fields),
            "possible_statuses": list(cfg.possible_statuses),
            "status_transitions": {s: sorted(t) for s, t in cfg.status_transitions.items()},
            "required_fields_per_status": {s: list(f) for s, f in cfg.required_fields_per_status.items()},
        }

    def describe(self) -> Dict[str, dict]:
        return {request_type: self.describe_type(request_type) for request_type in self._configs}
