# bookstore_requests/services/metrics_service.py
from __future__ import annotations
from collections import Counter
from typing import Any, Dict, Iterable

from bookstore_requests.models.common import OPEN_STATES, PRIORITY_WEIGHT
from bookstore_requests.models.request import RequestRecord
from bookstore_requests.utils.mongo_helpers import as_utc


def calculate_metrics(records: Iterable[RequestRecord]) -> Dict[str, Any]:
    records = list(records)
    by_status = Counter(r.status for r in records)
    total_weight = sum(PRIORITY_WEIGHT.get(r.priority, 2) for r in records)

    per_day = Counter(as_utc(r.created_at).date().isoformat() for r in records)

    return {
        "total_requests": len(records),
        "pending_requests": by_status.get("NEW", 0),
        "in_progress_requests": sum(by_status.get(s, 0) for s in OPEN_STATES),
        "completed_requests": by_status.get("COMPLETED", 0),
        "cancelled_requests": by_status.get("CANCELLED", 0),
        "requests_by_status": dict(by_status),
        "requests_by_type": dict(Counter(r.type for r in records)),
        "requests_by_priority": dict(Counter(r.priority for r in records)),
        "average_priority": round(total_weight / len(records), 2) if records else 0,
        "requests_by_day": dict(sorted(per_day.items())),
    }
