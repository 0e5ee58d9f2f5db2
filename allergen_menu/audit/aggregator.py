from __future__ import annotations

from collections import Counter
from typing import Any


def compute_webhook_stats(events: list[dict[str, Any]], recent: int = 20) -> dict[str, Any]:
    webhooks = [e for e in events if e["type"] == "webhook"]
    total = len(webhooks)

    outcome_counter: Counter[str] = Counter()
    for w in webhooks:
        outcome_counter[w.get("outcome", "unknown")] += 1

    # Top event types
    type_counter: Counter[str] = Counter()
    for w in webhooks:
        type_counter[w.get("event_type", "unknown")] += 1
    by_event_type = [{"name": n, "count": c} for n, c in type_counter.most_common(10)]

    skip_counter: Counter[str] = Counter()
    for w in webhooks:
        if w.get("outcome") == "skipped":
            skip_counter[w.get("reason") or "unknown"] += 1

    # Same event id delivered more than once
    id_counter: Counter[str] = Counter(
        w["event_id"] for w in webhooks if w.get("event_id")
    )
    redelivered = sorted(eid for eid, c in id_counter.items() if c > 1)

    processed = outcome_counter.get("processed", 0)

    return {
        "total": total,
        "by_outcome": {
            k: outcome_counter.get(k, 0)
            for k in ("processed", "skipped", "ignored", "rejected")
        },
        "by_event_type": by_event_type,
        "skip_reasons": dict(skip_counter),
        "redelivered_event_ids": redelivered,
        "processed_rate": round(processed / total * 100, 1) if total else 0.0,
        "recent": webhooks[-recent:][::-1],
    }
