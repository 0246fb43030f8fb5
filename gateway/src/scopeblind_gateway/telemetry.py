# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, Field

from .verifier import Rejected, Unreachable, VerificationOutcome, Verified

logger = logging.getLogger(__name__)

MARKER = "_scopeblind"


class TelemetryAction(str, Enum):
    no_proof = "no_proof"
    verify_failed = "verify_failed"
    verified = "verified"
    verifier_error = "verifier_error"


class TelemetryEvent(BaseModel):
    action: TelemetryAction
    method: str
    path: str
    ip: str = "unknown"
    ts: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: Optional[str] = None
    status: Optional[int] = None
    error: Optional[str] = None
    remaining: Optional[int] = None

    def to_log_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {MARKER: True}
        record.update(self.model_dump(mode="json", exclude_none=True))
        return record


def build_event(
    outcome: Optional[VerificationOutcome],
    *,
    method: str,
    path: str,
    ip: str,
    request_id: Optional[str] = None,
) -> TelemetryEvent:
    """Build the event for a protected request; `outcome` is None when no proof was sent."""
    base = {"method": method, "path": path, "ip": ip, "request_id": request_id}
    if outcome is None:
        return TelemetryEvent(action=TelemetryAction.no_proof, **base)
    if isinstance(outcome, Verified):
        return TelemetryEvent(action=TelemetryAction.verified, remaining=outcome.remaining, **base)
    if isinstance(outcome, Rejected):
        return TelemetryEvent(
            action=TelemetryAction.verify_failed,
            status=outcome.status_code,
            error=outcome.reason,
            **base,
        )
    if isinstance(outcome, Unreachable):
        return TelemetryEvent(action=TelemetryAction.verifier_error, error=outcome.cause, **base)
    raise TypeError(f"unhandled verification outcome: {type(outcome).__name__}")


def emit_event(event: TelemetryEvent) -> None:
    logger.info(json.dumps(event.to_log_record(), separators=(",", ":")))


def _parse_record(line: str) -> Optional[Dict[str, Any]]:
    start = line.find("{")
    if start < 0:
        return None
    try:
        record = json.loads(line[start:])
    except ValueError:
        return None
    if not isinstance(record, dict) or record.get(MARKER) is not True:
        return None
    return record


def summarize_events(lines: Iterable[str]) -> Dict[str, Any]:
    """Count telemetry actions found in log lines.

    Lines may carry a logging prefix before the JSON object; anything that is
    not a telemetry record is skipped. `would_block` is the number of
    requests enforcement would have rejected regardless of fallback policy.
    """
    counts = {a.value: 0 for a in TelemetryAction}
    errors: Dict[str, int] = {}
    for line in lines:
        record = _parse_record(line)
        if record is None:
            continue
        action = record.get("action")
        if action not in counts:
            continue
        counts[action] += 1
        if action == TelemetryAction.verify_failed.value:
            reason = str(record.get("error") or "unknown")
            errors[reason] = errors.get(reason, 0) + 1

    total = sum(counts.values())
    return {
        "total": total,
        "actions": counts,
        "would_block": counts["no_proof"] + counts["verify_failed"],
        "verifier_errors": counts["verifier_error"],
        "failure_reasons": errors,
    }
