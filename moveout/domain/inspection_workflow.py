# moveout/domain/inspection_workflow.py
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Mapping, Optional

from .condition_cost import resolve_damage_cost
from .errors import (
    CONDITION_UNSET,
    DAMAGE_COST_REQUIRED,
    METER_READING_MISSING,
    InvalidTransitionError,
    PreconditionError,
    ValidationError,
    Violation,
)
from .models import (
    AssetInspection,
    ConditionStatus,
    InspectionItem,
    InspectionStatus,
    Meter,
    MeterReading,
    parse_condition,
)

# -----------------------------------------------------------------------------
# Inspection lifecycle
# -----------------------------------------------------------------------------
#   PENDING --start--> IN_PROGRESS --complete--> COMPLETED
#   PENDING | IN_PROGRESS --cancel--> CANCELLED
# COMPLETED and CANCELLED end the workflow. Item edits only while IN_PROGRESS.
# A COMPLETED inspection can be approved or rejected (with a reason).
# -----------------------------------------------------------------------------

TRANSITIONS: dict[str, dict[InspectionStatus, InspectionStatus]] = {
    "start": {InspectionStatus.PENDING: InspectionStatus.IN_PROGRESS},
    "complete": {InspectionStatus.IN_PROGRESS: InspectionStatus.COMPLETED},
    "cancel": {
        InspectionStatus.PENDING: InspectionStatus.CANCELLED,
        InspectionStatus.IN_PROGRESS: InspectionStatus.CANCELLED,
    },
}

TERMINAL = frozenset({InspectionStatus.COMPLETED, InspectionStatus.CANCELLED})


def next_status(current: InspectionStatus, action: str) -> InspectionStatus:
    table = TRANSITIONS.get(action)
    if table is None:
        raise ValueError(f"unknown inspection action: {action}")
    nxt = table.get(current)
    if nxt is None:
        raise InvalidTransitionError(current.value, action)
    return nxt


def ensure_editable(inspection: AssetInspection) -> None:
    if inspection.status != InspectionStatus.IN_PROGRESS:
        raise InvalidTransitionError(inspection.status.value, "update items of")


# Approval happens after completion. The status an approved or rejected
# inspection ends up in belongs to the inspection store.


def ensure_reviewable(inspection: AssetInspection, action: str) -> None:
    if inspection.status != InspectionStatus.COMPLETED:
        raise InvalidTransitionError(inspection.status.value, action)


def rejection_reason(notes: Optional[str]) -> str:
    text = (notes or "").strip()
    if not text:
        raise ValidationError("rejection_notes", "a rejection needs a reason")
    return text


# -----------------------------------------------------------------------------
# Item updates
# -----------------------------------------------------------------------------


def _damage_amount(value: object, item_id: str) -> Optional[float]:
    if value is None:
        return None
    try:
        v = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValidationError("damage_cost", f"item {item_id}: damage cost must be a number, got {value!r}")
    if math.isnan(v) or math.isinf(v) or v < 0:
        raise ValidationError("damage_cost", f"item {item_id}: damage cost must be a finite number >= 0")
    return v


def apply_item_update(
    item: InspectionItem,
    *,
    condition: object,
    notes: Optional[str] = None,
    damage_cost: object = None,
) -> InspectionItem:
    """
    Return the item with a new condition and cost.

    An empty condition is rejected rather than defaulted. Without an explicit
    damage cost the suggested one is used, unless the item already carries a
    manually entered amount.
    """
    cond = parse_condition(condition)
    if not cond.is_set:
        raise ValidationError("condition_status", f"item {item.id} ({item.label}): condition status is required")

    override = _damage_amount(damage_cost, item.id)
    cost = resolve_damage_cost(cond, item.reference_price, current=item.damage_cost, override=override)

    return replace(
        item,
        condition=cond,
        damage_cost=cost,
        notes=notes if notes is not None else item.notes,
    )


def finalize_items(items: Iterable[InspectionItem]) -> list[InspectionItem]:
    """Mark every item checked; costs are carried over untouched."""
    return [replace(it, checked=True) for it in items]


# -----------------------------------------------------------------------------
# Completion gate
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ReadingInput:
    meter: Meter
    curr_index: float

    @property
    def prev_index(self) -> float:
        return float(self.meter.last_reading or 0.0)


def parse_readings(meters: Iterable[Meter], indexes: Mapping[str, object]) -> list[ReadingInput]:
    """
    Pair submitted indexes with the unit's meters.

    Malformed values and indexes below the meter's previous reading are
    validation errors; meters without a submitted index are skipped here and
    reported by the completion gate.
    """
    out: list[ReadingInput] = []
    by_id = {m.id: m for m in meters}

    for meter_id in indexes:
        if meter_id not in by_id:
            raise ValidationError("readings", f"meter {meter_id} does not belong to this unit")

    for m in by_id.values():
        raw = indexes.get(m.id)
        if raw is None or raw == "":
            continue
        try:
            curr = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise ValidationError("readings", f"meter {m.label}: index must be a number, got {raw!r}")
        if math.isnan(curr) or math.isinf(curr) or curr < 0:
            raise ValidationError("readings", f"meter {m.label}: index must be a finite number >= 0")
        prev = float(m.last_reading or 0.0)
        if curr < prev:
            raise ValidationError(
                "readings",
                f"meter {m.label}: index {curr:g} is below the previous reading {prev:g}",
            )
        out.append(ReadingInput(meter=m, curr_index=curr))
    return out


def completion_violations(
    inspection: AssetInspection,
    *,
    meters: Iterable[Meter] = (),
    readings: Iterable[ReadingInput] = (),
) -> list[Violation]:
    violations: list[Violation] = []

    for it in inspection.items:
        if not it.condition.is_set:
            violations.append(
                Violation(CONDITION_UNSET, it.id, f"item {it.label}: condition status is not set")
            )
        elif it.condition != ConditionStatus.GOOD and not (it.damage_cost is not None and it.damage_cost.amount > 0):
            violations.append(
                Violation(
                    DAMAGE_COST_REQUIRED,
                    it.id,
                    f"item {it.label}: condition {it.condition.value} requires a damage cost > 0",
                )
            )

    read = {r.meter.id for r in readings if r.curr_index > 0}
    for m in meters:
        if m.id not in read:
            violations.append(
                Violation(METER_READING_MISSING, m.id, f"meter {m.label}: no reading > 0 for the current cycle")
            )

    return violations


def check_completion(
    inspection: AssetInspection,
    *,
    meters: Iterable[Meter] = (),
    readings: Iterable[ReadingInput] = (),
) -> None:
    next_status(inspection.status, "complete")
    violations = completion_violations(inspection, meters=meters, readings=readings)
    if violations:
        raise PreconditionError(violations)


def build_readings(readings: Iterable[ReadingInput], *, cycle_id: str, reading_date: date) -> list[MeterReading]:
    return [
        MeterReading(
            meter_id=r.meter.id,
            cycle_id=cycle_id,
            prev_index=r.prev_index,
            curr_index=r.curr_index,
            reading_date=reading_date,
        )
        for r in readings
    ]
