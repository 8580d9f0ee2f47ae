"""Delta-based activity detection over consecutive account snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..config import constants
from ..etl.models import ActivityEvent, ActivityType, Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectorState:
    """Last emission time per activity type for one account."""

    last_fired: Mapping[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"last_fired": dict(self.last_fired)}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "DetectorState":
        if not raw:
            return cls()
        return cls(last_fired={str(k): float(v) for k, v in (raw.get("last_fired") or {}).items()})


@dataclass(frozen=True)
class ActivityDetection:
    events: tuple[ActivityEvent, ...]
    state: DetectorState
    baseline: bool = False


def infer_energy_source(delta: float) -> str:
    if delta <= -constants.ENERGY_SOURCE_XANAX_DROP:
        return "xanax"
    if delta <= -constants.ENERGY_SOURCE_GYM_DROP:
        return "gym"
    return "activity"


class _Emitter:
    def __init__(
        self,
        account_id: str,
        now: float,
        last_fired: dict[str, float],
        cooldowns: Mapping[str, float],
    ) -> None:
        self.account_id = account_id
        self.now = now
        self.last_fired = last_fired
        self.cooldowns = cooldowns
        self.events: list[ActivityEvent] = []

    def ready(self, kind: ActivityType) -> bool:
        last = self.last_fired.get(kind.value)
        if last is None:
            return True
        window = self.cooldowns.get(kind.value, constants.DEFAULT_EVENT_COOLDOWN)
        if self.now - last < window:
            logger.debug("%s for %s absorbed by cooldown", kind.value, self.account_id)
            return False
        return True

    def emit(
        self,
        kind: ActivityType,
        delta: float | None = None,
        current: float | None = None,
        **details: Any,
    ) -> None:
        if not self.ready(kind):
            return
        self.events.append(
            ActivityEvent(
                type=kind,
                occurred_at=self.now,
                account_id=self.account_id,
                delta=delta,
                current=current,
                details=details,
            )
        )
        self.last_fired[kind.value] = self.now


class ActivityDetector:
    """Diff two snapshots into typed, cooldown-gated activity events.

    The detector holds no per-account state of its own: the cooldown table is
    passed in as a ``DetectorState`` and a new one is returned, so the caller
    decides when a detection is committed.
    """

    def __init__(
        self,
        thresholds: Mapping[str, float] | None = None,
        cooldowns: Mapping[str, float] | None = None,
    ) -> None:
        merged = dict(constants.DEFAULT_THRESHOLDS)
        merged.update(thresholds or {})
        self._thresholds = merged
        self._cooldowns = dict(constants.EVENT_COOLDOWNS)
        self._cooldowns.update(cooldowns or {})

    def detect(
        self,
        prev: Snapshot | None,
        curr: Snapshot,
        state: DetectorState | None = None,
    ) -> ActivityDetection:
        state = state or DetectorState()
        if prev is None:
            return ActivityDetection(events=(), state=state, baseline=True)

        emitter = _Emitter(curr.account_id, curr.taken_at, dict(state.last_fired), self._cooldowns)
        self._detect_energy(prev, curr, emitter)
        self._detect_nerve(prev, curr, emitter)
        self._detect_travel(prev, curr, emitter)
        self._detect_inventory(prev, curr, emitter)
        self._detect_wallet(prev, curr, emitter)
        self._detect_job(prev, curr, emitter)
        return ActivityDetection(
            events=tuple(emitter.events),
            state=DetectorState(last_fired=emitter.last_fired),
        )

    def _detect_energy(self, prev: Snapshot, curr: Snapshot, emitter: _Emitter) -> None:
        delta = curr.energy - prev.energy
        if delta < -self._thresholds["energy_change"]:
            emitter.emit(
                ActivityType.ENERGY_USED,
                delta=delta,
                current=curr.energy,
                source=infer_energy_source(delta),
            )
        if curr.energy >= curr.energy_max and prev.energy < prev.energy_max:
            emitter.emit(
                ActivityType.ENERGY_FULL,
                current=curr.energy,
                maximum=curr.energy_max,
            )

    def _detect_nerve(self, prev: Snapshot, curr: Snapshot, emitter: _Emitter) -> None:
        delta = curr.nerve - prev.nerve
        if delta < -self._thresholds["nerve_change"]:
            emitter.emit(ActivityType.NERVE_USED, delta=delta, current=curr.nerve)
        crimes = curr.criminal_offenses - prev.criminal_offenses
        if crimes > 0:
            emitter.emit(
                ActivityType.CRIME_REWARD,
                delta=crimes,
                current=curr.criminal_offenses,
                crimes_completed=crimes,
                nerve_used=abs(delta),
            )

    def _detect_travel(self, prev: Snapshot, curr: Snapshot, emitter: _Emitter) -> None:
        if curr.is_traveling and not prev.is_traveling:
            emitter.emit(
                ActivityType.TRAVEL_DEPART,
                current=curr.travel_time_left,
                destination=curr.location,
            )
        if prev.is_traveling and not curr.is_traveling:
            emitter.emit(
                ActivityType.TRAVEL_ARRIVE,
                location=curr.location,
                returned_home=curr.is_home,
            )

    def _detect_inventory(self, prev: Snapshot, curr: Snapshot, emitter: _Emitter) -> None:
        delta = curr.inventory_total - prev.inventory_total
        if abs(delta) < self._thresholds["inventory_change"]:
            return
        changes: list[dict[str, Any]] = []
        for key in sorted(set(prev.inventory) | set(curr.inventory)):
            diff = curr.inventory.get(key, 0) - prev.inventory.get(key, 0)
            if diff:
                changes.append({"item_id": key, "delta": diff})
        if delta > 0:
            emitter.emit(
                ActivityType.TRADE_BUY,
                delta=delta,
                current=curr.inventory_total,
                changes=[change for change in changes if change["delta"] > 0][:3],
            )
        else:
            emitter.emit(
                ActivityType.TRADE_SELL,
                delta=delta,
                current=curr.inventory_total,
                changes=[change for change in changes if change["delta"] < 0][:3],
            )

    def _detect_wallet(self, prev: Snapshot, curr: Snapshot, emitter: _Emitter) -> None:
        delta = curr.cash - prev.cash
        if abs(delta) >= self._thresholds["cash_change"]:
            emitter.emit(
                ActivityType.WALLET_CHANGE,
                delta=delta,
                current=curr.cash,
                direction="in" if delta > 0 else "out",
            )

    def _detect_job(self, prev: Snapshot, curr: Snapshot, emitter: _Emitter) -> None:
        delta = curr.job_points - prev.job_points
        if delta > 0:
            emitter.emit(
                ActivityType.JOB_POINTS,
                delta=delta,
                current=curr.job_points,
                position=curr.job_position,
            )
        if prev.job_position and curr.job_position != prev.job_position:
            emitter.emit(
                ActivityType.JOB_CHANGE,
                previous=prev.job_position,
                position=curr.job_position,
            )
