"""
attendance_engines.punch_pairing -- Punch cleaning, labeling and pairing engine.

Responsibility:
    Convert a raw, possibly noisy punch list for one work date into a
    cleaned, directionally consistent punch list with an anomaly count:
    collapse duplicate re-scans, label untagged punches by matching them
    to the day's schedule events (or by positional alternation when there
    is no schedule), and pair labeled punches into in/out work periods.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import attendance_kernel/domain and the engine tracer.

Invariants enforced:
    - Punches carrying an explicit direction are never collapsed and never
      relabeled.
    - Duplicate collapse compares each untagged punch with the last *kept*
      untagged punch, so chains of rapid re-scans collapse to one.
    - Matching is greedy, event by event in temporal order, nearest punch
      first, ties going to the earliest punch.  It is deliberately not a
      minimum-cost assignment.
    - Every input punch ends up exactly once in either the labeled logs or
      the dropped list.
    - Pairing never yields two consecutive punches of the same direction:
      a repeated IN keeps the earliest, a repeated OUT keeps the latest.
    - Purity: every operation returns new tuples; inputs are never mutated.

Failure modes:
    - None raised for anomalous input.  Unmatchable punches are dropped and
      counted; the caller decides whether the day needs review.

Usage:
    from attendance_engines.punch_pairing import PunchPairProcessor

    processor = PunchPairProcessor(duplicate_threshold_minutes=2)
    processed = processor.process(raw_punches, schedule_events)
    processed.first_in, processed.last_out, processed.dropped_count
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from attendance_engines.tracer import traced_engine
from attendance_kernel.domain.punches import (
    Direction,
    LabeledPunch,
    MatchResult,
    ProcessedPunches,
    PunchPair,
    RawPunch,
    ScheduleEvent,
)
from attendance_kernel.logging_config import get_logger

logger = get_logger("engines.punch_pairing")

DEFAULT_DUPLICATE_THRESHOLD_MINUTES = 2
DEFAULT_MATCH_TOLERANCE_MINUTES = 90


def _opposite(direction: Direction) -> Direction:
    return Direction.OUT if direction is Direction.IN else Direction.IN


def _by_timestamp(punches: Sequence[RawPunch]) -> list[RawPunch]:
    # sorted() is stable: same-instant punches keep feed order
    return sorted(punches, key=lambda p: p.timestamp)


def _distance(a: datetime, b: datetime) -> timedelta:
    return abs(a - b)


class PunchPairProcessor:
    """
    Stateless punch processor.

    Contract:
        Pure functions -- no I/O, no database access, no clock.
        Thresholds are fixed at construction; one instance may be shared
        across threads.
    Guarantees:
        - ``collapse_duplicate_scans`` returns punches in timestamp order.
        - ``match_to_schedule`` partitions its input into labeled logs and
          dropped punches.
        - ``process`` yields pairs whose only open pair, if any, is the last.
    Non-goals:
        - Does not decide whether a day is present/absent; see
          attendance_modules.dtr.service.
    """

    def __init__(
        self,
        duplicate_threshold_minutes: int = DEFAULT_DUPLICATE_THRESHOLD_MINUTES,
        match_tolerance_minutes: int = DEFAULT_MATCH_TOLERANCE_MINUTES,
    ) -> None:
        if duplicate_threshold_minutes < 0:
            raise ValueError("duplicate_threshold_minutes cannot be negative")
        if match_tolerance_minutes <= 0:
            raise ValueError("match_tolerance_minutes must be positive")
        self._duplicate_threshold = timedelta(minutes=duplicate_threshold_minutes)
        self._tolerance = timedelta(minutes=match_tolerance_minutes)

    # ------------------------------------------------------------------
    # Duplicate collapse
    # ------------------------------------------------------------------

    def collapse_duplicate_scans(self, punches: Sequence[RawPunch]) -> tuple[RawPunch, ...]:
        """Drop untagged re-scans within the threshold of the last kept untagged scan."""
        kept: list[RawPunch] = []
        last_kept: RawPunch | None = None

        for punch in _by_timestamp(punches):
            if punch.has_direction:
                kept.append(punch)
                continue
            if (
                last_kept is not None
                and punch.timestamp - last_kept.timestamp <= self._duplicate_threshold
            ):
                continue
            kept.append(punch)
            last_kept = punch

        collapsed = len(punches) - len(kept)
        if collapsed:
            logger.debug("duplicate_scans_collapsed", extra={
                "input_count": len(punches),
                "collapsed_count": collapsed,
            })
        return tuple(kept)

    # ------------------------------------------------------------------
    # Direction inference (no schedule)
    # ------------------------------------------------------------------

    def infer_directions(self, punches: Sequence[RawPunch]) -> tuple[LabeledPunch, ...]:
        """Alternate IN/OUT by position.

        A punch that already has a direction keeps it and the alternation
        continues from it.
        """
        labeled: list[LabeledPunch] = []
        expected = Direction.IN
        for punch in _by_timestamp(punches):
            direction = punch.direction if punch.has_direction else expected
            labeled.append(LabeledPunch(punch, direction))
            expected = _opposite(direction)
        return tuple(labeled)

    # ------------------------------------------------------------------
    # Schedule matching
    # ------------------------------------------------------------------

    def match_to_schedule(
        self,
        punches: Sequence[RawPunch],
        schedule_events: Sequence[ScheduleEvent],
    ) -> MatchResult:
        """Label punches by nearest-match against the day's schedule events.

        1. Tagged punches pass through and consume their nearest unconsumed
           event of the same direction within tolerance.
        2. A single untagged punch is IN before the midpoint of the events,
           OUT otherwise.
        3. When every punch is untagged, the first punch takes the first IN
           event and the last punch the last OUT event.
        4. Remaining events, in order, each take the nearest unmatched
           punch within tolerance.  A punch strictly closer to a later open
           event that would itself pick it is left for that event.
        5. Whatever is still unmatched is dropped.
        """
        ordered = _by_timestamp(punches)
        events = sorted(schedule_events, key=lambda e: e.timestamp)
        if not events:
            return MatchResult(logs=self.infer_directions(ordered))

        labels: dict[int, LabeledPunch] = {}
        consumed: set[int] = set()

        for idx, punch in enumerate(ordered):
            if not punch.has_direction:
                continue
            event_idx = self._nearest_event(punch, events, consumed, punch.direction)
            matched = None
            if event_idx is not None:
                consumed.add(event_idx)
                matched = events[event_idx]
            labels[idx] = LabeledPunch(punch, punch.direction, matched)

        pool = [idx for idx, punch in enumerate(ordered) if not punch.has_direction]

        if len(ordered) == 1 and pool:
            labels[0] = self._label_single(ordered[0], events, consumed)
            pool = []
        elif len(pool) > 1 and len(pool) == len(ordered):
            self._match_boundaries(ordered, events, pool, consumed, labels)

        for event_idx, event in enumerate(events):
            if event_idx in consumed:
                continue
            choice = self._pick_candidate(event_idx, events, consumed, pool, ordered)
            if choice is None:
                continue
            labels[choice] = LabeledPunch(ordered[choice], event.expected_direction, event)
            pool.remove(choice)
            consumed.add(event_idx)

        dropped = tuple(ordered[idx] for idx in pool)
        if dropped:
            logger.info("unmatched_punches_dropped", extra={
                "dropped_count": len(dropped),
                "dropped_at": [p.timestamp for p in dropped],
                "event_count": len(events),
            })

        return MatchResult(
            logs=tuple(labels[idx] for idx in sorted(labels)),
            dropped=dropped,
        )

    def _nearest_event(
        self,
        punch: RawPunch,
        events: Sequence[ScheduleEvent],
        consumed: set[int],
        direction: Direction,
    ) -> int | None:
        best: int | None = None
        best_distance: timedelta | None = None
        for idx, event in enumerate(events):
            if idx in consumed or event.expected_direction is not direction:
                continue
            distance = _distance(punch.timestamp, event.timestamp)
            if distance > self._tolerance:
                continue
            if best_distance is None or distance < best_distance:
                best, best_distance = idx, distance
        return best

    def _label_single(
        self,
        punch: RawPunch,
        events: Sequence[ScheduleEvent],
        consumed: set[int],
    ) -> LabeledPunch:
        first, last = events[0].timestamp, events[-1].timestamp
        midpoint = first + (last - first) / 2
        direction = Direction.IN if punch.timestamp < midpoint else Direction.OUT

        open_events = [
            idx for idx, e in enumerate(events)
            if idx not in consumed and e.expected_direction is direction
        ]
        matched = None
        if open_events:
            idx = open_events[0] if direction is Direction.IN else open_events[-1]
            consumed.add(idx)
            matched = events[idx]
        return LabeledPunch(punch, direction, matched)

    def _match_boundaries(
        self,
        ordered: Sequence[RawPunch],
        events: Sequence[ScheduleEvent],
        pool: list[int],
        consumed: set[int],
        labels: dict[int, LabeledPunch],
    ) -> None:
        first_in = next(
            (i for i, e in enumerate(events)
             if i not in consumed and e.expected_direction is Direction.IN),
            None,
        )
        if first_in is not None:
            idx = pool.pop(0)
            labels[idx] = LabeledPunch(ordered[idx], Direction.IN, events[first_in])
            consumed.add(first_in)

        last_out = next(
            (i for i in reversed(range(len(events)))
             if i not in consumed and events[i].expected_direction is Direction.OUT),
            None,
        )
        if last_out is not None and pool:
            idx = pool.pop()
            labels[idx] = LabeledPunch(ordered[idx], Direction.OUT, events[last_out])
            consumed.add(last_out)

    def _candidates(
        self,
        event: ScheduleEvent,
        pool: Sequence[int],
        ordered: Sequence[RawPunch],
    ) -> list[int]:
        """Unmatched punches within tolerance, nearest first, earliest on ties."""
        scored = [
            (_distance(ordered[idx].timestamp, event.timestamp), idx)
            for idx in pool
        ]
        return [idx for distance, idx in sorted(scored) if distance <= self._tolerance]

    def _pick_candidate(
        self,
        event_idx: int,
        events: Sequence[ScheduleEvent],
        consumed: set[int],
        pool: Sequence[int],
        ordered: Sequence[RawPunch],
    ) -> int | None:
        event = events[event_idx]
        later = [
            idx for idx in range(event_idx + 1, len(events)) if idx not in consumed
        ]
        for candidate in self._candidates(event, pool, ordered):
            stamp = ordered[candidate].timestamp
            distance = _distance(stamp, event.timestamp)
            yielded = False
            for other_idx in later:
                other = events[other_idx]
                if _distance(stamp, other.timestamp) >= distance:
                    continue
                preferred = self._candidates(other, pool, ordered)
                if preferred and preferred[0] == candidate:
                    yielded = True
                    break
            if not yielded:
                return candidate
        return None

    # ------------------------------------------------------------------
    # Pairing
    # ------------------------------------------------------------------

    def pair_punches(
        self,
        labeled: Sequence[LabeledPunch],
    ) -> tuple[tuple[PunchPair, ...], tuple[LabeledPunch, ...], LabeledPunch | None]:
        """Pair labeled punches into work periods.

        Returns ``(pairs, superseded, unpaired_out)``.  A repeated IN is
        superseded by the open IN before it; a repeated OUT supersedes the
        previous pair's OUT.  An OUT with no IN before it is superseded once
        an IN turns up; when the day has no IN at all, the latest such OUT
        is returned as ``unpaired_out`` so the caller still sees when the
        employee left.
        """
        pairs: list[PunchPair] = []
        superseded: list[LabeledPunch] = []
        leading_outs: list[LabeledPunch] = []
        open_in: LabeledPunch | None = None

        for punch in sorted(labeled, key=lambda lp: lp.timestamp):
            if punch.direction is Direction.IN:
                if open_in is None:
                    open_in = punch
                    superseded.extend(leading_outs)
                    leading_outs = []
                else:
                    superseded.append(punch)
            elif open_in is not None:
                pairs.append(PunchPair(open_in, punch))
                open_in = None
            elif pairs:
                previous = pairs[-1]
                superseded.append(previous.time_out)
                pairs[-1] = PunchPair(previous.time_in, punch)
            else:
                leading_outs.append(punch)

        if open_in is not None:
            pairs.append(PunchPair(open_in))

        unpaired_out = None
        if leading_outs:
            superseded.extend(leading_outs[:-1])
            unpaired_out = leading_outs[-1]

        return tuple(pairs), tuple(superseded), unpaired_out

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    @traced_engine("punch_pairing", "1.0", fingerprint_fields=("punches", "schedule_events"))
    def process(
        self,
        punches: Sequence[RawPunch],
        schedule_events: Sequence[ScheduleEvent] | None = None,
    ) -> ProcessedPunches:
        """Collapse, label (match or infer), then pair."""
        collapsed = self.collapse_duplicate_scans(punches)

        if schedule_events:
            match = self.match_to_schedule(collapsed, schedule_events)
        else:
            match = MatchResult(logs=self.infer_directions(collapsed))

        pairs, superseded, unpaired_out = self.pair_punches(match.logs)

        result = ProcessedPunches(
            labeled=match.logs,
            pairs=pairs,
            dropped=match.dropped,
            superseded=superseded,
            collapsed_count=len(punches) - len(collapsed),
            unpaired_out=unpaired_out,
        )
        logger.debug("punches_processed", extra={
            "input_count": len(punches),
            "collapsed_count": result.collapsed_count,
            "labeled_count": len(match.logs),
            "dropped_count": result.dropped_count,
            "superseded_count": len(superseded),
            "pair_count": len(pairs),
            "matched_to_schedule": bool(schedule_events),
        })
        return result
