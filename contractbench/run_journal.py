# contractbench/run_journal.py
# Run Journal -- event-sourced record of one benchmark run.
#
# Scope: typed run events with a SHA-256 hash chain.
# Zero tolerance for lost events. No file IO. No global mutable state.
# All timestamps are caller-supplied. All hashes are deterministic.
#
# The journal is embedded in the run's result file by ReportWriter; it is
# never written on its own.
#
# Canonical import:
#   from contractbench.run_journal import RunJournal, JournalEvent, JournalError

# ===========================================================================
# SECTION 1 -- STDLIB IMPORTS
# ===========================================================================

import hashlib
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

# ===========================================================================
# SECTION 2 -- CONSTANTS
# ===========================================================================

_NAN_SENTINEL: str = "NaN_DETECTED"
_INF_SENTINEL: str = "Inf_DETECTED"

_HASH_SEP: str = "|"

# Previous-hash value for the first event of a journal.
GENESIS_HASH: str = "0" * 64

# Recognised event types. log_event() rejects anything else.
EVENT_TYPES: frozenset = frozenset({
    "RUN_STARTED",
    "CASE_STARTED",
    "CASE_COMPLETED",
    "CASE_SKIPPED",
    "CASE_TIMED_OUT",
    "CASE_ERRORED",
    "BASELINE_LOADED",
    "BASELINE_MISSING",
    "BASELINE_REJECTED",
    "BASELINE_SAVED",
    "BASELINE_SAVE_FAILED",
    "IO_ERROR",
    "RUN_FINISHED",
})

# ===========================================================================
# SECTION 3 -- DATACLASSES
# ===========================================================================

@dataclass(frozen=True)
class JournalEvent:
    """
    Immutable record of a single run event.

    Fields
    ------
    id        : "EVT-{counter:016d}", derived from the journal's counter.
    type      : One of EVENT_TYPES.
    timestamp : Caller-supplied datetime.
    data      : Sanitized payload. NaN/Inf floats replaced with sentinels.
    prev_hash : Hash of the preceding event, GENESIS_HASH for the first.
    hash      : SHA-256 over (id, type, timestamp, data, prev_hash).
    """
    id:        str
    type:      str
    timestamp: datetime
    data:      Dict[str, Any]
    prev_hash: str
    hash:      str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id":        self.id,
            "type":      self.type,
            "timestamp": self.timestamp.isoformat(),
            "data":      dict(self.data),
            "prev_hash": self.prev_hash,
            "hash":      self.hash,
        }


# ===========================================================================
# SECTION 4 -- INTERNAL HELPERS
# ===========================================================================

def _sanitize_numeric(value: Any) -> Any:
    if isinstance(value, float):
        if math.isnan(value):
            return _NAN_SENTINEL
        if math.isinf(value):
            return _INF_SENTINEL
    return value


def _sanitize_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a new dict with every float value passed through _sanitize_numeric()."""
    return {k: _sanitize_numeric(v) for k, v in data.items()}


def _compute_hash(
    event_id:   str,
    event_type: str,
    timestamp:  datetime,
    data:       Dict[str, Any],
    prev_hash:  str,
) -> str:
    """
    Deterministic SHA-256 hex digest for an event.

    Preimage, fields joined by "|":
        event_id, event_type, timestamp.isoformat(),
        repr(sorted(data.items())), prev_hash
    """
    sorted_items: str = repr(sorted(data.items()))
    preimage: str = _HASH_SEP.join(
        [event_id, event_type, timestamp.isoformat(), sorted_items, prev_hash]
    )
    return hashlib.sha256(preimage.encode("utf-8", errors="replace")).hexdigest()


def _make_event_id(counter: int) -> str:
    return "EVT-{:016d}".format(counter)


# ===========================================================================
# SECTION 5 -- RunJournal
# ===========================================================================

class RunJournal:
    """
    Append-only event journal for a single run.

    Determinism guarantees
    ----------------------
    - Timestamps are caller-supplied; never generated internally.
    - Event IDs come from a monotonic counter.
    - Each hash covers the previous event's hash, so reordering, removing
      or editing an event is detected by verify_chain().

    Zero lost events
    ----------------
    log_event() raises JournalError on any invariant violation instead of
    discarding the event.
    """

    def __init__(self) -> None:
        self._store: List[JournalEvent] = []
        self._counter: int = 0

    def log_event(self, event_type: str, data: Dict[str, Any], timestamp: datetime) -> str:
        """
        Record one event. Return the assigned event ID.

        Raises
        ------
        JournalError : unknown event_type, non-dict data, or a timestamp that
                       is missing, not a datetime, or earlier than the
                       previous event's.
        """
        if event_type not in EVENT_TYPES:
            raise JournalError("unknown event_type: {!r}".format(event_type))
        if not isinstance(data, dict):
            raise JournalError("data must be a dict; got: {}".format(type(data)))
        if timestamp is None:
            raise JournalError("timestamp must be caller-supplied; None is not permitted")
        if not isinstance(timestamp, datetime):
            raise JournalError(
                "timestamp must be a datetime instance; got: {}".format(type(timestamp))
            )
        if self._store and timestamp < self._store[-1].timestamp:
            raise JournalError(
                "timestamp {} precedes previous event at {}".format(
                    timestamp.isoformat(), self._store[-1].timestamp.isoformat()
                )
            )

        self._counter += 1
        event_id: str = _make_event_id(self._counter)
        sanitized: Dict[str, Any] = _sanitize_data(data)
        prev_hash: str = self._store[-1].hash if self._store else GENESIS_HASH
        event_hash: str = _compute_hash(event_id, event_type, timestamp, sanitized, prev_hash)

        self._store.append(JournalEvent(
            id=event_id,
            type=event_type,
            timestamp=timestamp,
            data=sanitized,
            prev_hash=prev_hash,
            hash=event_hash,
        ))
        return event_id

    def events(self, event_type: Optional[str] = None) -> List[JournalEvent]:
        """Events in insertion order, optionally restricted to one type."""
        if event_type is None:
            return list(self._store)
        return [e for e in self._store if e.type == event_type]

    def event_count(self) -> int:
        return len(self._store)

    @property
    def head_hash(self) -> str:
        return self._store[-1].hash if self._store else GENESIS_HASH

    def verify_chain(self) -> bool:
        """Recompute every hash and check the links. Pure read."""
        prev = GENESIS_HASH
        for event in self._store:
            if event.prev_hash != prev:
                return False
            expected = _compute_hash(event.id, event.type, event.timestamp, event.data, prev)
            if expected != event.hash:
                return False
            prev = event.hash
        return True

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._store]


# ===========================================================================
# SECTION 6 -- EXCEPTIONS
# ===========================================================================

class JournalError(Exception):
    """
    Raised by RunJournal when an invariant is violated.

    Never silently swallowed; a journal failure is an internal error.
    """
