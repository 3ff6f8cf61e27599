"""Policies and modes used across subsystem boundaries."""

from enum import StrEnum


class JoinPolicy(StrEnum):
    """What the temporal join does when no related version overlaps.

    OUTER is the default: the row is kept with a null foreign PIT hook
    and its interval unchanged, so unmatched references never vanish.
    """

    INNER = "inner"
    OUTER = "outer"


class OrphanPolicy(StrEnum):
    """How an inner join treats a foreign hook with no overlapping version."""

    WARN = "warn"
    FAIL = "fail"


class TemporalMode(StrEnum):
    """Read modes over the unified bridge.

    Values:
        AS_OF: Rows valid at a given instant
        AS_IS: Rows that are current
        AS_OF_EVENT: Rows valid on the calendar date of their own event
    """

    AS_OF = "as_of"
    AS_IS = "as_is"
    AS_OF_EVENT = "as_of_event"
