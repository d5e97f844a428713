"""
Readiness condition evaluation.

Conditions are re-evaluated in full on every tick. Both kinds are monotonic
once true (captured output only grows and time only advances), so
re-evaluation never un-readies an instance.
"""

from typing import Iterable, Mapping, Union

from ggx_testkit.types import FixedDelay, LogPattern, ReadinessCondition, Stream

Output = Union[bytes, str]


def _as_text(output: Output) -> str:
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def is_satisfied(
    condition: ReadinessCondition,
    output: Mapping[Stream, Output],
    started_at: float,
    now: float,
) -> bool:
    """
    Check one readiness condition.

    Args:
        condition: Condition to check
        output: Everything captured so far, per stream, since the instance started
        started_at: Clock reading when the instance was started
        now: Current clock reading

    Returns:
        True if the condition currently holds
    """
    if isinstance(condition, LogPattern):
        captured = output.get(condition.stream, b"")
        return condition.pattern in _as_text(captured)
    if isinstance(condition, FixedDelay):
        return now - started_at >= condition.duration
    raise TypeError(f"Unknown readiness condition: {condition!r}")


def all_satisfied(
    conditions: Iterable[ReadinessCondition],
    output: Mapping[Stream, Output],
    started_at: float,
    now: float,
) -> bool:
    """True when every condition holds at `now`; an empty list is always satisfied"""
    return all(is_satisfied(c, output, started_at, now) for c in conditions)


def pending(
    conditions: Iterable[ReadinessCondition],
    output: Mapping[Stream, Output],
    started_at: float,
    now: float,
) -> list[ReadinessCondition]:
    """Conditions that do not hold yet, in declaration order"""
    return [c for c in conditions if not is_satisfied(c, output, started_at, now)]


def streams_needed(conditions: Iterable[ReadinessCondition]) -> set[Stream]:
    """Output streams that must be captured to evaluate `conditions`"""
    return {c.stream for c in conditions if isinstance(c, LogPattern)}
