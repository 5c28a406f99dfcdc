"""Operator evaluation shared by every probe backend.

Every probe reduces its observation to ``(present, observed)`` and hands it
to :func:`evaluate` together with the check's operator and FindData.

Rules:
    Exists / NotExists  ignore FindData; Exists passes iff the target is
                        present, NotExists passes iff it is absent.
    target absent       EqualTo/Contains pass (nothing to match);
                        NotEqualTo/NotContains are findings (the required
                        value is missing); GreaterThan/LessThan cannot be
                        compared (MissingData).
    target present      FindData and the observed value must both be
                        non-empty. GreaterThan/LessThan compare integers.
                        EqualTo/NotEqualTo compare integers when FindData is
                        an integer literal, trimmed strings otherwise.
                        Contains/NotContains test trimmed substrings.

EqualTo and NotEqualTo name the required state: EqualTo passes when the
observed value equals FindData, NotEqualTo when it differs. Contains,
NotContains, GreaterThan and LessThan name the finding: Contains fails when
FindData occurs in the observed value. Any evaluation error fails closed:
``check_pass`` is False.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from stewart.core.constants import ErrorKind, Operator


@dataclass(frozen=True)
class Evaluation:
    """Result of applying an operator; ``error`` is set when the probe must be reported unsuccessful."""

    check_pass: bool
    error: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None


_FAILED = {kind: Evaluation(False, kind) for kind in ErrorKind}

# Outcome for each comparison operator when the probed object does not exist
ABSENT_OUTCOME = {
    Operator.EQUAL_TO: Evaluation(True),
    Operator.CONTAINS: Evaluation(True),
    Operator.NOT_EQUAL_TO: Evaluation(False),
    Operator.NOT_CONTAINS: Evaluation(False),
    Operator.GREATER_THAN: _FAILED[ErrorKind.MISSING_DATA],
    Operator.LESS_THAN: _FAILED[ErrorKind.MISSING_DATA],
}


def parse_int(text: str) -> Optional[int]:
    """Parse a base-10 integer, tolerating surrounding whitespace."""
    try:
        return int(text.strip(), 10)
    except (ValueError, AttributeError):
        return None


def evaluate(
    operator: Union[str, Operator],
    present: bool,
    observed: Optional[str],
    find_data: Optional[str],
) -> Evaluation:
    """Decide whether a check passes for one observation.

    Args:
        operator: Operator name or member
        present: Whether the probed object exists
        observed: Observed value (ignored when absent)
        find_data: The check's FindData

    Returns:
        Evaluation with ``check_pass`` and an optional ErrorKind
    """
    op = Operator.parse(operator)
    if op is None:
        return _FAILED[ErrorKind.UNKNOWN_OPERATOR]

    if op is Operator.EXISTS:
        return Evaluation(present)
    if op is Operator.NOT_EXISTS:
        return Evaluation(not present)

    find = (find_data or "").strip()
    if not find:
        return _FAILED[ErrorKind.MISSING_DATA]

    if not present:
        return ABSENT_OUTCOME[op]

    value = (observed or "").strip()
    if not value:
        return _FAILED[ErrorKind.MISSING_DATA]

    if op.is_numeric:
        left, right = parse_int(value), parse_int(find)
        if left is None or right is None:
            return _FAILED[ErrorKind.PARSE_FAILURE]
        finding = left > right if op is Operator.GREATER_THAN else left < right
        return Evaluation(not finding)

    if op in (Operator.EQUAL_TO, Operator.NOT_EQUAL_TO):
        expected = parse_int(find)
        if expected is not None:
            actual = parse_int(value)
            if actual is None:
                return _FAILED[ErrorKind.PARSE_FAILURE]
            equal = actual == expected
        else:
            equal = value == find
        return Evaluation(equal if op is Operator.EQUAL_TO else not equal)

    contains = find in value
    finding = contains if op is Operator.CONTAINS else not contains
    return Evaluation(not finding)
