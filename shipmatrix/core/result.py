"""Ok / Err result values.

Every fallible step of a release run (planning, building, packaging,
publishing) returns a Result instead of raising. Job-level failures stay
plain values all the way to the aggregator, which is the only place that
decides whether one of them fails the run.

    planned = plan_matrix(catalog, params, project="bottom")
    if isinstance(planned, Err):
        return planned
    plan = planned.value
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result: TypeAlias = Union[Ok[T], Err[E]]
