# arraysafety/abstract_state.py
"""
Lattice element variants shared by the analysis.

    LatticeElement = Bottom | IntervalState | PointsToState

All elements are immutable values.  Domains never mutate an element; every
join and transfer builds a new one, so facts and trace entries can share
elements freely and fixpoint detection is plain ``==``.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Union

from arraysafety.errors import InvalidAbstractStateError

INF = math.inf


# --- Intervals ----------------------------------------------------------------


@dataclass(frozen=True)
class Interval:
    """
    A range over the extended reals.

    ``lower`` is an integer or ``-inf``, ``upper`` an integer or ``+inf``
    once the interval has been normalized by the interval domain.  Raw
    arithmetic results may transiently hold non-integral values; they never
    reach a state without going through normalization.
    """
    lower: float
    upper: float

    @classmethod
    def top(cls) -> "Interval":
        return cls(-INF, INF)

    @classmethod
    def point(cls, n: float) -> "Interval":
        return cls(n, n)

    def is_empty(self) -> bool:
        return self.lower > self.upper

    def is_point(self) -> bool:
        return self.lower == self.upper

    def is_top(self) -> bool:
        return self.lower == -INF and self.upper == INF

    def __contains__(self, n: float) -> bool:
        return self.lower <= n <= self.upper

    def __str__(self) -> str:
        return f"[{_bound_str(self.lower)}, {_bound_str(self.upper)}]"


def _bound_str(b: float) -> str:
    if b == -INF:
        return "-inf"
    if b == INF:
        return "inf"
    return str(int(b)) if float(b).is_integer() else str(b)


# --- Bottom -------------------------------------------------------------------


@dataclass(frozen=True)
class Bottom:
    """
    The unreachable / contradictory state.

    Identity for join, absorbing for transfer.  Use the ``BOTTOM`` instance;
    all instances compare equal anyway.
    """

    def __repr__(self) -> str:
        return "bot"


BOTTOM = Bottom()


# --- Interval state -----------------------------------------------------------


@dataclass(frozen=True)
class IntervalState:
    """
    Mapping integer variable -> Interval, stored as a name-sorted tuple.

    Build through ``IntervalDomain.make`` so the bounds are normalized; the
    constructor itself performs no checks.
    """
    items: tuple[tuple[str, Interval], ...]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Interval]) -> "IntervalState":
        return cls(tuple(sorted(mapping.items())))

    def as_dict(self) -> dict[str, Interval]:
        return dict(self.items)

    @property
    def variables(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.items)

    def get(self, name: str) -> Interval | None:
        for n, itv in self.items:
            if n == name:
                return itv
        return None

    def __getitem__(self, name: str) -> Interval:
        itv = self.get(name)
        if itv is None:
            raise KeyError(name)
        return itv

    def __contains__(self, name: object) -> bool:
        return any(n == name for n, _ in self.items)

    def __iter__(self) -> Iterator[str]:
        return iter(self.variables)

    def __repr__(self) -> str:
        return "{" + ", ".join(f"{n}:{itv}" for n, itv in self.items) + "}"


# --- Points-to state ----------------------------------------------------------


class NullMarker:
    """The ``null`` member of an alias set."""

    _instance: "NullMarker | None" = None

    def __new__(cls) -> "NullMarker":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "null"

    def __reduce__(self):
        return (NullMarker, ())


NULL = NullMarker()


@dataclass(frozen=True, order=True)
class AllocationSite:
    """
    One array-creation statement.

    ``position`` is the statement's index in the method body, ``label`` the
    stable symbolic name (``new00``, ``new01``, ...) in first-seen order.
    """
    position: int
    label: str

    def __repr__(self) -> str:
        return self.label


Target = Union[AllocationSite, NullMarker]


def sorted_targets(targets: Iterable[Target]) -> list[Target]:
    """Sites in position order, ``null`` last."""
    targets = list(targets)
    sites = sorted(t for t in targets if isinstance(t, AllocationSite))
    if any(t is NULL for t in targets):
        return [*sites, NULL]
    return list(sites)


@dataclass(frozen=True)
class PointsToState:
    """
    Mapping array variable -> non-empty set of allocation sites and/or null,
    together with the allocation-site universe of the run.
    """
    items: tuple[tuple[str, frozenset[Target]], ...]
    universe: frozenset[AllocationSite]

    def __post_init__(self) -> None:
        for name, targets in self.items:
            if not targets:
                raise InvalidAbstractStateError(f"empty alias set for {name}")
            for t in targets:
                if t is not NULL and t not in self.universe:
                    raise InvalidAbstractStateError(
                        f"{name} points to unknown allocation site {t!r}"
                    )

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Iterable[Target]],
        universe: Iterable[AllocationSite],
    ) -> "PointsToState":
        items = tuple(sorted((n, frozenset(ts)) for n, ts in mapping.items()))
        return cls(items, frozenset(universe))

    def as_dict(self) -> dict[str, frozenset[Target]]:
        return dict(self.items)

    @property
    def variables(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.items)

    def get(self, name: str) -> frozenset[Target] | None:
        for n, targets in self.items:
            if n == name:
                return targets
        return None

    def __getitem__(self, name: str) -> frozenset[Target]:
        targets = self.get(name)
        if targets is None:
            raise KeyError(name)
        return targets

    def __contains__(self, name: object) -> bool:
        return any(n == name for n, _ in self.items)

    def __iter__(self) -> Iterator[str]:
        return iter(self.variables)

    def __repr__(self) -> str:
        parts = []
        for n, targets in self.items:
            parts.append(f"{n}=[{', '.join(repr(t) for t in sorted_targets(targets))}]")
        return "{" + ", ".join(parts) + "}"


LatticeElement = Union[Bottom, IntervalState, PointsToState]
