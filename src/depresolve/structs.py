from __future__ import annotations

from collections import namedtuple
from typing import (
    TYPE_CHECKING,
    Callable,
    Collection,
    Iterable,
    Iterator,
    Mapping,
    NamedTuple,
    Sequence,
    Union,
)

import packaging.markers
import packaging.requirements
from packaging.utils import canonicalize_name

from .exceptions import InvalidConstraint
from .versions import Constraint, Version, parse_version

if TYPE_CHECKING:

    class RequirementInformation(NamedTuple):
        requirement: Requirement
        parent: PackageCandidate | None

    class State(NamedTuple):
        """Resolution state in a round."""

        mapping: dict[str, PackageCandidate]
        criteria: dict[str, Criterion]
        backtrack_causes: list[RequirementInformation]

else:
    RequirementInformation = namedtuple(
        "RequirementInformation", ["requirement", "parent"]
    )
    State = namedtuple("State", ["mapping", "criteria", "backtrack_causes"])


def make_identifier(name: str, extras: Collection[str] = ()) -> str:
    if not extras:
        return name
    return "{}[{}]".format(name, ",".join(sorted(extras)))


class Requirement(namedtuple("Requirement", "name constraint extras marker")):
    """A package name plus the constraint something imposes on it.

    ``extras`` is a frozenset of extra names and ``marker`` an optional
    `packaging.markers.Marker` deciding whether the requirement applies at
    all.
    """

    __slots__ = ()

    def __new__(
        cls,
        name: str,
        constraint: str | Constraint = "",
        extras: Iterable[str] = (),
        marker: str | packaging.markers.Marker | None = None,
    ) -> Requirement:
        if not isinstance(constraint, Constraint):
            constraint = Constraint(constraint)
        if isinstance(marker, str):
            marker = packaging.markers.Marker(marker)
        extras = frozenset(canonicalize_name(e) for e in extras)
        return super().__new__(
            cls, canonicalize_name(name), constraint, extras, marker
        )

    @classmethod
    def from_string(cls, text: str) -> Requirement:
        """Parse a PEP 508 line, e.g. ``foo[bar]>=1.0; python_version>"3"``."""
        try:
            parsed = packaging.requirements.Requirement(text)
        except packaging.requirements.InvalidRequirement:
            raise InvalidConstraint(text) from None
        if parsed.url:
            # Direct references carry no version to resolve against.
            raise InvalidConstraint(text)
        return cls(
            parsed.name,
            Constraint(parsed.specifier),
            parsed.extras,
            parsed.marker,
        )

    def __repr__(self) -> str:
        return f"<Requirement({self})>"

    def __str__(self) -> str:
        text = make_identifier(self.name, self.extras)
        if not self.constraint.is_any:
            text += str(self.constraint)
        if self.marker is not None:
            text += f"; {self.marker}"
        return text

    @property
    def identifier(self) -> str:
        return make_identifier(self.name, self.extras)

    def allows(self, version: Version) -> bool:
        return self.constraint.matches(version, prereleases=True)

    def evaluate_marker(
        self,
        environment: Mapping[str, str] | None = None,
        extras: Collection[str] = (),
    ) -> bool:
        """Whether this requirement applies in *environment*.

        The marker is evaluated once per extra in *extras* (or once with an
        empty extra) and applies if any evaluation does.
        """
        if self.marker is None:
            return True
        env = dict(environment or {})
        return any(
            self.marker.evaluate(dict(env, extra=extra))
            for extra in (sorted(extras) or [""])
        )


RequirementLike = Union[Requirement, str]


def coerce_requirement(requirement: RequirementLike) -> Requirement:
    if isinstance(requirement, Requirement):
        return requirement
    return Requirement.from_string(requirement)


class PackageCandidate(object):
    """One installable release of a package.

    *requirements* may be a sequence, or a callable returning one, in which
    case it is only called (once) when the requirements are first needed.
    Candidates are equal if they share name, version and extras.
    """

    def __init__(
        self,
        name: str,
        version: str | Version,
        requirements: (
            Iterable[RequirementLike]
            | Callable[[], Iterable[RequirementLike]]
        ) = (),
        extras: Iterable[str] = (),
    ) -> None:
        self.name = canonicalize_name(name)
        self.version = parse_version(version)
        self.extras = frozenset(canonicalize_name(e) for e in extras)
        self._requirements: tuple[Requirement, ...] | None = None
        self._factory: Callable[[], Iterable[RequirementLike]] | None = None
        if callable(requirements):
            self._factory = requirements
        else:
            self._requirements = tuple(
                coerce_requirement(r) for r in requirements
            )

    def __repr__(self) -> str:
        return f"<{self.identifier}=={self.version}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageCandidate):
            return NotImplemented
        return (self.name, self.version, self.extras) == (
            other.name,
            other.version,
            other.extras,
        )

    def __hash__(self) -> int:
        return hash((self.name, self.version, self.extras))

    @property
    def identifier(self) -> str:
        return make_identifier(self.name, self.extras)

    @property
    def requirements(self) -> tuple[Requirement, ...]:
        if self._requirements is None:
            assert self._factory is not None
            self._requirements = tuple(
                coerce_requirement(r) for r in self._factory()
            )
        return self._requirements

    def with_extras(self, extras: Iterable[str]) -> PackageCandidate:
        """Build the candidate of this same release with *extras* selected."""
        return type(self)(
            self.name,
            self.version,
            lambda: self.requirements,
            extras=extras,
        )

    def iter_dependencies(
        self, environment: Mapping[str, str] | None = None
    ) -> Iterator[Requirement]:
        """Requirements that apply to this candidate in *environment*.

        An extras candidate depends on its base release first, so both are
        always pinned to the same version.
        """
        if self.extras:
            yield Requirement(self.name, Constraint.exact(self.version))
        for requirement in self.requirements:
            if requirement.evaluate_marker(environment, self.extras):
                yield requirement


class Criterion(object):
    """Representation of possible resolution results of a package.

    This holds four attributes:

    * `constraint` is the conjunction of every contributing requirement's
      constraint.
    * `information` is a collection of `RequirementInformation` pairs.
      Each pair is a requirement contributing to this criterion, and the
      candidate that provides the requirement.
    * `incompatibilities` is a collection of versions known not to work.
    * `candidates` is a sequence of the candidates still allowed by the
      constraint and incompatibilities, newest first. It should never be
      empty, except when the criterion is an attribute of a raised
      `RequirementsConflicted` (in which case it is always empty).

    .. note::
        This class is intended to be externally immutable. **Do not** mutate
        any of its attribute containers.
    """

    def __init__(
        self,
        constraint: Constraint,
        candidates: Sequence[PackageCandidate],
        information: Sequence[RequirementInformation],
        incompatibilities: Collection[Version],
    ) -> None:
        self.constraint = constraint
        self.candidates = candidates
        self.information = information
        self.incompatibilities = incompatibilities

    def __repr__(self) -> str:
        requirements = ", ".join(
            f"({req!r}, via={parent!r})" for req, parent in self.information
        )
        return f"Criterion({requirements})"

    def iter_requirement(self) -> Iterator[Requirement]:
        return (i.requirement for i in self.information)

    def iter_parent(self) -> Iterator[PackageCandidate | None]:
        return (i.parent for i in self.information)

    def allows(self, candidate: PackageCandidate) -> bool:
        return any(c.version == candidate.version for c in self.candidates)


class DirectedGraph(object):
    """A mutable graph structure with directed edges.

    Used as a scratch pad while materializing a resolution; the finished
    result is a `depresolve.graphs.ResolutionGraph`.
    """

    def __init__(self) -> None:
        self._vertices: set[str] = set()
        self._forwards: dict[str, set[str]] = {}  # <key> -> Set[<key>]
        self._backwards: dict[str, set[str]] = {}  # <key> -> Set[<key>]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._vertices))

    def __len__(self) -> int:
        return len(self._vertices)

    def __contains__(self, key: str) -> bool:
        return key in self._vertices

    def add(self, key: str) -> None:
        """Add a new vertex to the graph."""
        if key in self._vertices:
            raise ValueError("vertex exists")
        self._vertices.add(key)
        self._forwards[key] = set()
        self._backwards[key] = set()

    def remove(self, key: str) -> None:
        """Remove a vertex, disconnecting all edges from/to it."""
        self._vertices.remove(key)
        for f in self._forwards.pop(key):
            self._backwards[f].remove(key)
        for t in self._backwards.pop(key):
            self._forwards[t].remove(key)

    def connect(self, f: str, t: str) -> None:
        """Connect two existing vertices.

        Nothing happens if the vertices are already connected.
        """
        if t not in self._vertices:
            raise KeyError(t)
        self._forwards[f].add(t)
        self._backwards[t].add(f)

    def iter_edges(self) -> Iterator[tuple[str, str]]:
        for f in sorted(self._forwards):
            for t in sorted(self._forwards[f]):
                yield f, t

    def iter_children(self, key: str) -> Iterator[str]:
        return iter(sorted(self._forwards[key]))

    def iter_parents(self, key: str) -> Iterator[str]:
        return iter(sorted(self._backwards[key]))


def describe_parent(parent: PackageCandidate | None) -> str:
    if parent is None:
        return "the root project"
    return f"{parent.identifier}=={parent.version}"


class ConflictSet(object):
    """Requirements that cannot all be satisfied at the same time.

    * `causes` is a tuple of `RequirementInformation` pairs. Together they
      left some package without any acceptable candidate.
    * `provenance` maps identifiers to the `RequirementInformation` pairs
      that were requiring them when the conflict was found. It is used to
      trace each declaring package back to the root project.
    """

    def __init__(
        self,
        causes: Iterable[RequirementInformation],
        provenance: (
            Mapping[str, Sequence[RequirementInformation]] | None
        ) = None,
    ) -> None:
        self.causes = tuple(causes)
        self.provenance = dict(provenance or {})

    def __repr__(self) -> str:
        return "ConflictSet({})".format(
            ", ".join(
                f"({req!r}, via={parent!r})" for req, parent in self.causes
            )
        )

    def __bool__(self) -> bool:
        return bool(self.causes)

    @property
    def names(self) -> list[str]:
        return sorted({i.requirement.name for i in self.causes})

    def iter_chain(
        self, parent: PackageCandidate | None
    ) -> Iterator[PackageCandidate | None]:
        """Walk from *parent* up to the root project, yielding each declarer.

        Ends with None (the root project), unless the recorded provenance
        loops or is incomplete, in which case the walk just stops.
        """
        seen = set()
        while parent is not None and parent.identifier not in seen:
            yield parent
            seen.add(parent.identifier)
            information = self.provenance.get(parent.identifier, ())
            if not information:
                return
            parent = information[0].parent
        if parent is None:
            yield None

    def explain(self) -> str:
        lines = [
            "Cannot find versions of {} satisfying all of:".format(
                ", ".join(self.names)
            )
        ]
        for requirement, parent in self.causes:
            chain = " <- ".join(
                describe_parent(p) for p in self.iter_chain(parent)
            )
            lines.append(f"  {requirement}, required by {chain}")
        return "\n".join(lines)


def split_identifier(identifier: str) -> tuple[str, frozenset[str]]:
    """Reverse `make_identifier`."""
    name, _, extras = identifier.partition("[")
    if not extras:
        return name, frozenset()
    return name, frozenset(e for e in extras.rstrip("]").split(",") if e)
