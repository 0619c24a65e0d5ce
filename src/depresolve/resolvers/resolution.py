from __future__ import annotations

import collections
import logging
from typing import (
    TYPE_CHECKING,
    Collection,
    Iterable,
    Mapping,
    Protocol,
)

from ..graphs import materialize
from ..structs import (
    ConflictSet,
    Criterion,
    RequirementInformation,
    State,
    coerce_requirement,
    split_identifier,
)
from .abstract import AbstractResolver, Result
from .candidates import CandidateCache
from .exceptions import (
    RequirementsConflicted,
    ResolutionCancelled,
    ResolutionTooDeep,
    ResolverException,
    Unsatisfiable,
)

if TYPE_CHECKING:
    from ..providers import AbstractProvider
    from ..reporters import BaseReporter
    from ..structs import PackageCandidate, Requirement, RequirementLike
    from ..versions import Constraint, Version

logger = logging.getLogger(__name__)


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


def _dedupe(
    information: Iterable[RequirementInformation],
) -> list[RequirementInformation]:
    seen = set()
    result = []
    for info in information:
        if info in seen:
            continue
        seen.add(info)
        result.append(info)
    return result


class Resolution(object):
    """Stateful resolution object.

    This is designed as a one-off object that holds information to kick start
    the resolution process, and holds the results afterwards.
    """

    def __init__(
        self,
        provider: AbstractProvider,
        reporter: BaseReporter,
        candidates: CandidateCache,
        environment: Mapping[str, str] | None = None,
    ) -> None:
        self._p = provider
        self._r = reporter
        self._c = candidates
        self._environment = environment
        self._states: list[State] = []

    @property
    def state(self) -> State:
        try:
            return self._states[-1]
        except IndexError as e:
            raise AttributeError("state") from e

    def _push_new_state(self) -> None:
        """Push a new state into history.

        This new state will be used to hold resolution results of the next
        coming round.
        """
        base = self._states[-1]
        state = State(
            mapping=base.mapping.copy(),
            criteria=base.criteria.copy(),
            backtrack_causes=base.backtrack_causes[:],
        )
        self._states.append(state)

    def _find_matches(
        self,
        identifier: str,
        constraint: Constraint,
        incompatibilities: Collection[Version],
    ) -> list[PackageCandidate]:
        name, extras = split_identifier(identifier)
        candidates = self._c.get(name)
        allowed = set(
            constraint.filter(
                c.version
                for c in candidates
                if c.version not in incompatibilities
            )
        )
        matches = [c for c in candidates if c.version in allowed]
        if extras:
            return [c.with_extras(extras) for c in matches]
        return matches

    def _build_criterion(
        self,
        identifier: str,
        constraint: Constraint,
        information: list[RequirementInformation],
        incompatibilities: list[Version],
    ) -> Criterion:
        candidates = self._find_matches(
            identifier, constraint, incompatibilities
        )
        criterion = Criterion(
            constraint, candidates, information, incompatibilities
        )
        if not candidates:
            raise RequirementsConflicted(criterion)
        return criterion

    def _add_to_criteria(
        self,
        criteria: dict[str, Criterion],
        requirement: Requirement,
        parent: PackageCandidate | None,
    ) -> None:
        self._r.adding_requirement(requirement=requirement, parent=parent)

        identifier = self._p.identify(requirement)
        info = RequirementInformation(requirement, parent)
        try:
            crit = criteria[identifier]
        except KeyError:
            constraint = requirement.constraint
            information = [info]
            incompatibilities = []
        else:
            constraint = crit.constraint.intersect(requirement.constraint)
            information = list(crit.information)
            information.append(info)
            incompatibilities = list(crit.incompatibilities)
        criteria[identifier] = self._build_criterion(
            identifier, constraint, information, incompatibilities
        )

    def _get_preference(self, identifier: str, conflicting: set[str]):
        criterion = self.state.criteria[identifier]
        return (
            identifier not in conflicting,
            len(criterion.candidates),
            identifier,
        )

    def _is_current_pin_satisfying(
        self, identifier: str, criterion: Criterion
    ) -> bool:
        try:
            current_pin = self.state.mapping[identifier]
        except KeyError:
            return False
        return criterion.allows(current_pin)

    def _get_updated_criteria(
        self, candidate: PackageCandidate
    ) -> dict[str, Criterion]:
        criteria = self.state.criteria.copy()
        dependencies = self._c.dependencies(candidate, self._environment)
        for requirement in dependencies:
            self._c.prefetch(requirement.name)
        for requirement in dependencies:
            self._add_to_criteria(criteria, requirement, parent=candidate)
        return criteria

    def _find_broken_pin(
        self,
        identifier: str,
        candidate: PackageCandidate,
        criteria: dict[str, Criterion],
    ) -> Criterion | None:
        """Find a pin the updated *criteria* would no longer allow.

        *candidate* counts as pinned for *identifier*, since it may also
        restrict which versions of itself work.
        """
        if not criteria[identifier].allows(candidate):
            return criteria[identifier]
        for key, pin in self.state.mapping.items():
            if key != identifier and not criteria[key].allows(pin):
                return criteria[key]
        return None

    def _attempt_to_pin_criterion(self, identifier: str) -> list[Criterion]:
        criterion = self.state.criteria[identifier]
        causes = []
        for candidate in criterion.candidates:
            try:
                criteria = self._get_updated_criteria(candidate)
            except RequirementsConflicted as e:
                self._r.rejecting_candidate(e.criterion, candidate)
                causes.append(e.criterion)
                continue

            # Pins are never revisited in place; a candidate contradicting
            # one is rejected and the conflict left to backjumping.
            broken = self._find_broken_pin(identifier, candidate, criteria)
            if broken is not None:
                self._r.rejecting_candidate(broken, candidate)
                causes.append(broken)
                continue

            # Put newly-pinned candidate at the end. This is essential because
            # backtracking looks at this mapping to get the last pin.
            self._r.pinning(candidate=candidate)
            logger.debug("Pinned %r", candidate)
            self.state.criteria.update(criteria)
            self.state.mapping.pop(identifier, None)
            self.state.mapping[identifier] = candidate
            return []

        # All candidates tried, nothing works. This criterion is a dead
        # end, signal for backtracking.
        return causes

    def _patch_criteria(
        self, incompatibilities_from_broken: list[tuple[str, list[Version]]]
    ) -> bool:
        for key, incompatibilities in incompatibilities_from_broken:
            if not incompatibilities:
                continue
            try:
                criterion = self.state.criteria[key]
            except KeyError:
                continue
            merged = list(criterion.incompatibilities)
            merged.extend(v for v in incompatibilities if v not in merged)
            try:
                self.state.criteria[key] = self._build_criterion(
                    key,
                    criterion.constraint,
                    list(criterion.information),
                    merged,
                )
            except RequirementsConflicted:
                return False
        return True

    def _backjump(self) -> bool:
        """Perform backjumping.

        The last pin is retracted and marked incompatible in the state before
        it was made, together with every incompatibility found while it was in
        place. If that leaves some package without candidates, the pin before
        it is retracted too, and so on.

        Returns False when every pin is retracted and the root requirements
        cannot be satisfied by what is left.
        """
        while len(self._states) >= 3:
            # Remove the state that triggered backtracking.
            del self._states[-1]

            # Retrieve the last candidate pin and known incompatibilities.
            broken_state = self._states.pop()
            name, candidate = broken_state.mapping.popitem()
            incompatibilities_from_broken = [
                (k, list(v.incompatibilities))
                for k, v in broken_state.criteria.items()
            ]

            # Also mark the newly known incompatibility.
            incompatibilities_from_broken.append((name, [candidate.version]))

            self._r.backtracking(candidate=candidate)
            logger.debug("Backtracking from %r", candidate)

            # Create a new state from the last known-to-work one, and apply
            # the previously gathered incompatibility information.
            self._push_new_state()
            if self._patch_criteria(incompatibilities_from_broken):
                return True

            # The retracted pin was the only thing keeping some package
            # resolvable. Backjump further.

        return False

    def _conflict(
        self, causes: Iterable[RequirementInformation]
    ) -> ConflictSet:
        return ConflictSet(
            _dedupe(causes),
            provenance={
                key: tuple(criterion.information)
                for key, criterion in self.state.criteria.items()
            },
        )

    def resolve(
        self,
        requirements: Iterable[Requirement],
        max_rounds: int,
        cancel: CancelToken | None = None,
    ) -> State:
        if self._states:
            raise RuntimeError("already resolved")

        self._r.starting()

        # Initialize the root state.
        self._states = [
            State(
                mapping=collections.OrderedDict(),
                criteria={},
                backtrack_causes=[],
            )
        ]
        for requirement in requirements:
            if not requirement.evaluate_marker(self._environment):
                continue
            try:
                self._add_to_criteria(
                    self.state.criteria, requirement, parent=None
                )
            except RequirementsConflicted as e:
                # If initial requirements conflict, nothing would ever work.
                raise Unsatisfiable(self._conflict(e.criterion.information))

        # The root state is saved as a sentinel so the first ever pin can have
        # something to backtrack to if it fails. The root state is basically
        # pinning the virtual "root" package in the graph.
        self._push_new_state()

        for round_index in range(max_rounds):
            if cancel is not None and cancel.is_set():
                raise ResolutionCancelled()

            self._r.starting_round(index=round_index)

            unsatisfied_names = [
                key
                for key, criterion in self.state.criteria.items()
                if not self._is_current_pin_satisfying(key, criterion)
            ]

            # All criteria are accounted for. Nothing more to pin, we are done!
            if not unsatisfied_names:
                self._r.ending(state=self.state)
                return self.state

            # Choose the most preferred unpinned criterion to try.
            conflicting = {
                self._p.identify(i.requirement)
                for i in self.state.backtrack_causes
            }
            name = min(
                unsatisfied_names,
                key=lambda key: self._get_preference(key, conflicting),
            )
            failure_criteria = self._attempt_to_pin_criterion(name)

            if failure_criteria:
                causes = _dedupe(
                    i for c in failure_criteria for i in c.information
                )
                conflict = self._conflict(causes)
                self._r.resolving_conflicts(causes=causes)

                # Backjump if pinning fails. The backjump process puts us in
                # an unpinned state, so we can work on it in the next round.
                success = self._backjump()
                self.state.backtrack_causes[:] = causes

                # Dead ends everywhere. Give up.
                if not success:
                    raise Unsatisfiable(conflict)
            else:
                # Pinning was successful. Push a new state to do another pin.
                self._push_new_state()

            self._r.ending_round(index=round_index, state=self.state)

        raise ResolutionTooDeep(max_rounds)


def _build_result(
    state: State,
    environment: Mapping[str, str] | None,
    allow_cycles: bool,
) -> Result:
    roots = sorted(
        {
            key
            for key, criterion in state.criteria.items()
            if any(parent is None for parent in criterion.iter_parent())
        }
    )
    graph = materialize(
        state.mapping,
        roots=roots,
        environment=environment,
        allow_cycles=allow_cycles,
    )
    return Result(
        mapping={
            key: candidate
            for key, candidate in state.mapping.items()
            if candidate.name in graph
        },
        graph=graph,
        criteria=state.criteria,
    )


class Resolver(AbstractResolver):
    """The thing that performs the actual resolution work.

    :param provider: The `AbstractProvider` to get candidates from.
    :param reporter: A `BaseReporter` to notify of resolution progress.
    :param timeout: Seconds to wait for each provider answer, None to wait
        as long as it takes.
    :param max_workers: Threads used to query the provider concurrently.
    :param environment: Marker variables overriding those of the running
        interpreter, used to decide which requirements apply.
    """

    base_exception = ResolverException

    def __init__(
        self,
        provider: AbstractProvider,
        reporter: BaseReporter | None = None,
        timeout: float | None = None,
        max_workers: int = 4,
        environment: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(provider, reporter)
        self.timeout = timeout
        self.max_workers = max_workers
        self.environment = environment

    def resolve(
        self,
        requirements: Iterable[RequirementLike],
        max_rounds: int = 10000,
        cancel: CancelToken | None = None,
        allow_cycles: bool = False,
    ) -> Result:
        """Take a collection of constraints, spit out the resolution result.

        The return value is a representation to the final resolution result. It
        is a tuple subclass with three public members:

        * `mapping`: A dict of resolved candidates. Each key is an identifier
            of a requirement (as returned by the provider's `identify` method),
            and the value is the resolved candidate.
        * `graph`: A `ResolutionGraph` of the resolved packages, with an
            install order.
        * `criteria`: A dict of "criteria" that hold detailed information on
            how edges in the graph are derived. Each key is an identifier of a
            vertex, and the value is a `Criterion` instance.

        *cancel* is checked before every round; once its ``is_set()`` returns
        True, the resolution stops.

        The following exceptions may be raised if a resolution cannot be found:

        * `Unsatisfiable`: A resolution cannot be found for the given
            combination of requirements.
        * `ResolutionTooDeep`: The dependency tree is too deeply nested and
            the resolver gave up. You can try to resolve this by increasing the
            `max_rounds` argument.
        * `ResolutionCancelled`: *cancel* was set.
        * `PackageNotFound` or `ProviderUnavailable`: The provider could not
            answer for a package.
        * `CycleDetected`: The resolved packages form a dependency cycle and
            *allow_cycles* is False.
        """
        requirements = [coerce_requirement(r) for r in requirements]
        with CandidateCache(
            self.provider, timeout=self.timeout, max_workers=self.max_workers
        ) as candidates:
            resolution = Resolution(
                self.provider, self.reporter, candidates, self.environment
            )
            state = resolution.resolve(
                requirements, max_rounds=max_rounds, cancel=cancel
            )
        return _build_result(state, self.environment, allow_cycles)
