from __future__ import annotations

from typing import TYPE_CHECKING

from ..exceptions import DepresolveException

if TYPE_CHECKING:
    from ..structs import ConflictSet, Criterion


class ResolverException(DepresolveException):
    """A base class for all exceptions raised by this module.

    Exceptions derived by this class should all be handled in this module. Any
    bubbling pass the resolver should be treated as a bug.
    """


class RequirementsConflicted(ResolverException):
    def __init__(self, criterion: Criterion) -> None:
        super().__init__(criterion)
        self.criterion = criterion

    def __str__(self) -> str:
        return "Requirements conflict: {}".format(
            ", ".join(repr(r) for r in self.criterion.iter_requirement()),
        )


class ResolutionError(ResolverException):
    pass


class Unsatisfiable(ResolutionError):
    """No set of versions satisfies every requirement.

    ``conflict`` is the `ConflictSet` found last before the resolver ran out
    of choices to revisit; ``causes`` is a shortcut to its causes.
    """

    def __init__(self, conflict: ConflictSet) -> None:
        super().__init__(conflict)
        self.conflict = conflict
        self.causes = list(conflict.causes)

    def __str__(self) -> str:
        return self.conflict.explain()


class ResolutionTooDeep(ResolutionError):
    def __init__(self, round_count: int) -> None:
        super().__init__(round_count)
        self.round_count = round_count

    def __str__(self) -> str:
        return f"Resolution gave up after {self.round_count} rounds"


class ResolutionCancelled(ResolutionError):
    def __str__(self) -> str:
        return "Resolution was cancelled"
