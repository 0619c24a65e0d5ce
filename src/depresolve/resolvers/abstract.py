from __future__ import annotations

import collections
from typing import TYPE_CHECKING, Any, Iterable

from ..reporters import BaseReporter

if TYPE_CHECKING:
    from typing import Mapping, NamedTuple

    from ..graphs import ResolutionGraph
    from ..providers import AbstractProvider
    from ..structs import Criterion, PackageCandidate, RequirementLike

    class Result(NamedTuple):
        mapping: Mapping[str, PackageCandidate]
        graph: ResolutionGraph
        criteria: Mapping[str, Criterion]

else:
    Result = collections.namedtuple("Result", ["mapping", "graph", "criteria"])


class AbstractResolver(object):
    """The thing that performs the actual resolution work."""

    base_exception = Exception

    def __init__(
        self,
        provider: AbstractProvider,
        reporter: BaseReporter | None = None,
    ) -> None:
        self.provider = provider
        self.reporter = reporter if reporter is not None else BaseReporter()

    def resolve(
        self, requirements: Iterable[RequirementLike], **kwargs: Any
    ) -> Result:
        """Take a collection of constraints, spit out the resolution result.

        This returns a representation of the final resolution state, with one
        guaranteed attribute ``graph`` (a `ResolutionGraph`). A more detailed
        description is available in the ``Resolver`` class.

        Subclasses are allowed to raise any exception derived from
        ``base_exception`` on failure.
        """
        raise NotImplementedError
