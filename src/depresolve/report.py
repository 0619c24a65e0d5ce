"""Resolution outcome as a value, for installers and user interfaces."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Mapping

from .exceptions import (
    CycleDetected,
    DepresolveException,
    PackageNotFound,
    ProviderError,
    ProviderUnavailable,
)
from .resolvers import ResolutionError, Resolver, Unsatisfiable

if TYPE_CHECKING:
    from .graphs import ResolutionGraph
    from .providers import AbstractProvider
    from .reporters import BaseReporter
    from .resolvers.resolution import CancelToken
    from .structs import RequirementLike

logger = logging.getLogger(__name__)


class ResolutionReport(object):
    """Either a `ResolutionGraph`, or the error that prevented one.

    Exactly one of `graph` and `error` is set. `error` is one of
    `Unsatisfiable`, `PackageNotFound`, `ProviderUnavailable`,
    `CycleDetected`, `ResolutionTooDeep` or `ResolutionCancelled`.
    """

    def __init__(
        self,
        graph: ResolutionGraph | None = None,
        error: DepresolveException | None = None,
    ) -> None:
        if (graph is None) == (error is None):
            raise ValueError("exactly one of graph and error is required")
        self.graph = graph
        self.error = error

    def __repr__(self) -> str:
        if self.error is not None:
            return f"ResolutionReport(error={self.error!r})"
        return f"ResolutionReport(graph={self.graph!r})"

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def explain(self) -> str:
        """Describe the outcome in a few human-readable lines."""
        error = self.error
        if error is None:
            assert self.graph is not None
            lines = [f"Resolved {len(self.graph)} packages, install order:"]
            lines.extend(
                f"  {node.name}=={node.version}"
                for node in self.graph.iter_install_order()
            )
            return "\n".join(lines)
        if isinstance(error, Unsatisfiable):
            return error.conflict.explain()
        if isinstance(error, ProviderUnavailable):
            return f"{error}\nThe index may be reachable again later."
        if isinstance(error, PackageNotFound):
            return f"{error}\nCheck the name for typos."
        return str(error)


def resolve(
    requirements: Iterable[RequirementLike],
    provider: AbstractProvider,
    reporter: BaseReporter | None = None,
    timeout: float | None = None,
    max_workers: int = 4,
    max_rounds: int = 10000,
    cancel: CancelToken | None = None,
    environment: Mapping[str, str] | None = None,
    allow_cycles: bool = False,
) -> ResolutionReport:
    """Resolve *requirements* against *provider* and report the outcome.

    Requirements may be `Requirement` objects or PEP 508 strings. Expected
    failures are returned in the report rather than raised; see
    `Resolver.resolve` for what they mean.
    """
    resolver = Resolver(
        provider,
        reporter,
        timeout=timeout,
        max_workers=max_workers,
        environment=environment,
    )
    try:
        result = resolver.resolve(
            requirements,
            max_rounds=max_rounds,
            cancel=cancel,
            allow_cycles=allow_cycles,
        )
    except (ProviderError, ResolutionError, CycleDetected) as e:
        logger.debug("Resolution failed: %s", e)
        return ResolutionReport(error=e)
    return ResolutionReport(graph=result.graph)
