from __future__ import annotations

import concurrent.futures
import logging
from typing import TYPE_CHECKING, Any, Mapping

from ..exceptions import ProviderUnavailable

if TYPE_CHECKING:
    from ..providers import AbstractProvider
    from ..structs import PackageCandidate, Requirement

logger = logging.getLogger(__name__)


class CandidateCache(object):
    """The resolver's view of the provider during a single resolution.

    Every name is queried at most once; later lookups return the same
    answer even if the provider would have changed its mind. Queries run on
    a thread pool so several names can be fetched ahead of time with
    `prefetch()`, but `get()` only waits *timeout* seconds for an answer.
    `dependencies()` loads the requirements of a candidate the same way.

    Use as a context manager, or call `close()`, to release the pool.
    """

    def __init__(
        self,
        provider: AbstractProvider,
        timeout: float | None = None,
        max_workers: int = 4,
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="depresolve",
        )
        self._futures: dict[str, concurrent.futures.Future] = {}
        self._results: dict[str, tuple[PackageCandidate, ...]] = {}
        self._dependencies: dict[
            PackageCandidate, concurrent.futures.Future
        ] = {}

    def __enter__(self) -> CandidateCache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def prefetch(self, name: str) -> concurrent.futures.Future:
        """Start querying the provider for *name* if not done already."""
        try:
            return self._futures[name]
        except KeyError:
            pass
        future = self._executor.submit(self._provider.candidates, name)
        self._futures[name] = future
        return future

    def _wait(self, name: str, future: concurrent.futures.Future) -> Any:
        try:
            return future.result(timeout=self._timeout)
        except concurrent.futures.TimeoutError:
            logger.warning(
                "No answer for %r within %s seconds", name, self._timeout
            )
            error = TimeoutError(f"no answer within {self._timeout} seconds")
            raise ProviderUnavailable(name, error) from None

    def get(self, name: str) -> tuple[PackageCandidate, ...]:
        """Candidates of *name*, newest first.

        Provider errors are re-raised as is. If no answer arrives in time,
        `ProviderUnavailable` is raised with a ``TimeoutError`` cause.
        """
        try:
            return self._results[name]
        except KeyError:
            pass
        candidates = self._wait(name, self.prefetch(name))
        self._results[name] = tuple(candidates)
        return self._results[name]

    def dependencies(
        self,
        candidate: PackageCandidate,
        environment: Mapping[str, str] | None = None,
    ) -> list[Requirement]:
        """Requirements of *candidate* that apply in *environment*.

        A candidate's requirements may be loaded lazily from the provider, so
        they are read on the pool and waited for like `get()`.
        """
        try:
            future = self._dependencies[candidate]
        except KeyError:
            future = self._executor.submit(
                lambda: list(candidate.iter_dependencies(environment))
            )
            self._dependencies[candidate] = future
        return self._wait(candidate.name, future)
