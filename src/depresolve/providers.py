from __future__ import annotations

import collections
import json
import operator
from typing import Iterable, Mapping, Sequence

from packaging.utils import canonicalize_name

from .exceptions import PackageNotFound
from .structs import PackageCandidate, Requirement, RequirementLike
from .versions import parse_version


class AbstractProvider(object):
    """Delegate class to provide the required interface for the resolver."""

    def identify(
        self, requirement_or_candidate: Requirement | PackageCandidate
    ) -> str:
        """Given a requirement or candidate, return an identifier for it.

        This is used to identify, e.g. whether two requirements
        should have their constraints merged, or which criterion a candidate
        belongs to. The default groups by canonical name plus sorted extras.
        """
        return requirement_or_candidate.identifier

    def candidates(self, name: str) -> Sequence[PackageCandidate]:
        """Get all releases known for a package.

        :param name: A canonicalized package name, without extras.

        The return value must be ordered by version, the newest first, and be
        the same every time for the same index content; the resolver relies
        on this for reproducible results. It queries each name at most once
        per resolution, possibly from a worker thread, and possibly for
        several names at the same time.

        Raise `PackageNotFound` if the name does not exist, and
        `ProviderUnavailable` for (likely transient) failures to answer.
        """
        raise NotImplementedError


class InMemoryProvider(AbstractProvider):
    """Serve candidates from a mapping, mostly for tests and local indexes.

    The index maps each package name to a mapping of version strings to the
    requirements of that release::

        {
            "first": {
                "1.0.0": ["second==1.0.0"],
                "2.0.0": ["second==2.0.0", "third>=1"],
            },
            "second": {"1.0.0": [], "2.0.0": []},
            "third": {"1.0.0": []},
        }
    """

    def __init__(
        self, index: Mapping[str, Mapping[str, Iterable[RequirementLike]]]
    ) -> None:
        self.index = {
            canonicalize_name(name): self._build_candidates(name, releases)
            for name, releases in index.items()
        }
        self.calls: collections.Counter[str] = collections.Counter()

    @classmethod
    def from_file(cls, filename: str) -> InMemoryProvider:
        with open(filename) as f:
            return cls(json.load(f))

    @staticmethod
    def _build_candidates(
        name: str, releases: Mapping[str, Iterable[RequirementLike]]
    ) -> list[PackageCandidate]:
        candidates = [
            PackageCandidate(name, parse_version(version), requirements)
            for version, requirements in releases.items()
        ]
        return sorted(
            candidates, key=operator.attrgetter("version"), reverse=True
        )

    def candidates(self, name: str) -> Sequence[PackageCandidate]:
        self.calls[name] += 1
        try:
            return list(self.index[canonicalize_name(name)])
        except KeyError:
            raise PackageNotFound(name) from None
