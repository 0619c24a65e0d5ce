"""Metadata provider backed by the Warehouse JSON API.

See https://warehouse.pypa.io/api-reference/json.html for the data served.
Release listings come from ``/pypi/<name>/json``; the dependencies of a
release are only fetched, from ``/pypi/<name>/<version>/json``, when the
resolver actually considers that release.
"""

from __future__ import annotations

import logging
import operator
from platform import python_version as _running_python_version
from typing import Any, Mapping, Sequence

import requests
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.utils import canonicalize_name

from .exceptions import (
    InvalidConstraint,
    InvalidVersion,
    PackageNotFound,
    ProviderUnavailable,
)
from .providers import AbstractProvider
from .structs import PackageCandidate, Requirement
from .versions import Version, parse_version

logger = logging.getLogger(__name__)

DEFAULT_INDEX_URL = "https://pypi.org/"

DEFAULT_TIMEOUT = 15.0


def _is_usable_release(files: Sequence[Mapping], python: Version) -> bool:
    """Whether a release has at least one non-yanked file for *python*."""
    for entry in files:
        if entry.get("yanked"):
            continue
        requires_python = entry.get("requires_python")
        if requires_python:
            try:
                spec = SpecifierSet(requires_python)
            except InvalidSpecifier:
                # Warehouse keeps whatever the uploader declared.
                return True
            if not spec.contains(python, prereleases=True):
                continue
        return True
    return False


class PyPIProvider(AbstractProvider):
    """Query a Warehouse instance (PyPI by default) for package metadata.

    :param index_url: Base URL of the Warehouse instance.
    :param timeout: Seconds to wait for each HTTP request.
    :param session: A `requests.Session` (or anything with a compatible
        ``get()``) to issue requests with.
    :param python_version: The interpreter version releases must support.
        Defaults to the running interpreter.
    """

    def __init__(
        self,
        index_url: str = DEFAULT_INDEX_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
        python_version: str | None = None,
    ) -> None:
        self.index_url = index_url.rstrip("/")
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.python_version = parse_version(
            python_version or _running_python_version()
        )

    def _get_json(self, name: str, path: str) -> Any:
        url = f"{self.index_url}/pypi/{path}/json"
        logger.info("Requesting data from %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Request to %s failed: %s", url, e)
            raise ProviderUnavailable(name, e) from e
        if response.status_code == 404:
            raise PackageNotFound(name)
        try:
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise ProviderUnavailable(name, e) from e

    def _get_requires_dist(
        self, name: str, version: str
    ) -> list[Requirement]:
        try:
            data = self._get_json(name, f"{name}/{version}")
        except PackageNotFound as e:
            # The release was listed a moment ago, so the index is at fault.
            raise ProviderUnavailable(name, e) from e
        requirements = []
        for line in data["info"].get("requires_dist") or []:
            try:
                requirements.append(Requirement.from_string(line))
            except InvalidConstraint:
                logger.warning(
                    "Ignoring %s %s dependency %r", name, version, line
                )
        return requirements

    def candidates(self, name: str) -> Sequence[PackageCandidate]:
        name = canonicalize_name(name)
        data = self._get_json(name, name)

        candidates = []
        for key, files in data.get("releases", {}).items():
            try:
                version = parse_version(key)
            except InvalidVersion:
                # Ignore releases with invalid versions
                continue
            if not _is_usable_release(files, self.python_version):
                continue
            candidates.append(
                PackageCandidate(
                    name,
                    version,
                    self._requirements_factory(name, key),
                )
            )
        return sorted(
            candidates, key=operator.attrgetter("version"), reverse=True
        )

    def _requirements_factory(self, name, version):
        return lambda: self._get_requires_dist(name, version)
