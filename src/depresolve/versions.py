"""Version identifiers and version constraints.

Both follow PEP 440 and are thin layers over ``packaging``: a `Version` is a
`packaging.version.Version` that can also `compare()` itself, and a
`Constraint` wraps a `packaging.specifiers.SpecifierSet` so it can be
intersected with other constraints without ever failing.
"""

from __future__ import annotations

from typing import Iterable

import packaging.specifiers
import packaging.version

from .exceptions import InvalidConstraint, InvalidVersion

ANY = ("", "*")


class Version(packaging.version.Version):
    """A PEP 440 version.

    Ordering is total: ``1.0.dev1 < 1.0a1 < 1.0rc1 < 1.0 < 1.0.post1``, epochs
    take precedence over everything else.
    """

    def compare(self, other: packaging.version.Version) -> int:
        """Return -1, 0 or 1 if this version is less than, equal to, or
        greater than *other*.
        """
        if self < other:
            return -1
        if self > other:
            return 1
        return 0


def parse_version(text: str | packaging.version.Version) -> Version:
    if isinstance(text, Version):
        return text
    if isinstance(text, packaging.version.Version):
        return Version(str(text))
    try:
        return Version(text)
    except packaging.version.InvalidVersion:
        raise InvalidVersion(text) from None


class Constraint(object):
    """An immutable predicate over versions, e.g. ``>=1.2,<2.0``.

    An empty string or ``*`` allows any final release. Intersecting two
    constraints that cannot both hold is not an error; the result simply
    matches no version.
    """

    __slots__ = ("_specifier",)

    def __init__(
        self,
        specifier: str | packaging.specifiers.SpecifierSet | Constraint = "",
    ) -> None:
        if isinstance(specifier, Constraint):
            specifier = specifier._specifier
        elif not isinstance(specifier, packaging.specifiers.SpecifierSet):
            text = specifier.strip()
            if text in ANY:
                text = ""
            try:
                specifier = packaging.specifiers.SpecifierSet(text)
            except packaging.specifiers.InvalidSpecifier:
                raise InvalidConstraint(specifier) from None
        self._specifier = specifier

    @classmethod
    def any(cls) -> Constraint:
        return cls()

    @classmethod
    def exact(cls, version: str | packaging.version.Version) -> Constraint:
        return cls(f"=={parse_version(version)}")

    def __repr__(self) -> str:
        return f"Constraint({str(self)!r})"

    def __str__(self) -> str:
        return str(self._specifier) or "*"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Constraint):
            return NotImplemented
        return self._specifier == other._specifier

    def __hash__(self) -> int:
        return hash(self._specifier)

    def __contains__(self, version: str | packaging.version.Version) -> bool:
        return self.matches(version)

    def __and__(self, other: Constraint) -> Constraint:
        if not isinstance(other, Constraint):
            return NotImplemented
        return self.intersect(other)

    @property
    def specifier(self) -> packaging.specifiers.SpecifierSet:
        return self._specifier

    @property
    def is_any(self) -> bool:
        return not self._specifier

    def matches(
        self,
        version: str | packaging.version.Version,
        prereleases: bool | None = None,
    ) -> bool:
        return self._specifier.contains(
            parse_version(version), prereleases=prereleases
        )

    def intersect(self, other: Constraint) -> Constraint:
        return type(self)(self._specifier & other._specifier)

    def filter(self, versions: Iterable[Version]) -> list[Version]:
        """Keep the versions this constraint allows, in their input order.

        Pre-releases are only kept if the constraint names one, or if no
        final release in *versions* is allowed.
        """
        allowed = [
            v
            for v in versions
            if self._specifier.contains(v, prereleases=True)
        ]
        if self._specifier.prereleases:
            return allowed
        finals = [v for v in allowed if not v.is_prerelease]
        return finals or allowed


def parse_constraint(text: str) -> Constraint:
    return Constraint(text)
