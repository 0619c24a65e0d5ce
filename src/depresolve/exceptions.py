from __future__ import annotations

from typing import Sequence


class DepresolveException(Exception):
    """A base class for all exceptions raised by this package."""


class InvalidVersion(DepresolveException, ValueError):
    def __init__(self, text: str) -> None:
        super().__init__(text)
        self.text = text

    def __str__(self) -> str:
        return f"Invalid version: {self.text!r}"


class InvalidConstraint(DepresolveException, ValueError):
    def __init__(self, text: str) -> None:
        super().__init__(text)
        self.text = text

    def __str__(self) -> str:
        return f"Invalid version constraint: {self.text!r}"


class ProviderError(DepresolveException):
    """Raised by a metadata provider when it cannot answer for a package.

    ``name`` is the package name that was queried.
    """

    def __init__(self, name: str, *args: object) -> None:
        super().__init__(name, *args)
        self.name = name


class PackageNotFound(ProviderError):
    def __str__(self) -> str:
        return f"No package named {self.name!r} is known to the index"


class ProviderUnavailable(ProviderError):
    """The provider failed to answer, most likely for a transient reason.

    Retrying the whole resolution later may succeed. ``cause`` holds the
    underlying error (an I/O error, a ``TimeoutError``, ...).
    """

    def __init__(self, name: str, cause: BaseException | None = None) -> None:
        super().__init__(name, cause)
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return f"Metadata for {self.name!r} is unavailable"
        return f"Metadata for {self.name!r} is unavailable: {self.cause!r}"


class CycleDetected(DepresolveException):
    """The resolved packages depend on each other in a loop.

    ``cycle`` lists the package names along the loop, in dependency order.
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        super().__init__(list(cycle))
        self.cycle = list(cycle)

    def __str__(self) -> str:
        path = " -> ".join(self.cycle + self.cycle[:1])
        return f"Dependency cycle has no valid install order: {path}"
