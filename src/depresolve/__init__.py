__all__ = [
    "AbstractProvider",
    "AbstractResolver",
    "BaseReporter",
    "ConflictSet",
    "Constraint",
    "CycleDetected",
    "DepresolveException",
    "InMemoryProvider",
    "InvalidConstraint",
    "InvalidVersion",
    "LoggingReporter",
    "PackageCandidate",
    "PackageNotFound",
    "ProviderError",
    "ProviderUnavailable",
    "PyPIProvider",
    "Requirement",
    "ResolutionCancelled",
    "ResolutionError",
    "ResolutionGraph",
    "ResolutionReport",
    "ResolutionTooDeep",
    "Resolver",
    "Unsatisfiable",
    "Version",
    "__version__",
    "materialize",
    "parse_constraint",
    "parse_version",
    "resolve",
]

__version__ = "0.1.0.dev0"


from .exceptions import (
    CycleDetected,
    DepresolveException,
    InvalidConstraint,
    InvalidVersion,
    PackageNotFound,
    ProviderError,
    ProviderUnavailable,
)
from .graphs import ResolutionGraph, materialize
from .providers import AbstractProvider, InMemoryProvider
from .pypi import PyPIProvider
from .report import ResolutionReport, resolve
from .reporters import BaseReporter, LoggingReporter
from .resolvers import (
    AbstractResolver,
    ConflictSet,
    ResolutionCancelled,
    ResolutionError,
    ResolutionTooDeep,
    Resolver,
    Unsatisfiable,
)
from .structs import PackageCandidate, Requirement
from .versions import Constraint, Version, parse_constraint, parse_version
