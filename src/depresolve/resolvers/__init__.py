from ..structs import ConflictSet, RequirementInformation
from .abstract import AbstractResolver, Result
from .candidates import CandidateCache
from .exceptions import (
    RequirementsConflicted,
    ResolutionCancelled,
    ResolutionError,
    ResolutionTooDeep,
    ResolverException,
    Unsatisfiable,
)
from .resolution import Resolution, Resolver

__all__ = [
    "AbstractResolver",
    "CandidateCache",
    "ConflictSet",
    "Resolver",
    "Resolution",
    "RequirementsConflicted",
    "ResolutionCancelled",
    "ResolutionError",
    "ResolutionTooDeep",
    "RequirementInformation",
    "ResolverException",
    "Result",
    "Unsatisfiable",
]
