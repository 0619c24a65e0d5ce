import logging


class BaseReporter(object):
    """Delegate class to provider progress reporting for the resolver.
    """
    def starting(self):
        """Called before the resolution actually starts.
        """

    def starting_round(self, index):
        """Called before each round of resolution starts.

        The index is zero-based.
        """

    def ending_round(self, index, state):
        """Called before each round of resolution ends.

        This is NOT called if the resolution ends at this round. Use `ending`
        if you want to report finalization. The index is zero-based.
        """

    def ending(self, state):
        """Called before the resolution ends successfully.
        """

    def adding_requirement(self, requirement, parent):
        """Called when adding a new requirement into the resolve criteria.

        :param requirement: The additional requirement to be applied to filter
            the available candidates.
        :param parent: The candidate that requires ``requirement`` as a
            dependency, or None if ``requirement`` is one of the root
            requirements passed in from ``Resolver.resolve()``.
        """

    def resolving_conflicts(self, causes):
        """Called when starting to attempt requirement conflict resolution.

        :param causes: The information on the collision that caused the
            backtracking.
        """

    def rejecting_candidate(self, criterion, candidate):
        """Called when rejecting a candidate during backtracking."""

    def pinning(self, candidate):
        """Called when adding a candidate to the potential solution."""

    def backtracking(self, candidate):
        """Called when a pinned candidate is retracted."""


class LoggingReporter(BaseReporter):
    """Forward every resolution event to a logger at DEBUG level."""

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger("depresolve.resolution")

    def starting(self):
        self.logger.debug("Starting resolution")

    def starting_round(self, index):
        self.logger.debug("Starting round %d", index)

    def ending_round(self, index, state):
        self.logger.debug(
            "Ending round %d with %d pinned", index, len(state.mapping)
        )

    def ending(self, state):
        self.logger.debug(
            "Resolution finished with %d pinned", len(state.mapping)
        )

    def adding_requirement(self, requirement, parent):
        self.logger.debug(
            "Adding requirement %s (from %s)",
            requirement,
            parent if parent is not None else "root",
        )

    def resolving_conflicts(self, causes):
        self.logger.debug(
            "Resolving conflicts between %s",
            ", ".join(str(c.requirement) for c in causes),
        )

    def rejecting_candidate(self, criterion, candidate):
        self.logger.debug("Rejecting %r: %r", candidate, criterion)

    def pinning(self, candidate):
        self.logger.debug("Pinning %r", candidate)

    def backtracking(self, candidate):
        self.logger.debug("Backtracking from %r", candidate)
