"""Exception hierarchy for bandit-simulate.

Both concrete errors subclass ``ValueError`` so that callers catching the
builtin for invalid input keep working.
"""


class BanditError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(BanditError, ValueError):
    """The run is wired up incorrectly.

    Raised for an empty registry passed to ``select``, a reward requested for
    an arm the environment does not know, or a merge targeting an unknown arm.
    """


class DomainError(BanditError, ValueError):
    """A parameter or reward lies outside the domain a component accepts."""
