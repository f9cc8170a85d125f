"""Multi-armed bandit strategies and a Monte Carlo simulation harness."""

from bandit_simulate.exceptions import BanditError, ConfigurationError, DomainError

__version__ = "0.1.0"

__all__ = ["BanditError", "ConfigurationError", "DomainError", "__version__"]
