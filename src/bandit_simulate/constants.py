"""Package-wide constants for bandit-simulate."""

# Numerical tolerance for floating-point comparisons
# Used for validating positive values, probability sums, etc.
FLOAT_TOL = 1e-10

# Default random seed for reproducible results
DEFAULT_SEED = 42

# Simulation defaults
DEFAULT_TIME_HORIZON = 1_000
DEFAULT_REPLICATIONS = 100

# Strategy defaults
DEFAULT_EPSILON = 0.1
DEFAULT_TEMPERATURE = 0.1
DEFAULT_GAMMA = 0.1
