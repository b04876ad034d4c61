"""Historical authorization audit for staking operators."""

__version__ = "0.1.0"
