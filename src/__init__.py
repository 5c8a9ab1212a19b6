"""
growthwatch - growth percentile analytics.

Converts anthropometric measurements into age- and sex-specific percentile
standing, tracks growth velocity and raises alerts on abnormal trajectories.
"""

__version__ = "0.1.0"
