"""surveylens: survey response aggregation and cohort comparison."""

__version__ = "0.4.0"
