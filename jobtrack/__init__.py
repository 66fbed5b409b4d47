"""jobtrack: a personal job-application tracker."""

__version__ = "0.3.0"
