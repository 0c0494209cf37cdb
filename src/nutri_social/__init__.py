"""Social graph and interaction service for the nutrition tracker."""

__version__ = "0.1.0"
