"""VerdictTrace - complaint signal detection and case lifecycle engine."""

__version__ = "1.0.0"
