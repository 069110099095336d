"""AI Pilot: dependency tracing and change-impact analysis for JS/TS projects."""

__version__ = "1.0.0"
