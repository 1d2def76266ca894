"""Multi-agent software delivery: plan, write, review, fix and ship code."""

__version__ = "0.1.0"
