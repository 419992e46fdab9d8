"""Planteria plan service: idea -> Outcome / Deliverable / Action hierarchy."""

__version__ = "0.1.0"
