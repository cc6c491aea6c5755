"""GI product verifier: provenance extraction from external verification sites."""

__version__ = "1.0.0"
