"""TruthSeeker - forensic assistant for investigating online deception."""

__version__ = "1.0.0"
