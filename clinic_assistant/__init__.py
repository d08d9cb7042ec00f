"""
Chat assistant for the Centro Médico Familiar.
Resolves each turn through local arithmetic, structured lookups, a language model and canned answers.
"""

__version__ = "0.1.0"
