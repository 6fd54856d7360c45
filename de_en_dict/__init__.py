"""
German-English Dictionary - searchable de-en dictionary service.

Loads the TU Chemnitz German-English word list, keeps it cached on disk and
answers ranked, equivalence-aware searches over it.
"""

__version__ = "1.0.0"
__author__ = "German-English Dictionary Team"
