"""Keyword alerts for newly published Contra job postings."""

__version__ = "0.1.0"
