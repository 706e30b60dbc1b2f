"""
artimport - mass-import pipeline for crowdsourced public art catalogues.

Reads public-art datasets, maps them onto a canonical artwork record,
skips artworks that already exist at the destination and reports every
outcome.
"""

__version__ = "0.1.0"
