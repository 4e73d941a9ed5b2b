"""Privacy-preserving page-view beacon receiver."""

__version__ = "0.3.0"
