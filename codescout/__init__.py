"""codescout: measure a source tree across an ordered list of git revisions."""

__version__ = "0.1.0"
