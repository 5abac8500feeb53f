"""Watch a directory for dropped videos and turn each into a structured analysis and replication prompt."""

__version__ = "0.1.0"
