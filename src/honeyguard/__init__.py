"""HoneyGuard: threat scoring for a decoy web presence and its honeypots."""

__version__ = "0.1.0"
