"""Build and maintain a deduplicated corpus of published malware hashes."""

__version__ = "0.3.0"
