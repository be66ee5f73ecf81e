"""Asset Pipe Client - publish asset feeds and resolve bundle URLs.

This package publishes JavaScript/CSS asset feeds to an asset build server,
submits bundling instructions, and resolves the URL of the most specific
pre-built bundle for a set of feed hashes.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
