"""transcript-qa - grounded Q&A and keyword search over video transcripts."""

from importlib.metadata import version

# Package name must match [project].name in pyproject.toml
__version__ = version("transcript-qa")

__all__ = ["__version__"]
