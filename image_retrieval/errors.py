"""
Error taxonomy for retrieval runs.

Fatal errors (InputError, ConfigurationError, CacheError) abort a run
before any ranked output is produced. CandidateError covers problems
with a single database image; the ranker logs and skips those.
"""


class RetrievalError(Exception):
    """Base class for all retrieval errors."""


class InputError(RetrievalError):
    """Bad arguments or an unreadable target."""


class CandidateError(RetrievalError):
    """A single candidate could not be decoded or described."""


class ExtractionError(CandidateError):
    """Degenerate region or an image with too few channels."""


class ConfigurationError(RetrievalError):
    """Incompatible extractor or distance configuration."""


class ShapeMismatchError(ConfigurationError):
    """Two descriptors with different shapes were compared."""


class CacheError(RetrievalError):
    """The feature cache could not be used."""


class MalformedCacheError(CacheError):
    """A cache row is short or holds a non-numeric value."""


class NotFoundError(CacheError):
    """No cache row matches the requested identifier."""
