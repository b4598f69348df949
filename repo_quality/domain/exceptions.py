"""Exception taxonomy for repository analysis."""


class RepoQualityError(Exception):
    """Base exception for all repository quality errors."""
    pass


class InvalidReferenceError(RepoQualityError):
    """Raised when a repository reference is neither a GitHub URL nor owner/name."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Invalid repository format: {reference}")


class MetadataFetchError(RepoQualityError):
    """Raised when repository metadata cannot be fetched."""

    def __init__(self, repository: str, message: str):
        self.repository = repository
        super().__init__(f"Failed to fetch repository info for {repository}: {message}")


class AnalysisFailedError(RepoQualityError):
    """Raised when a single repository analysis cannot complete."""

    def __init__(self, repository: str, cause: Exception):
        self.repository = repository
        self.cause = cause
        super().__init__(f"Analysis failed for {repository}: {cause}")


class ProbeError(RepoQualityError):
    """Raised by a metric probe; the orchestrator replaces its output with a default."""
    pass


class ConfigurationError(RepoQualityError):
    """Raised when configuration is invalid. Thrown before any analysis runs."""
    pass
