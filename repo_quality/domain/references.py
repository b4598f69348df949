"""Parsing and validation of GitHub repository references."""
import re

from repo_quality.domain.exceptions import InvalidReferenceError
from repo_quality.domain.models import RepositoryCoordinates


_URL_PATTERN = re.compile(
    r"^https?://github\.com/([a-zA-Z0-9_-]+)/([a-zA-Z0-9_.-]+?)(?:\.git)?(?:/.*)?$"
)
_SHORT_PATTERN = re.compile(r"^([a-zA-Z0-9_-]+)/([a-zA-Z0-9_.-]+)$")


def parse_repository_reference(reference: str) -> RepositoryCoordinates:
    """Parse a repository reference into coordinates.

    Accepts full URLs (``https://github.com/owner/name``, optionally with a
    ``.git`` suffix or trailing path) and the short ``owner/name`` form.

    Args:
        reference: Repository URL or owner/name string

    Returns:
        RepositoryCoordinates for the reference

    Raises:
        InvalidReferenceError: If the reference matches neither form
    """
    candidate = reference.strip()
    for pattern in (_URL_PATTERN, _SHORT_PATTERN):
        match = pattern.match(candidate)
        if match:
            return RepositoryCoordinates(owner=match.group(1), name=match.group(2))
    raise InvalidReferenceError(reference)


def is_valid_reference(reference: str) -> bool:
    try:
        parse_repository_reference(reference)
    except InvalidReferenceError:
        return False
    return True
