"""GitHub GraphQL API client implementation with rate limiting and retry logic."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set
from gql import gql, Client
from gql.client import AsyncClientSession
from gql.transport.aiohttp import AIOHTTPTransport
from gql.transport.exceptions import TransportServerError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)
from repo_quality.domain.exceptions import MetadataFetchError
from repo_quality.domain.github_interface import IGitHubClient
from repo_quality.domain.models import RepositoryInfo


logger = logging.getLogger(__name__)

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"

_RATE_LIMIT_FRAGMENT = """
    rateLimit {
        remaining
        resetAt
    }
"""


class RateLimitException(Exception):
    """Exception raised when rate limit is hit."""
    pass


def _parse_github_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _to_expression(path: str) -> str:
    """Git object expression for a path on the default branch."""
    return f"HEAD:{path.rstrip('/')}"


class GitHubGraphQLClient(IGitHubClient):
    """GitHub GraphQL API client with rate limiting and retry mechanisms.

    Implements the IGitHubClient port, providing an anti-corruption layer
    between the domain and GitHub's API. A single session is opened lazily
    and shared by every concurrent query.
    """

    REPOSITORY_INFO_QUERY = gql("""
        query RepositoryInfo($owner: String!, $name: String!) {
            repository(owner: $owner, name: $name) {
                owner {
                    login
                }
                name
                url
                description
                primaryLanguage {
                    name
                }
                stargazerCount
                forkCount
                issues(states: OPEN) {
                    totalCount
                }
                createdAt
                updatedAt
                licenseInfo {
                    spdxId
                }
            }
    """ + _RATE_LIMIT_FRAGMENT + "}")

    FILE_CONTENT_QUERY = gql("""
        query FileContent($owner: String!, $name: String!, $expression: String!) {
            repository(owner: $owner, name: $name) {
                object(expression: $expression) {
                    ... on Blob {
                        text
                        isBinary
                    }
                }
            }
    """ + _RATE_LIMIT_FRAGMENT + "}")

    LANGUAGES_QUERY = gql("""
        query Languages($owner: String!, $name: String!) {
            repository(owner: $owner, name: $name) {
                languages(first: 100) {
                    edges {
                        size
                        node {
                            name
                        }
                    }
                }
            }
    """ + _RATE_LIMIT_FRAGMENT + "}")

    CONTRIBUTORS_QUERY = gql("""
        query Contributors($owner: String!, $name: String!) {
            repository(owner: $owner, name: $name) {
                mentionableUsers {
                    totalCount
                }
            }
    """ + _RATE_LIMIT_FRAGMENT + "}")

    STARS_QUERY = gql("""
        query Stars($owner: String!, $name: String!) {
            repository(owner: $owner, name: $name) {
                stargazerCount
            }
    """ + _RATE_LIMIT_FRAGMENT + "}")

    def __init__(self, access_token: str, url: str = GITHUB_GRAPHQL_URL, timeout: int = 30):
        """Initialize GitHub client.

        Args:
            access_token: GitHub personal access token
            url: GraphQL endpoint
            timeout: Per-request timeout in seconds
        """
        self._access_token = access_token
        self._url = url
        self._timeout = timeout
        self._transport: Optional[AIOHTTPTransport] = None
        self._client: Optional[Client] = None
        self._session: Optional[AsyncClientSession] = None
        self._session_lock = asyncio.Lock()
        self._rate_limit_remaining: int = 5000
        self._rate_limit_reset_at: Optional[datetime] = None

    async def _get_session(self) -> AsyncClientSession:
        """Open the shared GraphQL session (lazy initialization)."""
        async with self._session_lock:
            if self._session is None:
                headers = {"Authorization": f"Bearer {self._access_token}"}
                self._transport = AIOHTTPTransport(
                    url=self._url,
                    headers=headers,
                    timeout=self._timeout
                )
                self._client = Client(
                    transport=self._transport,
                    fetch_schema_from_transport=False,
                    execute_timeout=self._timeout
                )
                self._session = await self._client.connect_async(reconnecting=False)
        return self._session

    async def _check_rate_limit(self) -> None:
        """Check and handle rate limiting."""
        if self._rate_limit_remaining <= 10:
            if self._rate_limit_reset_at:
                wait_time = (self._rate_limit_reset_at - datetime.now(timezone.utc)).total_seconds()
                if wait_time > 0:
                    logger.warning(
                        f"Rate limit nearly exhausted. Waiting {wait_time:.0f} seconds "
                        f"until reset at {self._rate_limit_reset_at}"
                    )
                    await asyncio.sleep(wait_time + 1)  # Add 1 second buffer

    @retry(
        retry=retry_if_exception_type((RateLimitException, asyncio.TimeoutError, TransportServerError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True
    )
    async def _execute_query(self, query, variables: Dict[str, Any]) -> dict:
        """Execute GraphQL query with retry logic.

        Args:
            query: Parsed GraphQL document
            variables: Query variables

        Returns:
            Query result dictionary

        Raises:
            RateLimitException: When rate limit is hit
        """
        session = await self._get_session()
        await self._check_rate_limit()

        try:
            result = await session.execute(query, variable_values=variables)
        except Exception as e:
            logger.debug(f"Error executing GraphQL query: {e}")
            if "rate limit" in str(e).lower():
                raise RateLimitException(str(e))
            raise

        # Update rate limit info
        rate_limit = result.get("rateLimit") or {}
        self._rate_limit_remaining = rate_limit.get("remaining", self._rate_limit_remaining)
        reset_at_str = rate_limit.get("resetAt")
        if reset_at_str:
            self._rate_limit_reset_at = _parse_github_datetime(reset_at_str)

        return result

    async def _query_repository(self, query, owner: str, name: str, **variables) -> dict:
        result = await self._execute_query(query, {"owner": owner, "name": name, **variables})
        repository = result.get("repository")
        if repository is None:
            raise LookupError(f"Repository {owner}/{name} not found")
        return repository

    async def get_repository_info(self, owner: str, name: str) -> RepositoryInfo:
        """Fetch repository metadata.

        Raises:
            MetadataFetchError: When the query fails or the repository does not exist
        """
        full_name = f"{owner}/{name}"
        try:
            data = await self._query_repository(self.REPOSITORY_INFO_QUERY, owner, name)
        except Exception as e:
            logger.error(f"Error fetching repository info for {full_name}: {e}")
            raise MetadataFetchError(full_name, str(e)) from e

        return self.parse_repository_info(data)

    @staticmethod
    def parse_repository_info(data: dict) -> RepositoryInfo:
        """Transform the GraphQL repository node into a domain entity."""
        language = data.get("primaryLanguage") or {}
        license_info = data.get("licenseInfo") or {}
        return RepositoryInfo(
            owner=data["owner"]["login"],
            name=data["name"],
            url=data["url"],
            description=data.get("description") or None,
            language=language.get("name"),
            stars=data.get("stargazerCount", 0),
            forks=data.get("forkCount", 0),
            open_issues=(data.get("issues") or {}).get("totalCount", 0),
            created_at=_parse_github_datetime(data["createdAt"]),
            updated_at=_parse_github_datetime(data["updatedAt"]),
            license=license_info.get("spdxId") or None
        )

    @staticmethod
    def build_paths_query(paths: List[str]) -> str:
        """Build one query checking many paths at once through aliased object lookups."""
        declarations = "".join(f", $p{index}: String!" for index in range(len(paths)))
        lookups = "\n".join(
            f"p{index}: object(expression: $p{index}) {{ __typename }}"
            for index in range(len(paths))
        )
        return (
            f"query ExistingPaths($owner: String!, $name: String!{declarations}) {{\n"
            f"repository(owner: $owner, name: $name) {{\n{lookups}\n}}\n"
            f"{_RATE_LIMIT_FRAGMENT}}}"
        )

    async def find_existing_paths(self, owner: str, name: str, paths: Iterable[str]) -> Set[str]:
        unique_paths = list(dict.fromkeys(paths))
        if not unique_paths:
            return set()

        query = gql(self.build_paths_query(unique_paths))
        variables = {f"p{index}": _to_expression(path) for index, path in enumerate(unique_paths)}
        repository = await self._query_repository(query, owner, name, **variables)

        return {
            path for index, path in enumerate(unique_paths)
            if repository.get(f"p{index}") is not None
        }

    async def get_file_content(self, owner: str, name: str, path: str) -> Optional[str]:
        repository = await self._query_repository(
            self.FILE_CONTENT_QUERY, owner, name, expression=_to_expression(path)
        )
        blob = repository.get("object") or {}
        if blob.get("isBinary"):
            return None
        return blob.get("text")

    async def get_languages(self, owner: str, name: str) -> Dict[str, int]:
        repository = await self._query_repository(self.LANGUAGES_QUERY, owner, name)
        edges = (repository.get("languages") or {}).get("edges", [])
        return {edge["node"]["name"]: edge["size"] for edge in edges}

    async def get_contributor_count(self, owner: str, name: str) -> int:
        repository = await self._query_repository(self.CONTRIBUTORS_QUERY, owner, name)
        return (repository.get("mentionableUsers") or {}).get("totalCount", 0)

    async def get_star_count(self, owner: str, name: str) -> int:
        repository = await self._query_repository(self.STARS_QUERY, owner, name)
        return repository.get("stargazerCount", 0)

    async def close(self) -> None:
        """Close the GraphQL session and transport."""
        if self._client is not None and self._session is not None:
            await self._client.close_async()
        self._session = None
        self._transport = None
        self._client = None
