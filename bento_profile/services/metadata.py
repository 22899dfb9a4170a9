"""
Link and repository metadata lookups.

The fetchers themselves (page scraping, repository APIs) live outside this
package; they are injected as coroutines and treated as opaque. Results are
cached per URL or repository, and a failing fetcher yields None so card
creation never depends on the network.
"""

import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from .cache import TTLCache

logger = logging.getLogger(__name__)

PageFetcher = Callable[[str], Awaitable[Optional[str]]]
RepositoryFetcher = Callable[[str, str, str], Awaitable[Optional[Dict[str, Any]]]]

DEFAULT_METADATA_TTL_SECONDS = 3600.0

REPOSITORY_URL_PATTERN = re.compile(
    r"^(?:https?://)?(?:www\.)?(?P<host>github\.com|gitlab\.com|bitbucket\.org)/"
    r"(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?/?$",
    re.IGNORECASE,
)

PLATFORM_BY_HOST = {
    "github.com": "github",
    "gitlab.com": "gitlab",
    "bitbucket.org": "bitbucket",
}


def parse_repository_url(url: str) -> Optional[Tuple[str, str, str]]:
    """Split a repository URL into (platform, owner, repo), or None."""
    match = REPOSITORY_URL_PATTERN.match(url.strip())
    if not match:
        return None
    return PLATFORM_BY_HOST[match.group("host").lower()], match.group("owner"), match.group("repo")


class MetadataService:
    """Cached front for the injected metadata fetchers."""

    def __init__(
        self,
        fetch_page_title: Optional[PageFetcher] = None,
        fetch_page_image: Optional[PageFetcher] = None,
        fetch_repository: Optional[RepositoryFetcher] = None,
        cache: Optional[TTLCache] = None,
    ):
        self._fetch_page_title = fetch_page_title
        self._fetch_page_image = fetch_page_image
        self._fetch_repository = fetch_repository
        self.cache = cache if cache is not None else TTLCache(DEFAULT_METADATA_TTL_SECONDS, name="metadata")

    async def _guarded(self, key: Tuple, fetch: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await self.cache.get_or_fetch(key, fetch)
        except Exception as e:
            logger.warning(f"Metadata fetch failed for {key[0]} {key[1:]}: {e}")
            return None

    async def page_title(self, url: str) -> Optional[str]:
        if self._fetch_page_title is None:
            return None
        return await self._guarded(("title", url), lambda: self._fetch_page_title(url))

    async def page_image(self, url: str) -> Optional[str]:
        if self._fetch_page_image is None:
            return None
        return await self._guarded(("image", url), lambda: self._fetch_page_image(url))

    async def repository(self, platform: str, owner: str, repo: str) -> Optional[Dict[str, Any]]:
        if self._fetch_repository is None:
            return None
        return await self._guarded(
            ("repository", platform, owner, repo),
            lambda: self._fetch_repository(platform, owner, repo),
        )

    async def link_content(self, url: str) -> Dict[str, Any]:
        """Content payload for a link card (url, plus title and image when known)."""
        content: Dict[str, Any] = {"url": url}
        title = await self.page_title(url)
        if title:
            content["title"] = title
        image = await self.page_image(url)
        if image:
            content["image"] = image
        return content
