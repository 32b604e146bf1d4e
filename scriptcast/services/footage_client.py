"""Stock-footage client - Pexels video search and clip download."""

import shutil
from pathlib import Path
from typing import Any, Optional

import requests
from pydantic import ValidationError

from scriptcast.core.config import Settings
from scriptcast.core.exceptions import DownloadError, FootageSearchError
from scriptcast.models.schemas import FootageSearchPage, FootageSearchParams
from scriptcast.utils.io_utils import is_local_asset, resolve_asset_path
from scriptcast.utils.rate_limiter import RateLimiter, get_pexels_limiter


class PexelsClient:
    """Client for the Pexels video search API."""

    def __init__(self, settings: Settings, logger: Any, rate_limiter: Optional[RateLimiter] = None):
        """
        Initialize Pexels client.

        Args:
            settings: Application settings
            logger: Logger instance
            rate_limiter: Optional limiter (defaults to the shared Pexels limiter)
        """
        self.settings = settings
        self.logger = logger
        self.api_key = settings.pexels_api_key
        self.rate_limiter = rate_limiter or get_pexels_limiter(max_calls=settings.pexels_rate_limit)
        self.session = requests.Session()

    def search_videos(self, params: FootageSearchParams) -> FootageSearchPage:
        """
        Search stock videos.

        Args:
            params: Search parameters

        Returns:
            One page of results

        Raises:
            FootageSearchError: If the API key is missing, the request fails or the response is malformed
        """
        if not self.api_key:
            raise FootageSearchError("Pexels API key not configured (set PEXELS_API_KEY)")

        query = {
            "query": params.query,
            "orientation": params.orientation,
            "page": params.page,
            "per_page": params.per_page,
        }
        if params.size:
            query["size"] = params.size
        if params.locale:
            query["locale"] = params.locale

        if not self.rate_limiter.can_proceed("pexels_search"):
            self.logger.warning(f"⏳ Pexels rate limit of {self.settings.pexels_rate_limit}/hour reached, waiting")
        waited = self.rate_limiter.wait_if_needed("pexels_search")
        if waited:
            self.logger.info(f"Resumed Pexels search after {waited:.1f}s")
        try:
            response = self.session.get(
                self.settings.pexels_api_url,
                params=query,
                headers={"Authorization": self.api_key},
                timeout=self.settings.pexels_request_timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise FootageSearchError(f"Network error searching Pexels for '{params.query}': {e}") from e

        if response.status_code != 200:
            raise FootageSearchError(
                f"Pexels API returned status {response.status_code} for '{params.query}'",
                diagnostics=response.text[:500],
            )

        try:
            page = FootageSearchPage.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise FootageSearchError(f"Malformed Pexels response for '{params.query}': {e}") from e

        self.logger.debug(f"Pexels '{params.query}': {len(page.videos)} videos (total {page.total_results})")
        return page

    def download(self, url: str, destination: Path, timeout: Optional[float] = None) -> Path:
        """
        Download a clip to ``destination``. Local-storage URLs are copied from disk.

        Args:
            url: Remote URL or local-storage URL
            destination: Target file path
            timeout: Request timeout in seconds

        Returns:
            Path to the downloaded file

        Raises:
            DownloadError: If the clip cannot be fetched or is empty
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        marker = self.settings.local_files_marker

        if is_local_asset(url, marker):
            source = Path(resolve_asset_path(url, marker, self.settings.local_storage_root))
            if not source.exists():
                raise DownloadError(f"Local asset not found: {source}")
            shutil.copyfile(source, destination)
            return destination

        timeout = timeout or self.settings.footage_download_timeout_seconds
        try:
            with self.session.get(url, stream=True, timeout=timeout) as response:
                response.raise_for_status()
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=1 << 16):
                        if chunk:
                            f.write(chunk)
        except requests.exceptions.RequestException as e:
            destination.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download {url}: {e}") from e

        if destination.stat().st_size == 0:
            destination.unlink(missing_ok=True)
            raise DownloadError(f"Downloaded clip is empty: {url}")
        return destination
