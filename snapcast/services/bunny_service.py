# snapcast/services/bunny_service.py

import logging
from dataclasses import dataclass
from functools import lru_cache

import requests

from ..core.config import settings
from ..core.exceptions import CdnError, ConfigurationError

logger = logging.getLogger(__name__)

# Bunny Stream encoding states
BUNNY_STATUS_FINISHED = 4
BUNNY_STATUS_FAILED = (5, 6)


@dataclass(frozen=True)
class CdnVideoStatus:
    status: int
    duration: float | None


class BunnyStreamService:
    """
    Service class for the Bunny Stream video library.
    Clients upload bytes straight to the library URL; this class only
    composes that URL and talks to the status and delete endpoints.
    """
    def __init__(
        self,
        base_url: str,
        library_id: str | None,
        access_key: str | None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.library_id = library_id
        self.access_key = access_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _require_config(self):
        if not self.library_id:
            raise ConfigurationError("BUNNY_LIBRARY_ID is not configured.")
        if not self.access_key:
            raise ConfigurationError("BUNNY_STREAM_ACCESS_KEY is not configured.")

    def video_url(self, video_id: str) -> str:
        """Pure string composition; fails fast when the library is not configured."""
        self._require_config()
        return f"{self.base_url}/library/{self.library_id}/videos/{video_id}"

    def upload_headers(self) -> dict[str, str]:
        self._require_config()
        return {
            "AccessKey": self.access_key,
            "Content-Type": "application/octet-stream",
        }

    def get_video_status(self, video_id: str) -> CdnVideoStatus:
        """Raises CdnError on timeout, connection failure, non-2xx or an unreadable body."""
        url = self.video_url(video_id)
        try:
            response = self.session.get(
                url,
                headers={"AccessKey": self.access_key, "Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
            status = int(data["status"])
            # Bunny reports the encoded length as "length"; accept "duration" as well.
            raw_duration = data.get("length", data.get("duration"))
            duration = float(raw_duration) if raw_duration is not None else None
        except requests.RequestException as e:
            logger.warning("Bunny status request failed for %s: %s", video_id, e)
            raise CdnError() from e
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Bunny returned an unreadable status for %s: %s", video_id, e)
            raise CdnError() from e
        return CdnVideoStatus(status=status, duration=duration)

    def delete_video(self, video_id: str) -> None:
        """Deletes the asset. A 404 counts as already gone."""
        url = self.video_url(video_id)
        try:
            response = self.session.delete(
                url,
                headers={"AccessKey": self.access_key},
                timeout=self.timeout,
            )
            if response.status_code == 404:
                logger.info("Bunny asset %s was already gone.", video_id)
                return
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Bunny delete failed for %s: %s", video_id, e)
            raise CdnError() from e


@lru_cache()
def get_bunny_service() -> BunnyStreamService:
    return BunnyStreamService(
        base_url=settings.BUNNY_STREAM_BASE_URL,
        library_id=settings.BUNNY_LIBRARY_ID,
        access_key=settings.BUNNY_STREAM_ACCESS_KEY,
        timeout=settings.BUNNY_TIMEOUT_SECONDS,
    )
