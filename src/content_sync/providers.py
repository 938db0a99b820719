import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .constants import APP_NAME
from .errors import TaskError

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class Platform:
    """A game platform as the warframestat API addresses it.

    Attributes:
        id (str): Path segment used by the API (e.g. 'pc').
        name (str): Display name written into content files.
    """

    id: str
    name: str


PLATFORMS = [
    Platform("pc", "PC"),
    Platform("ps4", "PS4"),
    Platform("xb1", "Xbox One"),
    Platform("swi", "Nintendo Switch"),
]
"""list[Platform]: Every platform queried for event data."""

BALOR_FOMORIAN = "Balor Fomorian"
THERMIA_FRACTURES = "Thermia Fractures"


class WarframestatProvider:
    """Fetches world-state events from the warframestat API.

    Attributes:
        api_url (str): Base URL of the API.
        platforms (list[Platform]): Platforms to query.
    """

    def __init__(
        self,
        api_url: str,
        platforms: list[Platform] | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.platforms = platforms if platforms is not None else PLATFORMS
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def _get_events(self, platform: Platform) -> list[dict[str, Any]]:
        """Lists the current events for a platform.

        Raises:
            TaskError: If the request fails or the payload is not a list.
        """
        url = f"{self.api_url}/{platform.id}/events"
        try:
            response = self._client.get(url)
            response.raise_for_status()
            events = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Cannot retrieve data by url {url}: {e}")
            raise TaskError(f"cannot retrieve {platform.name} events") from e

        if not isinstance(events, list):
            logger.error(f"Unexpected payload from {url}: {type(events).__name__}")
            raise TaskError(
                f"unexpected {platform.name} events payload: {type(events).__name__}"
            )
        return events

    def get_event_by_platform(
        self, event_name: str, platform: Platform
    ) -> dict[str, Any]:
        """Finds the first event whose description mentions `event_name`.

        Returns:
            dict[str, Any]: The event tagged with the platform display name,
            or an empty dict if the event is not running there.
        """
        for event in self._get_events(platform):
            if event_name in str(event.get("description", "")):
                return {**event, "platform": platform.name}
        return {}

    def get_event_data(self, event_name: str) -> list[dict[str, Any]]:
        """Collects an event across all platforms where it is running.

        Args:
            event_name (str): Text identifying the event (e.g. 'Balor Fomorian').

        Returns:
            list[dict[str, Any]]: One event per platform, in platform order.

        Raises:
            TaskError: If any platform cannot be queried.
        """
        results = (self.get_event_by_platform(event_name, p) for p in self.platforms)
        return [event for event in results if event]
