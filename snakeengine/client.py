"""HTTP client for the engine's game API."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

import requests

_JSON_HEADERS = {"Content-Type": "application/json"}


class EngineClient:
    """Starts games and reads their state through the engine's HTTP API."""

    def __init__(
        self,
        api_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 5.0,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def begin_game(self, create_request: Mapping[str, Any]) -> str:
        """Create a game from ``create_request``, start it and return its id."""
        with self.session.post(
            f"{self.api_url}/games",
            json=dict(create_request),
            headers=_JSON_HEADERS,
            timeout=self.timeout,
        ) as resp:
            game_id = str(resp.json().get("ID", ""))

        with self.session.post(
            f"{self.api_url}/games/{game_id}/start",
            headers=_JSON_HEADERS,
            timeout=self.timeout,
        ):
            pass
        return game_id

    def game_status(self, game_id: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Return the game's status response and its frames response."""
        with self.session.get(
            f"{self.api_url}/games/{game_id}", timeout=self.timeout
        ) as resp:
            status = resp.json()
        with self.session.get(
            f"{self.api_url}/games/{game_id}/frames", timeout=self.timeout
        ) as resp:
            frames = resp.json()
        return status, frames