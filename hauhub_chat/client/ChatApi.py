"""HTTP API client for the HauHub chat REST endpoints."""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class ChatApi:
    """Blocking REST client for identity, group, history, member and file endpoints.

    Every method raises ``requests.HTTPError`` for non-2xx responses and
    other ``requests.RequestException`` subclasses for transport errors.

    Args:
        base_url: API root, e.g. ``https://hub.hau.edu.vn/api``.
        token: Optional bearer token.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _headers(self, json_body: bool = True) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"} if json_body else {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = requests.get(f"{self.base_url}{path}", params=params, headers=self._headers(), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def fetch_user(self, user_id: str) -> Dict[str, Any]:
        """Return ``{id, username, name, avatar, role}`` for user_id."""
        return self._get(f"/users/{user_id}")

    def fetch_group(self, group_id: str) -> Dict[str, Any]:
        """Return ``{id, name, projectName, courseCode, instructor, members}``."""
        return self._get(f"/chat/groups/{group_id}")

    def fetch_group_messages(self, group_id: str, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        """Return past messages of the group, oldest first."""
        return self._get(f"/chat/groups/{group_id}/messages", params={"limit": limit, "offset": offset})

    def fetch_group_members(self, group_id: str) -> List[Dict[str, Any]]:
        """Return member records ``{id, name, role, isOnline}``."""
        return self._get(f"/chat/groups/{group_id}/members")

    def fetch_group_files(self, group_id: str) -> List[Dict[str, Any]]:
        return self._get(f"/chat/groups/{group_id}/files")

    def send_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Post a chat message when the WebSocket is unavailable.

        Returns:
            The stored message record; ``id`` is the server message id.
        """
        resp = requests.post(
            f"{self.base_url}/chat/messages", json=payload, headers=self._headers(), timeout=self.timeout
        )
        resp.raise_for_status()
        return resp.json()

    def upload_file(self, path: Path, group_id: str, user_id: str) -> Dict[str, Any]:
        """Upload a file as multipart ``{file, groupId, userId}``.

        Returns:
            Response dict containing ``file`` metadata (``name``, ``type``, ``url``, ...).
        """
        with open(path, "rb") as f:
            resp = requests.post(
                f"{self.base_url}/files/upload",
                files={"file": (path.name, f)},
                data={"groupId": group_id, "userId": user_id},
                headers=self._headers(json_body=False),
                timeout=self.timeout,
            )
        resp.raise_for_status()
        logger.debug("ChatApi: uploaded %s to group %s", path.name, group_id)
        return resp.json()
