"""Validated file upload to the active group."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import requests

from hauhub_chat.EventBus import EventBus
from hauhub_chat.client.ChatApi import ChatApi
from hauhub_chat.client.ChatTransport import ChatTransport
from hauhub_chat.network.types import FileUploadedFrame
from hauhub_chat.types import FileInfo, Notification, Session

logger = logging.getLogger(__name__)


class FileUploader:
    """Uploads files through the REST endpoint and announces them over the transport.

    The uploaded file is not added to the local file grid here; it appears
    when the server broadcasts the ``file_uploaded`` frame back to the group.

    Args:
        session: Local user and active group.
        transport: Transport used to announce the upload.
        api: REST client performing the multipart upload.
        bus: Event bus for notifications.
        config: Application config (``upload`` section).
    """

    def __init__(
        self,
        session: Session,
        transport: ChatTransport,
        api: ChatApi,
        bus: EventBus,
        config: dict[str, Any],
    ) -> None:
        self._session = session
        self._transport = transport
        self._api = api
        self._bus = bus
        upload_config = config.get("upload", {})
        self._max_bytes: int = upload_config.get("max_upload_bytes", 25 * 1024 * 1024)
        self._allowed = {ext.lower() for ext in upload_config.get("allowed_extensions", [])}

    def validate(self, path: Path) -> str | None:
        """Check a file before any network call.

        Returns:
            An error message, or None if the file can be uploaded.
        """
        if not path.is_file():
            return f"File not found: {path.name}"
        if self._allowed and path.suffix.lower() not in self._allowed:
            return f"File type not allowed: {path.name}"
        size = path.stat().st_size
        if size > self._max_bytes:
            return f"File too large: {path.name} ({size} bytes, limit {self._max_bytes})"
        return None

    async def upload(self, path: Path) -> FileInfo | None:
        """Upload a file to the active group.

        Algorithm:
            1. Require an active group; validate the file. Errors → notification, no request.
            2. POST multipart ``{file, groupId, userId}`` (in a worker thread).
            3. Announce ``file_uploaded`` over the transport if open.
            4. Publish a success notification.

        Returns:
            The uploaded file metadata, or None on failure.
        """
        group_id = self._session.active_group_id
        if group_id is None:
            self._bus.publish("notification", Notification("error", "Chat group not found"))
            return None

        error = self.validate(path)
        if error is not None:
            logger.info("FileUploader: rejected %s: %s", path, error)
            self._bus.publish("notification", Notification("error", error))
            return None

        try:
            result = await asyncio.to_thread(self._api.upload_file, path, group_id, self._session.user_id)
            file = FileInfo.from_record(result["file"])
        except (requests.RequestException, OSError, KeyError, TypeError, ValueError):
            logger.exception("FileUploader: upload of %s failed", path)
            self._bus.publish("notification", Notification("error", f"Could not upload file: {path.name}"))
            return None

        frame = FileUploadedFrame(
            group_id=group_id,
            user_id=self._session.user_id,
            file=file.to_record(),
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
        )
        if not await self._transport.send(frame):
            logger.warning("FileUploader: transport not open, %s not announced", file.name)

        self._bus.publish("notification", Notification("success", f"Uploaded: {file.name}"))
        return file
