"""Google Drive store using the Drive v3 API.

Requires the optional ``gdrive`` extra:

    pip install 'mmc-worldsync[gdrive]'

Credentials come either from a service account key file or from an
authorized user token file (as written by any installed-app OAuth
flow). World identity lives in each file's ``appProperties``.
"""

from __future__ import annotations

import logging
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Optional

from ..errors import ConfigurationError, TransportError
from .base import ARCHIVE_MIME_TYPE, RemoteMetadata, RemotePage, RemoteQuery, RemoteStore

logger = logging.getLogger("worldsync.remote.gdrive")

SCOPES = ["https://www.googleapis.com/auth/drive.file"]
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "id, name, appProperties, modifiedTime"
CHUNK_SIZE = 8 * 1024 * 1024
SPOOL_MAX_SIZE = 64 * 1024 * 1024


def _quote(value: str) -> str:
    """Escape a value for a Drive query string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _rfc3339(when: datetime) -> str:
    return when.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_query(query: RemoteQuery, root: str) -> str:
    """Render a RemoteQuery in the Drive search language."""
    parts = [f"{_quote(root)} in parents", "trashed = false"]
    for key, value in query.clauses():
        parts.append(f"appProperties has {{ key={_quote(key)} and value={_quote(value)} }}")
    return " and ".join(parts)


def _to_metadata(data: dict[str, Any]) -> RemoteMetadata:
    return RemoteMetadata(
        id=data["id"],
        name=data.get("name", ""),
        properties=data.get("appProperties") or {},
        modified_time=data["modifiedTime"],
    )


class DriveStore(RemoteStore):
    """Remote store in a Google Drive folder.

    Args:
        dir_name: Name of the sync root folder.
        credentials_file: Service account key (JSON).
        token_file: Authorized user token (JSON). Used when no
            service account key is configured.
        page_size: Records requested per search page.
    """

    def __init__(
        self,
        dir_name: str = "MinecraftSync",
        credentials_file: Optional[Path] = None,
        token_file: Optional[Path] = None,
        page_size: int = 100,
    ):
        self.dir_name = dir_name
        self.credentials_file = credentials_file.expanduser() if credentials_file else None
        self.token_file = token_file.expanduser() if token_file else None
        self.page_size = page_size
        self._service: Any = None

    @property
    def name(self) -> str:
        return "gdrive"

    def available(self) -> bool:
        try:
            import googleapiclient  # noqa: F401
        except ImportError:
            return False
        for path in (self.credentials_file, self.token_file):
            if path is not None and path.exists():
                return True
        return False

    def _credentials(self) -> Any:
        if self.credentials_file and self.credentials_file.exists():
            from google.oauth2 import service_account

            return service_account.Credentials.from_service_account_file(
                str(self.credentials_file), scopes=SCOPES
            )
        if self.token_file and self.token_file.exists():
            from google.oauth2.credentials import Credentials

            return Credentials.from_authorized_user_file(str(self.token_file), SCOPES)
        raise ConfigurationError(
            "Google Drive store needs credentials_file or token_file in config.yaml"
        )

    def _drive(self) -> Any:
        """Build (once) and return the Drive v3 service.

        Raises:
            ConfigurationError: If google-api-python-client is not installed.
        """
        if self._service is None:
            try:
                from googleapiclient.discovery import build
            except ImportError:
                raise ConfigurationError(
                    "Google Drive store requires google-api-python-client: "
                    "pip install 'mmc-worldsync[gdrive]'"
                )
            self._service = build("drive", "v3", credentials=self._credentials(), cache_discovery=False)
        return self._service

    def _execute(self, request: Any, action: str) -> Any:
        from googleapiclient.errors import HttpError

        try:
            return request.execute()
        except (HttpError, OSError) as exc:
            raise TransportError(f"Drive {action} failed: {exc}") from exc

    def resolve_root(self) -> str:
        files = self._drive().files()
        q = f"mimeType = {_quote(FOLDER_MIME_TYPE)} and name = {_quote(self.dir_name)} and trashed = false"
        result = self._execute(
            files.list(q=q, pageSize=2, fields="files(id, name)"),
            "root lookup",
        )
        found = result.get("files", [])
        if len(found) > 1:
            raise ConfigurationError(
                f"Found more than one Drive folder named {self.dir_name!r}"
            )
        if found:
            logger.debug("Found sync root %s (%s)", self.dir_name, found[0]["id"])
            return found[0]["id"]

        created = self._execute(
            files.create(body={"name": self.dir_name, "mimeType": FOLDER_MIME_TYPE}, fields="id"),
            "root creation",
        )
        logger.info("Created Drive sync root %s (%s)", self.dir_name, created["id"])
        return created["id"]

    def search_page(
        self,
        query: RemoteQuery,
        root: str,
        page_token: Optional[str] = None,
    ) -> RemotePage:
        q = build_query(query, root)
        logger.debug("Drive query: %s (page %s)", q, page_token or "first")
        result = self._execute(
            self._drive().files().list(
                q=q,
                pageSize=self.page_size,
                pageToken=page_token,
                fields=f"nextPageToken, files({FILE_FIELDS})",
            ),
            "search",
        )
        return RemotePage(
            records=[_to_metadata(f) for f in result.get("files", [])],
            next_page_token=result.get("nextPageToken"),
        )

    def _media(self, stream: BinaryIO) -> Any:
        from googleapiclient.http import MediaIoBaseUpload

        return MediaIoBaseUpload(stream, mimetype=ARCHIVE_MIME_TYPE, chunksize=CHUNK_SIZE, resumable=True)

    def create(
        self,
        stream: BinaryIO,
        name: str,
        properties: dict[str, str],
        root: str,
        modified_time: datetime,
    ) -> RemoteMetadata:
        body = {
            "name": name,
            "parents": [root],
            "appProperties": properties,
            "modifiedTime": _rfc3339(modified_time),
        }
        result = self._execute(
            self._drive().files().create(body=body, media_body=self._media(stream), fields=FILE_FIELDS),
            f"create of {name}",
        )
        return _to_metadata(result)

    def update(
        self,
        stream: BinaryIO,
        object_id: str,
        modified_time: datetime,
    ) -> RemoteMetadata:
        result = self._execute(
            self._drive().files().update(
                fileId=object_id,
                body={"modifiedTime": _rfc3339(modified_time)},
                media_body=self._media(stream),
                fields=FILE_FIELDS,
            ),
            f"update of {object_id}",
        )
        return _to_metadata(result)

    def download(self, object_id: str) -> BinaryIO:
        from googleapiclient.errors import HttpError
        from googleapiclient.http import MediaIoBaseDownload

        buffer = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
        try:
            request = self._drive().files().get_media(fileId=object_id)
            downloader = MediaIoBaseDownload(buffer, request, chunksize=CHUNK_SIZE)
            done = False
            while not done:
                _, done = downloader.next_chunk()
        except (HttpError, OSError) as exc:
            buffer.close()
            raise TransportError(f"Drive download of {object_id} failed: {exc}") from exc
        buffer.seek(0)
        return buffer
