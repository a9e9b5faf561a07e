import logging

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaUpload

from .errors import ConfigurationError
from .pipe import BytePipe

logger = logging.getLogger(__name__)

# Write access limited to files created by this app
SCOPES = ["https://www.googleapis.com/auth/drive.file"]


def build_drive_client(info: dict):
    """Drive v3 client for a service account key. No network I/O here."""
    try:
        creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except (ValueError, KeyError, TypeError) as e:
        logger.error("Service account key rejected: %s", e)
        raise ConfigurationError("Configuration error: invalid credentials format") from e
    return build("drive", "v3", credentials=creds, cache_discovery=False)


class StreamingMediaUpload(MediaUpload):
    """Resumable media of unknown length, read from a BytePipe.

    The client asks for sequential chunks with getbytes(); a short chunk
    tells it the stream is over. The last handed-out window is kept so a
    chunk the server only partly accepted can be sent again.
    """

    def __init__(self, pipe: BytePipe, mimetype: str, chunksize: int):
        super().__init__()
        self._pipe = pipe
        self._mimetype = mimetype
        self._chunksize = chunksize
        self._window = bytearray()
        self._window_start = 0

    def chunksize(self):
        return self._chunksize

    def mimetype(self):
        return self._mimetype

    def size(self):
        return None

    def resumable(self):
        return True

    def has_stream(self):
        return False

    def getbytes(self, begin, length):
        window_end = self._window_start + len(self._window)
        if begin < self._window_start or begin > window_end:
            raise ValueError(
                f"cannot seek streaming upload to {begin} "
                f"(buffered {self._window_start}-{window_end})"
            )
        del self._window[: begin - self._window_start]
        self._window_start = begin

        missing = length - len(self._window)
        if missing > 0:
            self._window.extend(self._pipe.read(missing))
        return bytes(self._window[:length])


def upload_stream(drive, pipe: BytePipe, name: str, mime_type: str, folder_id: str, chunk_size: int) -> dict:
    """Create a Drive file from everything written to pipe. Runs on a worker thread."""
    media = StreamingMediaUpload(pipe, mime_type, chunk_size)
    try:
        created = drive.files().create(
            body={
                "name": name,
                "parents": [folder_id],
            },
            media_body=media,
            fields="id,name",
            supportsAllDrives=True,
        ).execute()
        logger.info("Uploaded %s to Drive as %s", name, created.get("id"))
        return created
    finally:
        pipe.close_reader()


def describe_upstream_error(exc: BaseException) -> str:
    if isinstance(exc, HttpError):
        reason = getattr(exc, "reason", None)
        if reason:
            return str(reason)
    return str(exc)
