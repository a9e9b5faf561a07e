"""
Upload relay: streams the first file of a multipart/form-data request into a
Drive folder.

The request body is decoded incrementally. As soon as the first file part's
headers are known the Drive upload starts on a worker thread and the part's
bytes are fed to it through a BytePipe while parsing continues.
"""
import logging
import time
from concurrent import futures
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from werkzeug.exceptions import ClientDisconnected
from werkzeug.http import parse_options_header
from werkzeug.sansio.multipart import Data, Epilogue, Field, File, MultipartDecoder, NeedData

from .config import UploadSettings, load_service_account_info
from .drive import build_drive_client, describe_upstream_error, upload_stream
from .errors import (
    MethodNotAllowed,
    NoFileProvided,
    PayloadTooLarge,
    RelayError,
    TransportError,
    UnsupportedFileType,
    UploadFailed,
    UploadTimeout,
)
from .pipe import BytePipe, PipeTimeout, UploadCancelled

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def destination_name(filename: str, now: datetime) -> str:
    """Timestamp-prefixed Drive name, e.g. 2026-10-19T08-05-03-042Z_photo.jpg."""
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    return stamp.replace(":", "-").replace(".", "-") + "_" + filename


@dataclass
class FilePart:
    field_name: str
    filename: str
    mime_type: str
    destination: str
    size: int = 0
    oversized: bool = False


class UploadSession:
    """State of one request: parse the body, feed the upload, collect the result."""

    def __init__(self, settings: UploadSettings, drive, executor: futures.Executor, stream, boundary: bytes):
        self.settings = settings
        self.drive = drive
        self.executor = executor
        self.stream = stream
        self.decoder = MultipartDecoder(boundary)
        self.part: Optional[FilePart] = None
        self.pipe: Optional[BytePipe] = None
        self.future: Optional[futures.Future] = None
        self.deadline: Optional[float] = None
        # which kind of part the decoder's Data events currently belong to
        self._receiving = None

    def run(self) -> dict:
        try:
            self._parse()
        except RelayError:
            self._cancel_upload("request rejected")
            raise
        except PipeTimeout as e:
            logger.error("Drive upload stalled while streaming: %s", e)
            self._cancel_upload("upload deadline exceeded")
            raise UploadTimeout() from e
        except (ValueError, OSError, ClientDisconnected) as e:
            logger.error("Multipart parse error: %s", e)
            self._cancel_upload("request body unreadable")
            raise TransportError() from e

        return self._complete()

    def _parse(self) -> None:
        while True:
            chunk = self.stream.read(self.settings.read_size)
            self.decoder.receive_data(chunk or None)
            if self._drain_events() or not chunk:
                break

    def _drain_events(self) -> bool:
        """Handle every event available so far. True once the body is complete."""
        while True:
            event = self.decoder.next_event()
            if isinstance(event, NeedData):
                return False
            if isinstance(event, Epilogue):
                return True
            if isinstance(event, File):
                self._on_file(event)
            elif isinstance(event, Field):
                self._receiving = None
            elif isinstance(event, Data):
                if self._receiving == "upload":
                    self._on_upload_data(event.data)
                    if not event.more_data:
                        self._end_upload_part()

    def _on_file(self, event: File) -> None:
        if self.part is not None:
            logger.warning("Ignoring extra file part %r (%s)", event.name, event.filename)
            self._receiving = None
            return

        mime_type = parse_options_header(event.headers.get("content-type", DEFAULT_MIME_TYPE))[0] or DEFAULT_MIME_TYPE
        if not self.settings.is_allowed(mime_type):
            logger.error("Rejected file %s with type %s", event.filename, mime_type)
            self._drain_stream()
            raise UnsupportedFileType()

        self.part = FilePart(
            field_name=event.name,
            filename=event.filename,
            mime_type=mime_type,
            destination=destination_name(event.filename, self.settings.clock()),
        )
        self.pipe = BytePipe(max_buffer=2 * self.settings.chunk_size)
        self.future = self.executor.submit(
            self._run_upload,
            self.drive,
            self.pipe,
            self.part.destination,
            mime_type,
            self.settings.folder_id,
            self.settings.chunk_size,
        )
        self._receiving = "upload"

    def _run_upload(self, *args) -> dict:
        # the deadline covers the upload itself, not time spent queued for a worker
        self.deadline = time.monotonic() + self.settings.upload_timeout
        return upload_stream(*args)

    def _on_upload_data(self, data: bytes) -> None:
        part = self.part
        if part.oversized or not data:
            return

        part.size += len(data)
        if part.size > self.settings.max_file_size:
            logger.warning("File %s exceeds %d bytes; discarding", part.filename, self.settings.max_file_size)
            part.oversized = True
            self._cancel_upload("file too large")
            return

        # False means the upload already ended (failed); its error surfaces on completion
        self.pipe.write(data, timeout=self._remaining())

    def _end_upload_part(self) -> None:
        self._receiving = None
        if not self.part.oversized:
            self.pipe.close()

    def _complete(self) -> dict:
        if self.part is not None and self.part.oversized:
            raise PayloadTooLarge(self.settings.max_file_size)

        if self.future is None:
            raise NoFileProvided()

        try:
            created = self._wait_for_upload()
        except futures.TimeoutError as e:
            logger.error("Drive upload of %s timed out", self.part.destination)
            self._cancel_upload("upload deadline exceeded")
            raise UploadTimeout() from e
        except Exception as e:
            logger.exception("Drive upload error")
            raise UploadFailed(describe_upstream_error(e)) from e

        return {
            "success": True,
            "fileName": self.part.filename,
            "fileId": created["id"],
        }

    def _wait_for_upload(self) -> dict:
        while True:
            try:
                return self.future.result(timeout=self._remaining())
            except futures.TimeoutError:
                # started while we waited on the queue: give it its own full deadline
                if self.deadline is not None and time.monotonic() < self.deadline:
                    continue
                raise

    def _remaining(self) -> float:
        """Time left before the upload deadline; a queued upload may wait one full timeout for a worker."""
        if self.deadline is None:
            return self.settings.upload_timeout
        return max(0.0, self.deadline - time.monotonic())

    def _cancel_upload(self, reason: str) -> None:
        if self.pipe is not None:
            self.pipe.abort(UploadCancelled(reason))
        if self.future is not None:
            self.future.cancel()

    def _drain_stream(self) -> None:
        while self.stream.read(self.settings.read_size):
            pass


class UploadRelay:
    def __init__(
        self,
        settings: Optional[UploadSettings] = None,
        drive_factory: Callable[[dict], object] = build_drive_client,
        executor: Optional[futures.Executor] = None,
    ):
        self.settings = settings or UploadSettings()
        self.drive_factory = drive_factory
        self.executor = executor or futures.ThreadPoolExecutor(
            max_workers=self.settings.upload_workers,
            thread_name_prefix="drive-upload",
        )

    def handle(self, request) -> tuple[int, Optional[dict]]:
        """Return (status, payload); payload None means an empty body.

        Raises:
            RelayError: for every failure the client should see.
        """
        if request.method == "OPTIONS":
            return 200, None

        if request.method != "POST":
            raise MethodNotAllowed()

        info = load_service_account_info(self.settings.credentials_env)
        drive = self.drive_factory(info)

        if not request.content_type:
            raise ValueError("Missing Content-Type")
        boundary = request.mimetype_params.get("boundary")
        if request.mimetype != "multipart/form-data" or not boundary:
            raise ValueError(f"Unsupported content type: {request.content_type}")

        session = UploadSession(
            self.settings,
            drive,
            self.executor,
            request.stream,
            boundary.encode("latin-1"),
        )
        return 200, session.run()
