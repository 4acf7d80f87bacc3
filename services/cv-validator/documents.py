"""CV document handling: upload checks, media type sniffing and fetch-by-URL.

Document bytes are never logged; only sizes, names and URLs.
"""

import logging
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

import httpx

from config import settings
from preprocessing import prepare_image
from storage import ObjectStore

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
PNG_MEDIA_TYPE = "image/png"
JPEG_MEDIA_TYPE = "image/jpeg"

_MAGIC_BYTES: tuple[tuple[bytes, str], ...] = (
    (b"%PDF", PDF_MEDIA_TYPE),
    (b"\x89PNG\r\n\x1a\n", PNG_MEDIA_TYPE),
    (b"\xff\xd8\xff", JPEG_MEDIA_TYPE),
)

EXTENSIONS: dict[str, tuple[str, ...]] = {
    PDF_MEDIA_TYPE: (".pdf",),
    PNG_MEDIA_TYPE: (".png",),
    JPEG_MEDIA_TYPE: (".jpg", ".jpeg"),
}


class InvalidUploadError(Exception):
    """Uploaded file failed size, format or extension checks."""


class DocumentFetchError(Exception):
    """Document could not be resolved from its URL or from object storage."""


@dataclass(frozen=True)
class Document:
    content: bytes
    filename: str
    media_type: str


def detect_media_type(content: bytes) -> str | None:
    """Identify a supported document type from its leading magic bytes."""
    for magic, media_type in _MAGIC_BYTES:
        if content.startswith(magic):
            return media_type
    return None


def validate_upload(content: bytes, filename: str, max_bytes: int | None = None) -> str:
    """Check an uploaded CV and return its media type.

    Raises InvalidUploadError on empty, oversized, unrecognized, or
    misnamed files.
    """
    limit = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_BYTES

    if not content:
        raise InvalidUploadError("Empty file uploaded")

    if len(content) > limit:
        raise InvalidUploadError(f"File too large. Maximum size is {limit // (1024 * 1024)}MB")

    media_type = detect_media_type(content)
    if media_type is None:
        raise InvalidUploadError("Invalid file format. Only PDF, PNG and JPEG files are allowed.")

    if not filename.lower().endswith(EXTENSIONS[media_type]):
        allowed = ", ".join(EXTENSIONS[media_type])
        raise InvalidUploadError(f"Invalid file extension. Expected {allowed} for this file content.")

    return media_type


def filename_from_url(file_url: str) -> str:
    """Last path segment of a document URL; doubles as the object key."""
    path = urlparse(file_url).path
    return unquote(path.rstrip("/").rsplit("/", 1)[-1])


class DocumentFetcher:
    """Resolves a document URL to bytes, falling back to authenticated object storage."""

    def __init__(
        self,
        store: ObjectStore,
        bucket: str | None = None,
        timeout: int | None = None,
        http_client: httpx.Client | None = None,
    ):
        self._store = store
        self._bucket = bucket or settings.STORAGE_BUCKET
        self._client = http_client or httpx.Client(
            timeout=float(timeout if timeout is not None else settings.DOCUMENT_FETCH_TIMEOUT),
            follow_redirects=True,
        )

    def close(self):
        self._client.close()

    def fetch(self, file_url: str) -> Document:
        """Download the document and prepare it for the model.

        Raises DocumentFetchError when neither the URL nor storage has it,
        or when the bytes are not a supported document type.
        """
        filename = filename_from_url(file_url)
        content = self._download(file_url, filename)

        media_type = detect_media_type(content)
        if media_type is None:
            raise DocumentFetchError(f"Unsupported document format: {filename}")

        if media_type != PDF_MEDIA_TYPE:
            content = prepare_image(content)
            if detect_media_type(content) != JPEG_MEDIA_TYPE:
                raise DocumentFetchError(f"Could not decode image: {filename}")
            media_type = JPEG_MEDIA_TYPE

        logger.info("Resolved document %s: type=%s size=%d bytes", filename, media_type, len(content))
        return Document(content=content, filename=filename or "document.pdf", media_type=media_type)

    def _download(self, file_url: str, filename: str) -> bytes:
        try:
            resp = self._client.get(file_url)
            resp.raise_for_status()
            logger.info("Downloaded document via public URL (%d bytes)", len(resp.content))
            return resp.content
        except httpx.HTTPError as e:
            logger.info("Public access failed (%s), trying object storage for %s", e, filename)

        try:
            return self._store.get(self._bucket, filename)
        except KeyError as e:
            raise DocumentFetchError(f"Document not found: {file_url}") from e
