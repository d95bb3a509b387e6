"""Core models for inbound forms, relay configuration and file metadata."""

import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import IO

from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from pydantic.alias_generators import to_camel

DEFAULT_MIME_TYPE = "application/octet-stream"


class RelayConfig(BaseModel):
    """Immutable relay configuration handed to the request handler."""

    model_config = ConfigDict(frozen=True)

    webhook_url: HttpUrl
    timeout_seconds: float = Field(default=300.0, gt=0)
    max_body_bytes: int = Field(default=200 * 1024 * 1024, gt=0)
    upload_dir: Path | None = None


class FileMetadata(BaseModel):
    """Per-file description forwarded next to the file bytes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    original_name: str
    mime_type: str
    size: int
    field_name: str
    index: int


class UploadedFile:
    """A file part spooled to a named temporary file while the request is handled."""

    __slots__ = ("field_name", "index", "original_name", "mime_type", "size", "_handle")

    def __init__(
        self,
        field_name: str,
        index: int,
        handle: IO[bytes],
        original_name: str | None = None,
        mime_type: str | None = None,
    ) -> None:
        self.field_name = field_name
        self.index = index
        self.original_name = original_name
        self.mime_type = mime_type
        self.size = 0
        self._handle = handle

    @classmethod
    def spool(
        cls,
        field_name: str,
        index: int,
        *,
        original_name: str | None = None,
        mime_type: str | None = None,
        upload_dir: Path | None = None,
    ) -> "UploadedFile":
        """Create an empty upload backed by a temporary file removed on close."""
        handle = tempfile.NamedTemporaryFile(prefix="form-relay-", dir=upload_dir)
        return cls(field_name, index, handle, original_name=original_name, mime_type=mime_type)

    @property
    def path(self) -> Path:
        return Path(self._handle.name)

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def write(self, chunk: bytes) -> None:
        self._handle.write(chunk)
        self.size += len(chunk)

    def open(self) -> IO[bytes]:
        """Rewind the spooled content for reading."""
        self._handle.flush()
        self._handle.seek(0)
        return self._handle

    def close(self) -> None:
        self._handle.close()

    def __repr__(self) -> str:
        return f"UploadedFile({self.field_name!r}, index={self.index}, name={self.original_name!r}, size={self.size})"


class ParsedForm:
    """Field map and file map decoded from one inbound request.

    The form owns the temporary files of its uploads; closing it deletes them.
    """

    __slots__ = ("fields", "files")

    def __init__(self) -> None:
        self.fields: dict[str, list[str]] = {}
        self.files: dict[str, list[UploadedFile]] = {}

    def __enter__(self) -> "ParsedForm":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def add_field(self, name: str, value: str) -> None:
        self.fields.setdefault(name, []).append(value)

    def new_file(
        self,
        field_name: str,
        *,
        original_name: str | None = None,
        mime_type: str | None = None,
        upload_dir: Path | None = None,
    ) -> UploadedFile:
        """Spool a new upload under ``field_name``, indexed after the existing ones."""
        entries = self.files.setdefault(field_name, [])
        upload = UploadedFile.spool(
            field_name,
            len(entries),
            original_name=original_name,
            mime_type=mime_type,
            upload_dir=upload_dir,
        )
        entries.append(upload)
        return upload

    def first_values(self) -> dict[str, str]:
        """Map every field to its first submitted value.

        Later values of a repeated key are dropped, matching what the webhook
        has always received. Worth revisiting if repeated keys start to matter.
        """
        return {name: values[0] for name, values in self.fields.items()}

    def iter_files(self) -> Iterator[UploadedFile]:
        """Yield uploads key by key, each key's files in submission order."""
        for entries in self.files.values():
            yield from entries

    def close(self) -> None:
        for upload in self.iter_files():
            upload.close()
