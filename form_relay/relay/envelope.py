"""Outbound envelope: the multipart body relayed to the webhook."""

from typing import IO

import orjson

from form_relay.models.core import DEFAULT_MIME_TYPE, FileMetadata, ParsedForm, UploadedFile

FORM_DATA_FIELD = "formData"
FILE_METADATA_FIELD = "fileMetadata"
BINARY_FILE_FIELD = "binaryFile"

# httpx multipart part: (filename, content, content type); a None filename makes a plain field
PartValue = tuple[str | None, bytes | IO[bytes], str | None]


class OutboundEnvelope:
    """Ordered multipart parts, ready to be passed as httpx ``files``."""

    __slots__ = ("parts", "metadata")

    def __init__(self) -> None:
        self.parts: list[tuple[str, PartValue]] = []
        self.metadata: list[FileMetadata] = []

    def add_field(self, name: str, value: bytes) -> None:
        self.parts.append((name, (None, value, None)))

    def add_file(self, name: str, filename: str, content: IO[bytes], content_type: str) -> None:
        self.parts.append((name, (filename, content, content_type)))

    @property
    def file_count(self) -> int:
        return len(self.metadata)


def describe_file(upload: UploadedFile) -> FileMetadata:
    return FileMetadata(
        original_name=upload.original_name or f"file-{upload.index}",
        mime_type=upload.mime_type or DEFAULT_MIME_TYPE,
        size=upload.size,
        field_name=upload.field_name,
        index=upload.index,
    )


def build_envelope(form: ParsedForm) -> OutboundEnvelope:
    """Repackage a parsed form for the webhook.

    One ``formData`` part holds the JSON field map. Each file then contributes
    a ``fileMetadata`` JSON part immediately followed by its ``binaryFile``
    part, so the Nth metadata part describes the Nth binary part.
    """
    envelope = OutboundEnvelope()
    envelope.add_field(FORM_DATA_FIELD, orjson.dumps(form.first_values()))

    for upload in form.iter_files():
        metadata = describe_file(upload)
        envelope.metadata.append(metadata)
        envelope.add_field(FILE_METADATA_FIELD, metadata.model_dump_json(by_alias=True).encode())
        envelope.add_file(BINARY_FILE_FIELD, metadata.original_name, upload.open(), metadata.mime_type)

    return envelope
