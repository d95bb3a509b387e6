"""Inbound form decoding: Robyn-split multipart parts or raw bodies via python-multipart."""

import mimetypes
from pathlib import Path
from urllib.parse import unquote_plus

from python_multipart import MultipartParser, QuerystringParser
from python_multipart.exceptions import MultipartParseError, QuerystringParseError
from python_multipart.multipart import parse_options_header

from form_relay.models.core import ParsedForm, UploadedFile

MULTIPART_FORM = b"multipart/form-data"
URLENCODED_FORM = b"application/x-www-form-urlencoded"

# field name given to uploads whose multipart framing Robyn already consumed
UPLOAD_FIELD = "file"


class FormDataError(Exception):
    """Raised when an inbound body cannot be decoded as form data."""


class _MultipartCollector:
    """Callback sink turning multipart parser events into a ParsedForm."""

    def __init__(self, form: ParsedForm, upload_dir: Path | None) -> None:
        self.form = form
        self.upload_dir = upload_dir
        self.finished = False
        self._header_name = bytearray()
        self._header_value = bytearray()
        self._headers: dict[bytes, bytes] = {}
        self._field_name = ""
        self._text: bytearray | None = None
        self._upload: UploadedFile | None = None

    @property
    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}
        self._text = None
        self._upload = None

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[bytes(self._header_name).strip().lower()] = bytes(self._header_value).strip()
        self._header_name.clear()
        self._header_value.clear()

    def on_headers_finished(self) -> None:
        disposition, options = parse_options_header(self._headers.get(b"content-disposition"))
        name = options.get(b"name")
        if disposition.lower() != b"form-data" or name is None:
            raise FormDataError("multipart part without a form-data name")
        self._field_name = name.decode("utf-8", errors="replace")

        filename = options.get(b"filename")
        if filename is None:
            self._text = bytearray()
            return

        content_type = self._headers.get(b"content-type", b"").decode("latin-1")
        self._upload = self.form.new_file(
            self._field_name,
            original_name=filename.decode("utf-8", errors="replace") or None,
            mime_type=content_type or None,
            upload_dir=self.upload_dir,
        )

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._upload is not None:
            self._upload.write(data[start:end])
        elif self._text is not None:
            self._text += data[start:end]

    def on_part_end(self) -> None:
        if self._text is None:
            return
        try:
            value = self._text.decode("utf-8")
        except UnicodeDecodeError as ex:
            raise FormDataError(f"field {self._field_name!r} is not valid UTF-8") from ex
        self.form.add_field(self._field_name, value)

    def on_end(self) -> None:
        self.finished = True


def _parse_multipart(body: bytes, boundary: bytes | None, upload_dir: Path | None) -> ParsedForm:
    if not boundary:
        raise FormDataError("multipart body without a boundary")

    form = ParsedForm()
    collector = _MultipartCollector(form, upload_dir)
    parser = MultipartParser(boundary, callbacks=collector.callbacks)
    try:
        try:
            parser.write(body)
            parser.finalize()
        except (MultipartParseError, ValueError) as ex:
            raise FormDataError(str(ex)) from ex
        if not collector.finished:
            raise FormDataError("multipart body ended before the closing boundary")
    except Exception:
        form.close()
        raise
    return form


def _parse_urlencoded(body: bytes) -> ParsedForm:
    form = ParsedForm()
    name = bytearray()
    value = bytearray()

    def on_field_start() -> None:
        name.clear()
        value.clear()

    def on_field_name(data: bytes, start: int, end: int) -> None:
        name.extend(data[start:end])

    def on_field_data(data: bytes, start: int, end: int) -> None:
        value.extend(data[start:end])

    def on_field_end() -> None:
        try:
            form.add_field(
                unquote_plus(name.decode("utf-8"), errors="strict"),
                unquote_plus(value.decode("utf-8"), errors="strict"),
            )
        except UnicodeDecodeError as ex:
            raise FormDataError("urlencoded field is not valid UTF-8") from ex

    parser = QuerystringParser(
        callbacks={
            "on_field_start": on_field_start,
            "on_field_name": on_field_name,
            "on_field_data": on_field_data,
            "on_field_end": on_field_end,
        }
    )
    try:
        parser.write(body)
        parser.finalize()
    except QuerystringParseError as ex:
        raise FormDataError(str(ex)) from ex
    return form


def parse_form(
    body: bytes,
    content_type: str | None,
    *,
    max_body_bytes: float = float("inf"),
    upload_dir: Path | None = None,
) -> ParsedForm:
    """Decode a request body into fields and spooled files.

    Multipart bodies carry both fields and files; urlencoded bodies only
    fields. Any framing problem raises ``FormDataError`` and leaves no
    temporary file behind.
    """
    if not content_type:
        raise FormDataError("missing Content-Type header")
    if len(body) > max_body_bytes:
        raise FormDataError(f"body of {len(body)} bytes exceeds the {int(max_body_bytes)} byte limit")

    mime, options = parse_options_header(content_type)
    mime = mime.lower()
    if mime == MULTIPART_FORM:
        return _parse_multipart(body, options.get(b"boundary"), upload_dir)
    if mime == URLENCODED_FORM:
        return _parse_urlencoded(body)
    raise FormDataError(f"unsupported Content-Type: {mime.decode('latin-1')}")


def _is_framed(body: bytes, boundary: bytes | None) -> bool:
    return bool(boundary) and body.lstrip(b"\r\n").startswith(b"--" + boundary)


def _already_split(body: bytes, boundary: bytes | None, form_data: dict, files: dict) -> bool:
    # an empty split form leaves an empty body behind
    return not _is_framed(body, boundary) and bool(form_data or files or not body)


def _collect_decoded(
    form_data: dict[str, str],
    files: dict[str, bytes],
    max_body_bytes: float,
    upload_dir: Path | None,
) -> ParsedForm:
    """Rebuild a form from parts the Robyn server already split out.

    Robyn keys uploads by their client filename and keeps neither the field
    name nor the part Content-Type. Every upload is filed under
    ``UPLOAD_FIELD`` and its type is guessed from the filename.
    """
    size = sum(len(value.encode("utf-8")) for value in form_data.values())
    size += sum(len(content) for content in files.values())
    if size > max_body_bytes:
        raise FormDataError(f"form of {size} bytes exceeds the {int(max_body_bytes)} byte limit")

    form = ParsedForm()
    try:
        for name, value in form_data.items():
            form.add_field(name, value)
        for filename, content in files.items():
            upload = form.new_file(
                UPLOAD_FIELD,
                original_name=filename or None,
                mime_type=mimetypes.guess_type(filename)[0] if filename else None,
                upload_dir=upload_dir,
            )
            upload.write(bytes(content))
    except Exception:
        form.close()
        raise
    return form


def decode_form(
    body: bytes,
    content_type: str | None,
    form_data: dict[str, str] | None = None,
    files: dict[str, bytes] | None = None,
    *,
    max_body_bytes: float = float("inf"),
    upload_dir: Path | None = None,
) -> ParsedForm:
    """Decode an inbound request, whether or not Robyn already split its multipart body.

    The Robyn server consumes ``multipart/form-data`` itself and hands over
    ``form_data`` and ``files`` with the framing gone. A body that still
    carries its boundary (test clients, proxies replaying raw bytes) is parsed
    here with full part headers.
    """
    form_data = form_data or {}
    files = files or {}
    if content_type:
        mime, options = parse_options_header(content_type)
        if mime.lower() == MULTIPART_FORM and _already_split(body, options.get(b"boundary"), form_data, files):
            return _collect_decoded(form_data, files, max_body_bytes, upload_dir)
    return parse_form(body, content_type, max_body_bytes=max_body_bytes, upload_dir=upload_dir)
