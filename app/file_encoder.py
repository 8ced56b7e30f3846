"""
app/file_encoder.py
-----------------------------------------------------------------------------
Turns an uploaded CV into the inline-data form the Gemini API accepts.

The whole file is read into memory and base64-encoded.  No size limit is
enforced here; the transport (and Gemini's own request limit) decides.

Exports
-------
encode_bytes(data, mime_type) -> EncodedFile
encode_upload(upload) -> EncodedFile            (async)
decode_file(encoded) -> tuple[bytes, str]
strip_data_url_prefix(text) -> str
"""

from __future__ import annotations

import base64

from fastapi import UploadFile

from app.schema import EncodedFile

_DEFAULT_MIME_TYPE = "application/octet-stream"


def strip_data_url_prefix(text: str) -> str:
    """
    Drop a leading ``data:<mime>;base64,`` prefix if present.

    Browsers' ``FileReader.readAsDataURL`` produce that form; Gemini wants the
    bare payload.
    """
    if text.startswith("data:") and "," in text:
        return text.split(",", 1)[1]
    return text


def encode_bytes(data: bytes, mime_type: str | None) -> EncodedFile:
    return EncodedFile(
        data=base64.b64encode(data).decode("ascii"),
        mime_type=mime_type or _DEFAULT_MIME_TYPE,
    )


async def encode_upload(upload: UploadFile) -> EncodedFile:
    """
    Read an uploaded file fully and encode it.

    Read errors are not caught: they propagate to the caller, which shows
    them in the error view.
    """
    await upload.seek(0)
    data = await upload.read()
    return encode_bytes(data, upload.content_type)


def decode_file(encoded: EncodedFile) -> tuple[bytes, str]:
    """Inverse of :func:`encode_bytes`: return the original bytes and MIME type."""
    payload = strip_data_url_prefix(encoded.data)
    return base64.b64decode(payload, validate=True), encoded.mime_type
