"""Upload size guards for multipart document uploads."""

from __future__ import annotations

from os import SEEK_END

from fastapi import Request, UploadFile
from starlette.concurrency import run_in_threadpool

from credentialing.core.exceptions import ValidationError

MULTIPART_OVERHEAD_BYTES = 64 * 1024


def declared_size_too_large(request: Request, max_size_bytes: int) -> bool:
    """True when the request's Content-Length is over the limit plus multipart framing."""
    header = request.headers.get("content-length")
    if not header:
        return False
    try:
        declared = int(header)
    except ValueError:
        return False
    return declared > max_size_bytes + MULTIPART_OVERHEAD_BYTES


async def spooled_size(file: UploadFile) -> int:
    """Size of the spooled upload, measured without reading it into memory."""

    def _measure() -> int:
        stream = file.file
        position = stream.tell()
        try:
            stream.seek(0, SEEK_END)
            return stream.tell()
        finally:
            stream.seek(position)

    return await run_in_threadpool(_measure)


async def read_upload(request: Request, file: UploadFile, max_size_bytes: int) -> bytes:
    """
    Read an upload's bytes, refusing oversize files before buffering them.

    The service layer validates size again; this only avoids loading a
    huge body into memory.
    """
    limit_mb = max_size_bytes // (1024 * 1024)
    if declared_size_too_large(request, max_size_bytes):
        raise ValidationError(f"File exceeds {limit_mb} MB limit")
    if await spooled_size(file) > max_size_bytes:
        raise ValidationError(f"File exceeds {limit_mb} MB limit")
    return await file.read()
