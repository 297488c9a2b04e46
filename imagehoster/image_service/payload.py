"""
    Resolution of the stored image payload (base64 text) from an upload.
"""
import base64
from typing import Optional
import logging

from imagehoster.image_service.models import Upload
from imagehoster.exceptions import InvalidContentTypeException

log = logging.getLogger(__name__)

# Matched exactly, including case
ACCEPTED_CONTENT_TYPES = frozenset({
    "image/png",
    "image/bmp",
    "image/x-windows-bmp",
    "image/gif",
    "image/x-icon",
    "image/jpeg",
    "image/vnd.wap.wbmp",
})

def encode_payload(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")

def decode_payload(payload: str) -> bytes:
    return base64.b64decode(payload)

def has_new_file(upload: Optional[Upload]) -> bool:
    return upload is not None and len(upload.data) > 0

def validate_content_type(content_type: Optional[str]) -> str:
    if content_type not in ACCEPTED_CONTENT_TYPES:
        log.warning("Rejected upload with content type %r", content_type)
        raise InvalidContentTypeException()
    return content_type

def resolve_payload(upload: Optional[Upload], prior_payload: Optional[str] = None) -> str:
    """
        Returns the payload an image should store.

        A non-empty upload replaces the payload and must declare an accepted
        content type. Without one the prior payload is kept; with no prior
        payload either (a fresh upload) the request is rejected.
    """
    if has_new_file(upload):
        validate_content_type(upload.content_type)
        return encode_payload(upload.data)
    if prior_payload:
        return prior_payload
    raise InvalidContentTypeException()
