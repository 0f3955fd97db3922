"""
Upload authorization for httpupload

An upload is authorized by an HMAC-SHA256 signature over
``"<relative path> <content length>"`` computed with the secret shared
between this server and the XMPP server issuing upload slots.
"""

import hashlib
import hmac
from typing import Optional
from urllib.parse import quote, urlencode

from .models import ResponseStatus


class AuthorizationError(Exception):
    """Base class for rejected uploads"""
    status_code = ResponseStatus.CONFLICT


class MissingSignatureError(AuthorizationError):
    """Raised when no signature is attached to an upload"""
    status_code = ResponseStatus.CONFLICT


class SignatureMismatchError(AuthorizationError):
    """Raised when the attached signature does not match"""
    status_code = ResponseStatus.FORBIDDEN

    def __init__(self, expected: str, received: str):
        super().__init__("Invalid MAC")
        self.expected = expected
        self.received = received


def compute_signature(secret: str, rel_path: str, content_length: int) -> str:
    """Compute the lowercase hex signature for an upload"""
    message = f"{rel_path} {content_length}".encode('utf-8')
    return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


def verify_signature(secret: str, rel_path: str, content_length: int, signature: str) -> bool:
    """Check a signature in constant time"""
    expected = compute_signature(secret, rel_path, content_length)
    return hmac.compare_digest(expected.encode('utf-8'), signature.encode('utf-8'))


def check_upload_signature(
    secret: str,
    rel_path: str,
    content_length: int,
    signature: Optional[str]
) -> None:
    """
    Authorize an upload

    Args:
        secret: Shared secret
        rel_path: Path relative to the upload prefix, exactly as signed
        content_length: Declared body length, -1 if unknown
        signature: Value of the ``v`` query parameter, None if absent

    Raises:
        MissingSignatureError: If no signature was supplied
        SignatureMismatchError: If the signature does not verify
    """
    if signature is None:
        raise MissingSignatureError("No HMAC attached to URL")

    if not verify_signature(secret, rel_path, content_length, signature):
        raise SignatureMismatchError(
            expected=compute_signature(secret, rel_path, content_length),
            received=signature,
        )


def sign_upload_url(secret: str, prefix: str, rel_path: str, content_length: int) -> str:
    """Build the signed PUT URL path an upload slot issuer hands out"""
    signature = compute_signature(secret, rel_path, content_length)
    return f"{prefix}{quote(rel_path)}?{urlencode({'v': signature})}"
