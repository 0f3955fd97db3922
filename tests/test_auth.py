"""
Tests for upload signature computation and verification
"""

import hashlib
import hmac

import pytest

from httpupload.auth import (
    compute_signature,
    verify_signature,
    check_upload_signature,
    sign_upload_url,
    AuthorizationError,
    MissingSignatureError,
    SignatureMismatchError,
)

SECRET = "s3cr3t"
PATH = "thomas/abc/catmetal.jpg"


def reference_signature(secret: str, message: str) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


class TestSignature:
    """Test HMAC-SHA256 upload signatures"""

    def test_signature_format(self):
        signature = compute_signature(SECRET, PATH, 12345)

        assert signature == reference_signature(SECRET, "thomas/abc/catmetal.jpg 12345")
        assert len(signature) == 64
        assert signature == signature.lower()

    def test_signature_utf8_path(self):
        path = "jürgen/äöü/Grüße.txt"
        assert compute_signature(SECRET, path, 7) == reference_signature(SECRET, f"{path} 7")

    @pytest.mark.parametrize("path,length", [
        ("a", 0),
        (PATH, 12345),
        ("deep/nested/dir/file with spaces.ogg", 1),
        ("", 99),
    ])
    def test_valid_signature_accepted(self, path, length):
        signature = compute_signature(SECRET, path, length)
        assert verify_signature(SECRET, path, length, signature)
        check_upload_signature(SECRET, path, length, signature)

    def test_changing_any_input_rejects(self):
        signature = compute_signature(SECRET, PATH, 12345)

        assert not verify_signature(SECRET, "thomas/abc/catmetal.jpeg", 12345, signature)
        assert not verify_signature(SECRET, PATH, 12346, signature)
        assert not verify_signature(SECRET, PATH, -1, signature)

        # One bit of the secret flipped
        flipped = chr(ord(SECRET[0]) ^ 1) + SECRET[1:]
        assert not verify_signature(flipped, PATH, 12345, signature)

    def test_signature_is_case_sensitive(self):
        signature = compute_signature(SECRET, PATH, 12345)
        assert not verify_signature(SECRET, PATH, 12345, signature.upper())

    def test_missing_signature(self):
        with pytest.raises(MissingSignatureError) as exc_info:
            check_upload_signature(SECRET, PATH, 12345, None)

        assert isinstance(exc_info.value, AuthorizationError)
        assert exc_info.value.status_code == 409

    def test_empty_signature_is_a_mismatch(self):
        with pytest.raises(SignatureMismatchError):
            check_upload_signature(SECRET, PATH, 12345, "")

    def test_signature_mismatch_carries_values(self):
        with pytest.raises(SignatureMismatchError) as exc_info:
            check_upload_signature(SECRET, PATH, 12345, "abc")

        error = exc_info.value
        assert error.status_code == 403
        assert error.received == "abc"
        assert error.expected == compute_signature(SECRET, PATH, 12345)

    def test_non_ascii_signature(self):
        assert not verify_signature(SECRET, PATH, 12345, "ü" * 64)

    def test_sign_upload_url(self):
        url = sign_upload_url(SECRET, "/upload/", "thomas/a b/cat.jpg", 10)
        signature = compute_signature(SECRET, "thomas/a b/cat.jpg", 10)

        assert url == f"/upload/thomas/a%20b/cat.jpg?v={signature}"

    def test_check_uses_constant_time_verification(self, monkeypatch):
        import httpupload.auth as auth

        signature = compute_signature(SECRET, PATH, 12345)
        monkeypatch.setattr(auth, "verify_signature", lambda *args: False)

        with pytest.raises(SignatureMismatchError) as exc_info:
            check_upload_signature(SECRET, PATH, 12345, signature)

        assert exc_info.value.expected == signature
