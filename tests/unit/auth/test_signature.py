"""
Module: test_signature.py
Description: Unit tests for webhook signature handling.
"""

import pytest

from clawtell.auth.signature import compute_signature, generate_webhook_secret, verify_signature

SECRET = "whsec_test"
BODY = b'{"messageId":"m1","from":"alice","body":"hi"}'


class TestGenerateWebhookSecret:
    """Test cases for secret generation."""

    def test_format(self):
        secret = generate_webhook_secret()
        assert len(secret) == 64
        int(secret, 16)

    def test_unique(self):
        assert generate_webhook_secret() != generate_webhook_secret()


class TestComputeSignature:
    """Test cases for compute_signature()."""

    def test_known_value(self):
        # HMAC-SHA256("key", "The quick brown fox jumps over the lazy dog")
        assert compute_signature(
            "The quick brown fox jumps over the lazy dog", "key"
        ) == "sha256=f7bc83f430538424b13298e6aa6fb143ef4d59a14946175997479dbc2d1a3cd8"

    def test_str_and_bytes_agree(self):
        assert compute_signature(BODY.decode(), SECRET) == compute_signature(BODY, SECRET)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            compute_signature(BODY, "")


class TestVerifySignature:
    """Test cases for verify_signature()."""

    def test_exact_body_passes(self):
        assert verify_signature(compute_signature(BODY, SECRET), BODY, SECRET) is True

    def test_uppercase_hex_passes(self):
        header = compute_signature(BODY, SECRET)
        assert verify_signature("sha256=" + header[7:].upper(), BODY, SECRET) is True

    def test_tampered_body_fails(self):
        header = compute_signature(BODY, SECRET)
        assert verify_signature(header, BODY.replace(b"hi", b"ho"), SECRET) is False

    def test_reserialized_body_fails(self):
        header = compute_signature(BODY, SECRET)
        assert verify_signature(header, b'{"messageId": "m1", "from": "alice", "body": "hi"}', SECRET) is False

    def test_wrong_secret_fails(self):
        assert verify_signature(compute_signature(BODY, "other"), BODY, SECRET) is False

    @pytest.mark.parametrize("header", [None, "", "sha256=", "deadbeef", "md5=abc", "sha256=zzé"])
    def test_missing_or_malformed_header_fails(self, header):
        assert verify_signature(header, BODY, SECRET) is False
