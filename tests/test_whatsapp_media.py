"""Tests for WhatsApp media key derivation, decryption and download fallback."""

import base64
import os
from unittest.mock import patch

import pytest
import requests
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from pixzen.whatsapp.media import (
    CDN_USER_AGENT,
    MediaDecryptError,
    decrypt_media,
    decrypt_payload,
    derive_media_keys,
    download_media,
    fetch_media,
)

MEDIA_KEY = bytes(range(32))
CDN_URL = "https://mmg.whatsapp.net/d/f/abc.enc"


def _hkdf_reference(key: bytes, info: bytes, length: int = 112) -> bytes:
    """RFC 5869 HKDF-SHA256 written out step by step (zero salt)."""
    h = hmac.HMAC(b"\x00" * 32, hashes.SHA256())
    h.update(key)
    prk = h.finalize()

    out, block, counter = b"", b"", 1
    while len(out) < length:
        h = hmac.HMAC(prk, hashes.SHA256())
        h.update(block + info + bytes([counter]))
        block = h.finalize()
        out += block
        counter += 1
    return out[:length]


def _encrypt(plaintext: bytes, media_key: bytes, media_type: str) -> bytes:
    """Encrypt like the provider: AES-256-CBC + PKCS#7, then a 10-byte tag."""
    keys = derive_media_keys(media_key, media_type)
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(keys.cipher_key), modes.CBC(keys.iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize() + b"\xaa" * 10


class TestDeriveMediaKeys:
    def test_matches_reference_hkdf(self):
        expanded = _hkdf_reference(MEDIA_KEY, b"WhatsApp Image Keys")
        keys = derive_media_keys(MEDIA_KEY, "image")

        assert keys.iv == expanded[:16]
        assert keys.cipher_key == expanded[16:48]
        assert keys.mac_key == expanded[48:112]

    def test_ptt_uses_audio_label(self):
        assert derive_media_keys(MEDIA_KEY, "ptt") == derive_media_keys(MEDIA_KEY, "audio")

    def test_unknown_type_uses_audio_label(self):
        assert derive_media_keys(MEDIA_KEY, "sticker") == derive_media_keys(MEDIA_KEY, "audio")

    def test_labels_differ_per_type(self):
        assert derive_media_keys(MEDIA_KEY, "image") != derive_media_keys(MEDIA_KEY, "document")


class TestDecryptPayload:
    @pytest.mark.parametrize("media_type", ["audio", "image", "video", "document"])
    def test_decrypts_provider_blob(self, media_type):
        plaintext = b"%PDF-1.4 comprovante " * 7
        blob = _encrypt(plaintext, MEDIA_KEY, media_type)

        assert decrypt_payload(blob, MEDIA_KEY, media_type) == plaintext

    def test_bad_padding_raises(self):
        keys = derive_media_keys(MEDIA_KEY, "image")
        encryptor = Cipher(algorithms.AES(keys.cipher_key), modes.CBC(keys.iv)).encryptor()
        blob = encryptor.update(b"\x00" * 16) + encryptor.finalize() + b"\xaa" * 10

        with pytest.raises(MediaDecryptError):
            decrypt_payload(blob, MEDIA_KEY, "image")

    def test_bad_length_raises(self):
        with pytest.raises(MediaDecryptError):
            decrypt_payload(b"\x00" * 25, MEDIA_KEY, "image")


class TestDecryptMedia:
    def test_downloads_with_client_user_agent(self):
        plaintext = b"\xff\xd8\xff jpeg bytes"
        blob = _encrypt(plaintext, MEDIA_KEY, "image")

        with patch("pixzen.whatsapp.media._http_get", return_value=blob) as mock_get:
            result = decrypt_media(CDN_URL, base64.b64encode(MEDIA_KEY).decode(), "image")

        assert result == plaintext
        mock_get.assert_called_once_with(CDN_URL, {"User-Agent": CDN_USER_AGENT})

    def test_network_error_returns_none(self):
        with patch(
            "pixzen.whatsapp.media._http_get",
            side_effect=requests.ConnectionError("down"),
        ):
            assert decrypt_media(CDN_URL, base64.b64encode(MEDIA_KEY).decode(), "image") is None

    def test_wrong_key_never_yields_plaintext(self):
        plaintext = b"data" * 10
        blob = _encrypt(plaintext, MEDIA_KEY, "audio")
        wrong_key = base64.b64encode(bytes(32)).decode()

        with patch("pixzen.whatsapp.media._http_get", return_value=blob):
            assert decrypt_media(CDN_URL, wrong_key, "audio") != plaintext

    def test_invalid_base64_key_returns_none(self):
        with patch("pixzen.whatsapp.media._http_get", return_value=b"\x00" * 42):
            assert decrypt_media(CDN_URL, "not base64!!", "audio") is None


class TestFetchMedia:
    def test_cdn_url_with_key_is_decrypted(self):
        plaintext = b"audio-bytes"
        blob = _encrypt(plaintext, MEDIA_KEY, "ptt")
        key_b64 = base64.b64encode(MEDIA_KEY).decode()

        with patch("pixzen.whatsapp.media._http_get", return_value=blob):
            assert fetch_media(CDN_URL, key_b64, "ptt") == plaintext

    def test_falls_back_to_direct_download_when_decryption_fails(self):
        with patch("pixzen.whatsapp.media.decrypt_media", return_value=None), patch(
            "pixzen.whatsapp.media.download_media", return_value=b"plain"
        ) as mock_download:
            assert fetch_media(CDN_URL, "a2V5", "image") == b"plain"

        mock_download.assert_called_once_with(CDN_URL)

    def test_non_cdn_url_skips_decryption(self):
        with patch("pixzen.whatsapp.media.decrypt_media") as mock_decrypt, patch(
            "pixzen.whatsapp.media.download_media", return_value=b"plain"
        ):
            assert fetch_media("https://files.uazapi.test/x.jpg", "a2V5", "image") == b"plain"

        mock_decrypt.assert_not_called()

    def test_missing_key_skips_decryption(self):
        with patch("pixzen.whatsapp.media.decrypt_media") as mock_decrypt, patch(
            "pixzen.whatsapp.media.download_media", return_value=b"plain"
        ):
            assert fetch_media(CDN_URL, "", "image") == b"plain"

        mock_decrypt.assert_not_called()

    def test_total_failure_returns_none(self):
        with patch("pixzen.whatsapp.media.decrypt_media", return_value=None), patch(
            "pixzen.whatsapp.media.download_media", return_value=None
        ):
            assert fetch_media(CDN_URL, "a2V5", "image") is None

    def test_empty_url_returns_none(self):
        assert fetch_media("", "a2V5", "image") is None


class TestDownloadMedia:
    def test_sends_provider_token(self):
        with patch.dict(os.environ, {"UAZAPI_TOKEN": "tok"}), patch(
            "pixzen.whatsapp.media._http_get", return_value=b"body"
        ) as mock_get:
            assert download_media("https://files.test/a") == b"body"

        mock_get.assert_called_once_with("https://files.test/a", {"token": "tok"})

    def test_http_error_returns_none(self):
        with patch(
            "pixzen.whatsapp.media._http_get", side_effect=requests.HTTPError("404")
        ):
            assert download_media("https://files.test/a") is None
