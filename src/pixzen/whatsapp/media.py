"""WhatsApp encrypted media download and decryption.

Media sent through WhatsApp is stored encrypted on the provider CDN. The
webhook carries a base64 `mediaKey`; from it we derive IV and AES key with
HKDF-SHA256 and decrypt the blob (AES-256-CBC, PKCS#7).

The trailing 10-byte MAC tag is stripped but NOT verified.

Security: NEVER log media URLs, keys or content. Only log sizes and types.
"""

from __future__ import annotations

import base64
import binascii
import os
from dataclasses import dataclass

import requests
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Timeout for media downloads (seconds)
DOWNLOAD_TIMEOUT = 60

# Client identifier expected by the WhatsApp CDN
CDN_USER_AGENT = "WhatsApp/2.23.25.87 A"

# Host pattern of encrypted CDN URLs
CDN_HOST_MARKER = "mmg.whatsapp.net"

EXPANDED_KEY_LENGTH = 112
MAC_TAG_LENGTH = 10

HKDF_INFO: dict[str, bytes] = {
    "audio": b"WhatsApp Audio Keys",
    "ptt": b"WhatsApp Audio Keys",
    "image": b"WhatsApp Image Keys",
    "video": b"WhatsApp Video Keys",
    "document": b"WhatsApp Document Keys",
}


class MediaDecryptError(Exception):
    """Blob could not be decrypted with the given key."""

    pass


@dataclass(frozen=True)
class MediaKeys:
    """Key material expanded from a media key."""

    iv: bytes
    cipher_key: bytes
    mac_key: bytes


def derive_media_keys(media_key: bytes, media_type: str) -> MediaKeys:
    """Expand a raw media key into IV, AES key and MAC key.

    HKDF-SHA256 with an all-zero salt to 112 bytes. Unknown media types use
    the audio label.
    """
    info = HKDF_INFO.get(media_type, HKDF_INFO["audio"])
    expanded = HKDF(
        algorithm=hashes.SHA256(),
        length=EXPANDED_KEY_LENGTH,
        salt=None,
        info=info,
    ).derive(media_key)
    return MediaKeys(iv=expanded[:16], cipher_key=expanded[16:48], mac_key=expanded[48:112])


def decrypt_payload(blob: bytes, media_key: bytes, media_type: str) -> bytes:
    """Decrypt a downloaded CDN blob.

    Raises:
        MediaDecryptError: On bad length or bad padding (usually a wrong key).
    """
    keys = derive_media_keys(media_key, media_type)
    ciphertext = blob[:-MAC_TAG_LENGTH]
    if not ciphertext or len(ciphertext) % 16:
        raise MediaDecryptError(f"invalid ciphertext length: {len(ciphertext)}")

    decryptor = Cipher(algorithms.AES(keys.cipher_key), modes.CBC(keys.iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise MediaDecryptError("invalid padding") from e


def _http_get(url: str, headers: dict[str, str]) -> bytes:
    """Execute HTTP GET and return the body. Raises on error."""
    response = requests.get(url, headers=headers, timeout=DOWNLOAD_TIMEOUT)
    response.raise_for_status()
    return response.content


def decrypt_media(url: str, media_key_b64: str, media_type: str) -> bytes | None:
    """Download an encrypted blob from the CDN and decrypt it.

    Args:
        url: Encrypted media URL. NEVER logged.
        media_key_b64: Base64 media key from the webhook. NEVER logged.
        media_type: audio, ptt, image, video or document.

    Returns:
        Plaintext bytes, or None on any network or crypto failure.
    """
    try:
        blob = _http_get(url, {"User-Agent": CDN_USER_AGENT})
    except requests.RequestException as e:
        logger.error(
            "encrypted media download failed",
            extra={
                "extra_fields": safe_log_context(
                    media_type=media_type, error_type=type(e).__name__
                )
            },
        )
        return None

    try:
        media_key = base64.b64decode(media_key_b64)
        plaintext = decrypt_payload(blob, media_key, media_type)
    except (binascii.Error, ValueError, MediaDecryptError) as e:
        logger.error(
            "media decryption failed",
            extra={
                "extra_fields": safe_log_context(
                    media_type=media_type,
                    encrypted_len=len(blob),
                    error_type=type(e).__name__,
                )
            },
        )
        return None

    logger.info(
        "media decrypted",
        extra={
            "extra_fields": safe_log_context(
                media_type=media_type,
                encrypted_len=len(blob),
                decrypted_len=len(plaintext),
            )
        },
    )
    return plaintext


def download_media(url: str) -> bytes | None:
    """Download media directly, authenticated with the provider token.

    Returns:
        Body bytes, or None on network/HTTP error.
    """
    headers = {}
    token = os.environ.get("UAZAPI_TOKEN", "")
    if token:
        headers["token"] = token

    try:
        return _http_get(url, headers)
    except requests.RequestException as e:
        logger.error(
            "direct media download failed",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        return None


def fetch_media(url: str, media_key: str, media_type: str) -> bytes | None:
    """Acquire media bytes: CDN decryption first, direct download as fallback.

    Decryption is attempted only when a media key is present and the URL
    points to the WhatsApp CDN.

    Returns:
        Non-empty bytes, or None when every strategy failed.
    """
    if not url:
        return None

    data: bytes | None = None
    if media_key and CDN_HOST_MARKER in url:
        data = decrypt_media(url, media_key, media_type)

    if not data:
        logger.info(
            "falling back to direct media download",
            extra={"extra_fields": safe_log_context(media_type=media_type)},
        )
        data = download_media(url)

    return data or None
