"""HMAC webhook signature verification.

Every incoming GitHub webhook is checked against the shared secret before
its body is parsed.  The digest is computed over the raw request bytes and
compared with hmac.compare_digest() so that the comparison time does not
depend on where the digests differ.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re

logger = logging.getLogger(__name__)

# Tag → hash constructor.  GitHub signs with both: ``X-Hub-Signature``
# carries ``sha1=...`` and ``X-Hub-Signature-256`` carries ``sha256=...``.
SUPPORTED_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}

_HEX_DIGEST = re.compile(r"[0-9a-fA-F]+")


def sign(secret: str, body: bytes, algorithm: str = "sha1") -> str:
    """Return the ``<algorithm>=<hex>`` header value GitHub would send for *body*."""
    digest = hmac.new(
        key=secret.encode("utf-8"),
        msg=body,
        digestmod=SUPPORTED_ALGORITHMS[algorithm],
    ).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(
    secret: str,
    signature_header: str | None,
    body: bytes,
    algorithm: str = "sha1",
) -> bool:
    """Check a GitHub webhook signature header against the raw body.

    Args:
        secret: The shared webhook secret.  Empty disables verification.
        signature_header: Value of the signature header, ``<algorithm>=<hex>``.
        body: Raw request body bytes, exactly as received.
        algorithm: The tag expected in the header (``sha1`` or ``sha256``).

    Returns:
        True if the signature is valid or no secret is configured; False for
        a missing, malformed, wrong-algorithm, or mismatching signature.
        Never raises on bad input.
    """
    if not secret:
        return True

    if not signature_header:
        logger.debug("Signature rejected: header missing")
        return False

    digestmod = SUPPORTED_ALGORITHMS.get(algorithm.lower())
    if digestmod is None:
        logger.debug("Signature rejected: unsupported algorithm %s", algorithm)
        return False

    tag, sep, received_hex = signature_header.partition("=")
    if not sep or tag.lower() != algorithm.lower():
        logger.debug("Signature rejected: expected %s= prefix", algorithm)
        return False

    expected = hmac.new(secret.encode("utf-8"), body, digestmod).digest()

    # Length first: anything that is not exactly one hex-encoded digest is
    # malformed and rejected without touching the comparison.
    if len(received_hex) != 2 * len(expected) or not _HEX_DIGEST.fullmatch(received_hex):
        logger.debug("Signature rejected: malformed digest")
        return False

    return hmac.compare_digest(bytes.fromhex(received_hex), expected)
