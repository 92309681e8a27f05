import base64
import binascii
import json
import logging

from django.conf import settings

from catalog.exceptions import DecodeError, PayloadTooLarge

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = getattr(settings, 'CATALOG_MAX_DOCUMENT_BYTES', 150 * 1024 * 1024)
WARN_DOCUMENT_BYTES = getattr(settings, 'CATALOG_WARN_DOCUMENT_BYTES', 50 * 1024 * 1024)

MB = 1024 * 1024


def decode_document(content):
    """Decode base64 file content into a product document.

    Never substitutes an empty document: anything that is not a JSON object
    with a ``products`` list raises ``DecodeError``.
    """
    if not content:
        raise DecodeError("No content in products.json response - refusing to proceed to prevent data loss")

    try:
        text = base64.b64decode(content).decode('utf-8')
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Failed to decode products.json: {exc}") from exc

    if not text.strip():
        raise DecodeError("Empty file content from GitHub API - refusing to overwrite data")

    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(
            f"Failed to parse products.json: {exc}. Refusing to proceed to prevent data loss."
        ) from exc

    if not isinstance(document, dict):
        raise DecodeError("Invalid JSON structure: document root must be an object")

    products = document.get('products')
    if not isinstance(products, list):
        logger.error(
            "products.json has %s products field, refusing to repair",
            'a missing' if products is None else f"a {type(products).__name__}",
        )
        raise DecodeError("Invalid products array - refusing to proceed to prevent data loss")

    logger.debug("Decoded products.json with %d products", len(products))
    return document


def encode_document(document) -> bytes:
    text = json.dumps(document, indent=2, ensure_ascii=False)
    return (text + '\n').encode('utf-8')


def check_document_size(num_bytes):
    if num_bytes > MAX_DOCUMENT_BYTES:
        raise PayloadTooLarge(
            f"File size too large: {round(num_bytes / MB)}MB. "
            f"Maximum allowed: {round(MAX_DOCUMENT_BYTES / MB)}MB"
        )
    if num_bytes > WARN_DOCUMENT_BYTES:
        logger.warning("Large products.json: %dMB", round(num_bytes / MB))
