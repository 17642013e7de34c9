"""MIME type groups accepted for upload and their classification routing."""

from __future__ import annotations

SUPPORTED_IMAGE_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/bmp",
        "image/tiff",
    }
)

SUPPORTED_DOCUMENT_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "application/x-autocad",
        "application/dwg",
        "application/dxf",
        "image/vnd.dwg",
        "image/x-dwg",
    }
)

SUPPORTED_TYPES: frozenset[str] = SUPPORTED_IMAGE_TYPES | SUPPORTED_DOCUMENT_TYPES


def is_cad(mime_type: str) -> bool:
    mime = mime_type.lower()
    return "dwg" in mime or "dxf" in mime or "autocad" in mime


def is_document(mime_type: str) -> bool:
    """PDF or CAD drawing.  Checked before :func:`is_image` (``image/vnd.dwg``)."""
    return mime_type.lower() == "application/pdf" or is_cad(mime_type)


def is_image(mime_type: str) -> bool:
    return mime_type.lower().startswith("image/") and not is_cad(mime_type)


def is_supported(mime_type: str) -> bool:
    return mime_type.lower() in SUPPORTED_TYPES
