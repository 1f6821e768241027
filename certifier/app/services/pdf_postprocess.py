"""
PDF post-processing.

This module binds precomputed issuance metadata (the declared content
hash and the document type) into a rendered PDF's XMP packet.

Trust boundary:
- This module does NOT interpret document content.
- No layout or text changes occur here.

The binding is deterministic: pikepdf is told not to stamp itself as
the editor (which would add a metadata date) and the file is saved with
a deterministic trailer ID. Post-processing identical bytes with the
same metadata always yields identical bytes.
"""

from __future__ import annotations

from io import BytesIO
from typing import Optional

import pikepdf


XMP_NAMESPACE = "https://barangay-certifier.org/ns/certificate/1.0/"

CONTENT_HASH_KEY = f"{{{XMP_NAMESPACE}}}contentHash"
DOCUMENT_TYPE_KEY = f"{{{XMP_NAMESPACE}}}documentType"


class PdfPostProcessError(RuntimeError):
    """Raised when PDF post-processing fails."""


def bind_content_metadata(
    pdf_bytes: bytes,
    *,
    content_hash: Optional[str],
    document_type: str = "",
) -> bytes:
    """
    Inject the declared content hash and document type into XMP metadata.

    - Uses Clark notation for explicit namespace binding.
    - Returns new bytes; the input is not modified.

    Raises:
        PdfPostProcessError:
            If ``content_hash`` is given but empty, or pikepdf fails.
    """
    if content_hash is not None and not content_hash.strip():
        raise PdfPostProcessError(
            "content_hash was provided but is empty or invalid."
        )

    output = BytesIO()
    try:
        with pikepdf.open(BytesIO(pdf_bytes)) as pdf:
            with pdf.open_metadata(set_pikepdf_as_editor=False) as meta:
                if content_hash is not None:
                    meta[CONTENT_HASH_KEY] = content_hash
                if document_type:
                    meta[DOCUMENT_TYPE_KEY] = document_type

            pdf.save(output, deterministic_id=True)

    except pikepdf.PdfError as exc:
        raise PdfPostProcessError(
            f"Failed to bind certificate metadata into XMP: {exc}"
        ) from exc

    return output.getvalue()


def read_content_hash(pdf_bytes: bytes) -> Optional[str]:
    """Return the content hash bound into ``pdf_bytes``, if any."""
    try:
        with pikepdf.open(BytesIO(pdf_bytes)) as pdf:
            meta = pdf.open_metadata()
            value = meta.get(CONTENT_HASH_KEY)
    except pikepdf.PdfError as exc:
        raise PdfPostProcessError(
            f"Failed to read certificate metadata: {exc}"
        ) from exc
    return str(value) if value else None
