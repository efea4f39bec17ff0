"""Optional on-disk copies of rendered certificates.

Copies are a convenience for sharing links; every certificate can be
re-rendered from its row, so nothing depends on these files existing.
"""

import os
import re

from app.config import settings

_SAFE_NAME = re.compile(r"^[A-Za-z0-9-]+\.svg$")


def _documents_dir() -> str:
    return os.path.join(settings.upload_dir, "certificates")


def document_filename(certificate_number: str) -> str:
    return f"{certificate_number}.svg"


def save_document(certificate_number: str, svg: str) -> str:
    """Write the rendering and return its public URL. Raises ``OSError``."""
    directory = _documents_dir()
    os.makedirs(directory, exist_ok=True)
    filename = document_filename(certificate_number)
    with open(os.path.join(directory, filename), "w", encoding="utf-8") as f:
        f.write(svg)
    return f"{settings.certificate_public_base_url.rstrip('/')}/{filename}"


def resolve_document_path(filename: str) -> str | None:
    """Map a public filename back to a stored file, rejecting anything else."""
    if not _SAFE_NAME.match(filename):
        return None
    path = os.path.join(_documents_dir(), filename)
    return path if os.path.isfile(path) else None
