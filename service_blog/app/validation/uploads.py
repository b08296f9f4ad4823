"""
Uploaded file checks.
"""

import os
from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class UploadedFile:
    """What the request layer knows about one uploaded file."""
    filename: str
    size: int
    content_type: Optional[str] = None


def validate_file(upload: Optional[UploadedFile], max_size_mb: Optional[float] = None,
                  allowed_types: Optional[Sequence[str]] = None,
                  allowed_mimes: Optional[Sequence[str]] = None) -> List[str]:
    """Return every violated constraint; an empty list means acceptable."""
    if upload is None or not upload.filename:
        return ["No file was uploaded."]

    errors = []

    if max_size_mb is not None and upload.size > max_size_mb * 1024 * 1024:
        errors.append(f"File size must not exceed {max_size_mb:g} MB.")

    if allowed_types is not None:
        extension = os.path.splitext(upload.filename)[1].lstrip(".").lower()
        if extension not in [t.lower() for t in allowed_types]:
            errors.append("File type not allowed. Allowed types: " + ", ".join(allowed_types))

    if allowed_mimes is not None and upload.content_type not in allowed_mimes:
        errors.append("Invalid file format.")

    return errors
