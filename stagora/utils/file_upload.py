"""
File Upload Utility - validation of uploaded files and of filenames that
are about to be turned into presigned storage keys.

Import files (student bulk import):
- JSON or CSV, checked against a MIME allow-list
- size bounded by IMPORT_MAX_SIZE_BYTES

Presigned uploads:
- logo: png, jpg, jpeg, svg
- cv:   pdf, doc, docx
"""

import csv
import io
import json
import re
from typing import List

from fastapi import UploadFile, HTTPException

from stagora.core.config import get_settings


ALLOWED_IMPORT_MIME_TYPES = {
    "application/json",
    "text/csv",
    "application/vnd.ms-excel",  # what Excel and Windows browsers send for .csv
    "text/plain",
}

ALLOWED_EXTENSIONS = {
    "logo": ("png", "jpg", "jpeg", "svg"),
    "cv": ("pdf", "doc", "docx"),
}

# no "../", no leading "/"
SAFE_PATH = re.compile(r"^(?!.*\.\.)(?!/)[a-zA-Z0-9\-_/.]+$")

CSV_DELIMITERS = ",;\t"


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension without the dot ('' when missing)."""
    if '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[1].lower()


# ============================================================
# IMPORT FILES
# ============================================================

def validate_import_file(file: UploadFile) -> UploadFile:
    """
    Check that an import file was sent and has an accepted MIME type.

    Raises:
        HTTPException 400 when missing or of the wrong type
    """
    if file is None:
        raise HTTPException(status_code=400, detail="File is required")

    if file.content_type not in ALLOWED_IMPORT_MIME_TYPES:
        raise HTTPException(status_code=400, detail="File must be a JSON or CSV")

    return file


def check_import_size(content: bytes) -> bytes:
    """413 when the payload exceeds the configured import limit."""
    max_bytes = get_settings().import_max_size_bytes
    if len(content) > max_bytes:
        max_mb = max_bytes // (1024 * 1024)
        raise HTTPException(
            status_code=413,
            detail=f"File is too large. Max allowed size is {max_mb}MB"
        )
    return content


async def read_import_file(file: UploadFile) -> bytes:
    """Validate type, read the body and validate its size."""
    validate_import_file(file)
    content = await file.read()
    return check_import_size(content)


def parse_import_content(content: bytes, content_type: str) -> List[dict]:
    """
    Turn an import file into a list of raw records.

    JSON must hold an array. CSV needs a header row; the delimiter is
    sniffed among ',', ';' and tab.
    """
    max_rows = get_settings().import_max_rows
    text = decode_text(content)

    if content_type == "application/json":
        try:
            raw_data = json.loads(text)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Invalid file format")
        if not isinstance(raw_data, list):
            raise HTTPException(status_code=400, detail="JSON content must be an array")
    else:
        raw_data = parse_csv(text)

    if len(raw_data) > max_rows:
        raise HTTPException(
            status_code=400,
            detail=(
                f"File contains too many records ({len(raw_data)}). Please upload a file "
                f"with maximum {max_rows} students to avoid server timeout."
            )
        )
    return raw_data


def parse_csv(text: str) -> List[dict]:
    sample = text[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=CSV_DELIMITERS)
    except csv.Error:
        dialect = csv.excel

    try:
        reader = csv.DictReader(io.StringIO(text), dialect=dialect)
        rows = []
        for row in reader:
            cleaned = {
                (key or "").strip(): (value or "").strip() if isinstance(value, str) else value
                for key, value in row.items()
            }
            if any(cleaned.values()):
                rows.append(cleaned)
        return rows
    except csv.Error:
        raise HTTPException(status_code=400, detail="Invalid CSV file format")


def decode_text(content: bytes) -> str:
    """Decode bytes trying the usual encodings."""
    for encoding in ['utf-8-sig', 'cp1252', 'latin-1']:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise HTTPException(status_code=400, detail="Could not decode text file")


# ============================================================
# PRESIGNED UPLOADS
# ============================================================

def validate_upload_filename(original_filename: str, file_type: str) -> str:
    """
    Validate a client filename before a storage key is derived from it.

    Returns:
        The lowercase extension
    """
    if not original_filename:
        raise HTTPException(status_code=400, detail="original_filename is required")

    if '..' in original_filename or '/' in original_filename or '\\' in original_filename:
        raise HTTPException(status_code=400, detail="Invalid filename: path traversal detected")

    if '\0' in original_filename:
        raise HTTPException(status_code=400, detail="Invalid filename: null byte detected")

    ext = get_file_extension(original_filename)
    if not ext:
        raise HTTPException(status_code=400, detail="File must have an extension")

    allowed = ALLOWED_EXTENSIONS.get(file_type, ALLOWED_EXTENSIONS["cv"])
    if ext not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file extension for {file_type}. Allowed: {', '.join(allowed)}"
        )
    return ext


def is_safe_path(file_name: str) -> bool:
    return bool(SAFE_PATH.match(file_name or ""))
