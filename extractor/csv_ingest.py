"""Turn an uploaded CSV file into a deduplicated list of candidate URLs."""

import csv
import io
import logging
from typing import List, Optional

from extractor.errors import ParseError
from extractor.urls import normalize_url, normalize_urls

logger = logging.getLogger(__name__)

SNIFF_DELIMITERS = ",;\t|"


def _decode(file_bytes: bytes) -> str:
    if not file_bytes:
        raise ParseError("CSV file is empty")
    if b"\x00" in file_bytes:
        raise ParseError("CSV file looks like binary data")
    try:
        return file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError("CSV file is not valid UTF-8 text", {"position": e.start}) from e


def _dialect(text: str):
    sample = text[:4096]
    try:
        return csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS)
    except csv.Error:
        # Single-column files give the sniffer nothing to work with
        return csv.excel


def looks_like_url(cell: str) -> bool:
    return normalize_url(cell) is not None


def parse_csv(file_bytes: bytes, max_rows: Optional[int] = None) -> List[str]:
    """Parse CSV bytes and return normalized, deduplicated URLs from the first column.

    A first row whose first cell is not a URL or domain is treated as a header.
    Raises ParseError for malformed input or when no usable URL remains.
    """
    text = _decode(file_bytes)
    try:
        rows = list(csv.reader(io.StringIO(text, newline=""), _dialect(text)))
    except csv.Error as e:
        raise ParseError(f"Malformed CSV: {e}") from e

    cells = [row[0].strip() if row else "" for row in rows]
    if cells and cells[0] and not looks_like_url(cells[0]):
        logger.info("Skipping CSV header row", extra={"header": cells[0]})
        cells = cells[1:]

    cells = [c for c in cells if c]
    if max_rows is not None and len(cells) > max_rows:
        raise ParseError(
            f"CSV file has {len(cells)} rows, the maximum is {max_rows}",
            {"rows": len(cells), "max_rows": max_rows},
        )

    urls = normalize_urls(cells)
    if not urls:
        raise ParseError("No valid URLs found in CSV file")

    logger.info("Parsed CSV upload", extra={"rows": len(cells), "urls": len(urls)})
    return urls
