"""
Meter Number Extraction

Turns free OCR text into a candidate reading.

HEURISTIC: the digit readout of a meter is usually the longest number in the
frame; serial numbers, units and labels produce shorter ones. This is a
SUGGESTION only - the user always confirms or overwrites it.
"""

import re

NUMBER_TOKEN = re.compile(r"\d+\.?\d*", re.ASCII)


class OCRError(Exception):
    """Base exception for OCR errors."""
    pass


class NoNumericContentError(OCRError):
    """The recognized text contains no digits."""
    pass


def find_number_tokens(ocr_text: str) -> list[str]:
    """All digit runs (with an optional decimal part) in order of appearance."""
    return NUMBER_TOKEN.findall(ocr_text or "")


def extract_number(ocr_text: str) -> str:
    """
    Pick the most likely meter reading out of OCR text.

    The longest token wins; on a tie the first one seen is kept. The token is
    returned as text so leading zeros on the display survive.

    Raises:
        NoNumericContentError: If the text has no numeric token
    """
    tokens = find_number_tokens(ocr_text)
    if not tokens:
        raise NoNumericContentError("No numbers found in the image")
    return max(tokens, key=len)
