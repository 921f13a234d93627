"""
Helper functions shared by extractors and parsers.
"""

from __future__ import annotations

import json
from typing import Any

from lmproc.core.results import Error, Ok, ParseOutcome


def decode_json(text: str) -> ParseOutcome[Any]:
    """Decode JSON text.

    The decoder's own diagnostic (with line/column/char position) is kept
    verbatim so the model can act on it.
    """
    try:
        return Ok(json.loads(text))
    except json.JSONDecodeError as e:
        return Error(f"Invalid JSON data: {e}")
