"""Payload extraction module.

Locates a delimited sub-document (usually JSON) inside model output and
decodes it. Models that cannot reliably return bare JSON can be told to wrap
it in one of the supported boundaries:

    <json>{"value": 123}</json>          TagPair("json")
    ```json {"value": 123} ```           FencedWithHint("json")
    ``` {"value": 123} ```               FencedPlain()

With NoBoundary the whole message is the payload.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from lmproc.core.helpers import decode_json
from lmproc.core.results import Error, Ok, ParseOutcome
from lmproc.engine.toolcall import JsonCleaner

# Language hint after an opening fence, e.g. "json" or "python3"
_HINT_RE = re.compile(r"(?:[A-Za-z][\w+-]*)?")

Decoder = Callable[[str], ParseOutcome[Any]]


class Boundary:
    """Base class for payload boundary specifications."""

    def find(self, text: str) -> str | None:
        """Return the raw text inside the first match, or None."""
        raise NotImplementedError


@dataclass(frozen=True)
class NoBoundary(Boundary):
    """The entire input is the payload."""

    def find(self, text: str) -> str | None:
        return text


@dataclass(frozen=True)
class TagPair(Boundary):
    """Payload wrapped in ``<tag>...</tag>``."""

    tag: str = "json"

    def find(self, text: str) -> str | None:
        tag = re.escape(self.tag)
        match = re.search(rf"<{tag}>(.*?)</{tag}>", text, re.DOTALL)
        return match.group(1) if match else None


@dataclass(frozen=True)
class FencedWithHint(Boundary):
    """Payload in a markdown code fence opened with a language hint."""

    hint: str = "json"

    def find(self, text: str) -> str | None:
        hint = re.escape(self.hint)
        match = re.search(rf"```{hint}(.*?)```", text, re.DOTALL)
        return match.group(1) if match else None


@dataclass(frozen=True)
class FencedPlain(Boundary):
    """Payload in a markdown code fence.

    A language hint on the opening fence line is skipped when more
    content follows it, so a lone scalar such as `42` or `true` is kept.
    """

    def find(self, text: str) -> str | None:
        match = re.search(r"```(.*?)```", text, re.DOTALL)
        if not match:
            return None
        body = match.group(1)
        first_line, newline, rest = body.partition("\n")
        if newline and _HINT_RE.fullmatch(first_line.strip()) and rest.strip():
            return rest
        return body


# Names accepted by boundary_from_name (config and CLI)
BOUNDARY_NAMES: dict[str, Boundary] = {
    "none": NoBoundary(),
    "tag": TagPair(),
    "fenced_json": FencedWithHint(),
    "fenced": FencedPlain(),
}


def boundary_from_name(name: str | None) -> Boundary:
    """Map a configuration name to a Boundary."""
    key = (name or "none").strip().lower()
    if key not in BOUNDARY_NAMES:
        raise ValueError(
            f"Unknown boundary '{name}': must be one of {sorted(BOUNDARY_NAMES)}"
        )
    return BOUNDARY_NAMES[key]


def extract_payload(
    text: str,
    boundary: Boundary | None = None,
    kind: str = "JSON",
) -> ParseOutcome[str]:
    """Extract the first bounded payload from ``text``, trimmed.

    Args:
        text: Model output.
        boundary: Where the payload lives. None means the whole text.
        kind: Payload name used in the "No <kind> found" diagnostic.

    Returns:
        Ok with the payload text, or Error when the boundary does not match.
    """
    found = (boundary or NoBoundary()).find(text)
    if found is None:
        return Error(f"No {kind} found")
    return Ok(found.strip())


class ContentExtractor:
    """Extracts and decodes a bounded payload."""

    def __init__(
        self,
        boundary: Boundary | None = None,
        decoder: Decoder = decode_json,
        kind: str = "JSON",
        lenient: bool = False,
    ):
        """Initialize the extractor.

        Args:
            boundary: Boundary around the payload (None for the whole text)
            decoder: Turns payload text into a ParseOutcome
            kind: Payload name used in diagnostics
            lenient: Run JsonCleaner over the payload before decoding
        """
        self.boundary = boundary or NoBoundary()
        self.decoder = decoder
        self.kind = kind
        self.lenient = lenient
        self.cleaner = JsonCleaner()

    def extract(self, text: str) -> ParseOutcome[Any]:
        """Extract the payload from ``text`` and decode it."""
        payload = extract_payload(text, self.boundary, self.kind)
        if not payload.is_ok:
            return payload

        raw = payload.value
        if self.lenient:
            raw = self.cleaner.clean(raw)
        return self.decoder(raw)
