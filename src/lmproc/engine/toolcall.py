"""
Tool call parsing module.

Parses function-call invocations embedded in model output. Two textual
grammars are supported:
- Tagged:    <function=NAME>{"key": "value"}</function>
- Bracketed: [name(key=value, ...), other(...)]

Parsers never raise on bad input. They return ``Ok`` with the parsed
invocation(s) or ``Error`` with a diagnostic meant for the model.
"""

from __future__ import annotations

import html
import json
import logging
import re
from enum import Enum
from typing import Any

from lmproc.core.datamodels import ParamValue, ToolCallInvocation
from lmproc.core.exceptions import ToolCallParseError
from lmproc.core.results import Error, Ok, ParseOutcome

logger = logging.getLogger(__name__)

_QUOTES = ("'", '"')
_INT_RE = re.compile(r"[-+]?\d+")
_FLOAT_RE = re.compile(r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?")


class ToolCallFormat(Enum):
    """Supported tool call grammars."""

    AUTO = "auto"
    UNKNOWN = "unknown"
    TAGGED = "tagged"           # <function=name>{...}</function>
    BRACKETED = "bracketed"     # [name(key=value)]


class JsonCleaner:
    """Clean malformed JSON from LLM output."""

    @staticmethod
    def clean(text: str) -> str:
        """Clean and normalize JSON text.

        Handles HTML entities, Python literals (True/False/None),
        single-quoted strings, trailing commas and unquoted keys.
        """
        if not text:
            return text

        text = html.unescape(text)

        text = re.sub(r"\bTrue\b", "true", text)
        text = re.sub(r"\bFalse\b", "false", text)
        text = re.sub(r"\bNone\b", "null", text)

        # Only rewrite quotes when the text looks like a single-quoted dict
        if text.lstrip().startswith("{'") or "': " in text:
            text = JsonCleaner._convert_single_quotes(text)

        text = re.sub(r",\s*([}\]])", r"\1", text)
        text = re.sub(r"([{,]\s*)([A-Za-z_]\w*)(\s*:)", r'\1"\2"\3', text)

        return text

    @staticmethod
    def _convert_single_quotes(text: str) -> str:
        """Convert single quoted strings to double quoted ones."""
        result: list[str] = []
        string_char: str | None = None
        i = 0

        while i < len(text):
            char = text[i]

            if string_char is None:
                if char in _QUOTES:
                    string_char = char
                    result.append('"')
                else:
                    result.append(char)
            elif char == "\\" and i + 1 < len(text):
                result.append(text[i:i + 2])
                i += 1
            elif char == string_char:
                string_char = None
                result.append('"')
            elif char == '"':
                # Bare double quote inside a single quoted string
                result.append('\\"')
            else:
                result.append(char)
            i += 1

        return "".join(result)


def split_top_level(text: str, sep: str = ",") -> ParseOutcome[list[str]]:
    """Split ``text`` on ``sep`` outside of parentheses and quoted strings.

    A string is closed only by the same quote character that opened it.
    Unbalanced parentheses or an unterminated string yield ``Error``.
    """
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None

    for char in text:
        if quote is not None:
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return Error(f"Unbalanced ')' in: {text}")
        elif char == sep and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)

    if quote is not None:
        return Error(f"Unterminated string in: {text}")
    if depth != 0:
        return Error(f"Unbalanced '(' in: {text}")

    parts.append("".join(current))
    return Ok(parts)


def coerce_value(raw: str) -> ParseOutcome[ParamValue]:
    """Coerce a bracketed-grammar argument value.

    Quoted -> str, then int, then float. Anything else is kept as a
    bare string, so `true` stays "true".
    """
    if not raw:
        return Error("Missing value")

    if raw[0] in _QUOTES:
        closing = raw.find(raw[0], 1)
        if closing == -1:
            return Error(f"Unterminated string: {raw}")
        if closing != len(raw) - 1:
            return Error(f"Unexpected text after quoted value: {raw}")
        return Ok(raw[1:-1])

    if _INT_RE.fullmatch(raw):
        return Ok(int(raw))
    if _FLOAT_RE.fullmatch(raw):
        return Ok(float(raw))
    return Ok(raw)


class GrammarParser:
    """Base class for tool call grammar parsers."""

    format: ToolCallFormat = ToolCallFormat.UNKNOWN

    def parse(self, text: str) -> ParseOutcome[Any]:
        raise NotImplementedError

    def parse_or_raise(self, text: str) -> Any:
        """Parse ``text``, raising ``ToolCallParseError`` on failure."""
        outcome = self.parse(text)
        if not outcome.is_ok:
            raise ToolCallParseError(outcome.reason)
        return outcome.value


class TaggedCallParser(GrammarParser):
    """Parse the single call form ``<function=NAME>PAYLOAD</function>``.

    PAYLOAD is a JSON object mapping parameter names to scalar values.
    """

    format = ToolCallFormat.TAGGED

    START_TAG = "<function="
    END_TAG = "</function>"

    def __init__(self, lenient: bool = False):
        self.lenient = lenient
        self.cleaner = JsonCleaner()

    def parse(self, text: str) -> ParseOutcome[ToolCallInvocation]:
        text = (text or "").strip()

        if not text.startswith(self.START_TAG):
            return Error(f"Missing start tag '{self.START_TAG}'")
        if not text.endswith(self.END_TAG):
            return Error(f"Missing end tag '{self.END_TAG}'")

        end_start = len(text) - len(self.END_TAG)
        name_end = text.find(">", len(self.START_TAG), end_start)
        if name_end == -1:
            return Error("Missing '>' after function name")

        name = text[len(self.START_TAG):name_end]
        if not name:
            return Error("Empty function name")

        params = self._decode_parameters(text[name_end + 1:end_start])
        if not params.is_ok:
            return params

        return Ok(ToolCallInvocation(function_name=name, parameters=params.value))

    def _decode_parameters(self, payload: str) -> ParseOutcome[dict[str, ParamValue]]:
        payload = payload.strip()
        if not payload:
            return Ok({})
        if self.lenient:
            payload = self.cleaner.clean(payload)

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            return Error(f"Invalid JSON in parameters: {e}")

        if not isinstance(data, dict):
            return Error("Parameters must be a JSON object")

        for key, value in data.items():
            if value is None or not isinstance(value, (str, int, float, bool)):
                return Error(f"Unsupported value for parameter '{key}': {json.dumps(value)}")
        return Ok(data)


class BracketedCallParser(GrammarParser):
    """Parse the multi call form ``[name(key=value, ...), ...]``.

    Values may be single or double quoted strings, integers, floats or
    booleans. ``name()`` yields an empty parameter mapping. Any malformed
    entry fails the whole parse.
    """

    format = ToolCallFormat.BRACKETED

    def parse(self, text: str) -> ParseOutcome[list[ToolCallInvocation]]:
        text = (text or "").strip()

        if not text.startswith("["):
            return Error("Expected '[' at start of tool call list")
        if not text.endswith("]"):
            return Error("Expected ']' at end of tool call list")

        body = text[1:-1].strip()
        if not body:
            return Ok([])

        entries = split_top_level(body)
        if not entries.is_ok:
            return entries

        calls: list[ToolCallInvocation] = []
        for entry in entries.value:
            call = self._parse_call(entry.strip())
            if not call.is_ok:
                return call
            calls.append(call.value)

        return Ok(calls)

    def _parse_call(self, entry: str) -> ParseOutcome[ToolCallInvocation]:
        if not entry:
            return Error("Empty tool call entry")

        paren = entry.find("(")
        if paren == -1:
            return Error(f"Missing '(' in tool call: {entry}")
        if not entry.endswith(")"):
            return Error(f"Missing ')' in tool call: {entry}")

        name = entry[:paren].strip()
        if not name.isidentifier():
            return Error(f"Invalid function name: {name!r}")

        params = self._parse_arguments(entry[paren + 1:-1].strip())
        if not params.is_ok:
            return params

        return Ok(ToolCallInvocation(function_name=name, parameters=params.value))

    def _parse_arguments(self, args_text: str) -> ParseOutcome[dict[str, ParamValue]]:
        if not args_text:
            return Ok({})

        tokens = split_top_level(args_text)
        if not tokens.is_ok:
            return tokens

        params: dict[str, ParamValue] = {}
        for token in tokens.value:
            token = token.strip()
            if "=" not in token:
                return Error(f"Expected key=value argument, got: {token!r}")

            key, raw = token.split("=", 1)
            key = key.strip()
            if not key.isidentifier():
                return Error(f"Invalid parameter name: {key!r}")
            if key in params:
                return Error(f"Duplicate parameter: {key}")

            value = coerce_value(raw.strip())
            if not value.is_ok:
                return Error(f"Invalid value for parameter '{key}': {value.reason}")
            params[key] = value.value

        return Ok(params)


def detect_format(content: str) -> ToolCallFormat:
    """Detect the tool call grammar used by ``content``."""
    content = (content or "").strip()
    if content.startswith(TaggedCallParser.START_TAG):
        return ToolCallFormat.TAGGED
    if re.match(r"\[\s*(?:\]|[A-Za-z_]\w*\s*\()", content):
        return ToolCallFormat.BRACKETED
    return ToolCallFormat.UNKNOWN


# Singleton instance
_handler: ToolCallHandler | None = None


class ToolCallHandler:
    """Main interface for tool call parsing.

    Use get_handler() to get the singleton instance.
    """

    def __init__(self, lenient: bool = False):
        self.parsers: dict[ToolCallFormat, GrammarParser] = {
            ToolCallFormat.TAGGED: TaggedCallParser(lenient=lenient),
            ToolCallFormat.BRACKETED: BracketedCallParser(),
        }

    def parse(
        self,
        content: str,
        fmt: ToolCallFormat = ToolCallFormat.AUTO,
    ) -> ParseOutcome[list[ToolCallInvocation]]:
        """Parse tool calls in any supported grammar.

        Args:
            content: Raw LLM output string.
            fmt: Grammar to use. AUTO detects it from the content.

        Returns:
            Ok with a list of invocations (one for the tagged grammar), or Error.
        """
        if fmt == ToolCallFormat.AUTO:
            fmt = detect_format(content)

        parser = self.parsers.get(fmt)
        if parser is None:
            return Error("No tool call found")

        outcome = parser.parse(content)
        if not outcome.is_ok:
            logger.debug(f"{fmt.value} tool call parse failed: {outcome.reason}")
            return outcome
        if isinstance(outcome.value, ToolCallInvocation):
            return Ok([outcome.value])
        return outcome


def get_handler() -> ToolCallHandler:
    """Get the singleton ToolCallHandler instance."""
    global _handler
    if _handler is None:
        _handler = ToolCallHandler()
    return _handler
