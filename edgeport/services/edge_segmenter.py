from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from edgeport.services.edge_models import BusinessLogicBlock
from edgeport.services.safe_source import count_lines, summarize_source

logger = logging.getLogger(__name__)

OUTSIDE = "outside"
INSIDE_SCOPE = "inside_scope"

TRY_OPEN_PATTERN = re.compile(r"\btry\s*\{")

# First match wins. Kinds listed here start a new block whenever the open block
# has a different kind.
CATEGORY_SIGNATURES: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "webhook_validation",
        re.compile(r"verifySignature|constructEvent|validateWebhook", re.IGNORECASE),
    ),
    ("database", re.compile(r"supabase\.(?:from|rpc|storage)\b")),
    ("api_call", re.compile(r"\bfetch\s*\(|\baxios\b|https?://", re.IGNORECASE)),
    ("auth", re.compile(r"auth\.getUser|\bAuthorization\b")),
    ("response", re.compile(r"\bnew\s+Response\s*\(|\bres\.(?:json|status|send)\s*\(")),
)

# Only opens a block when nothing is open; otherwise it is plain continuation.
CONDITION_PATTERN = re.compile(r"^\s*(?:\}\s*else\s+)?if\s*\(")


@dataclass
class _OpenBlock:
    kind: str
    start_line: int
    end_line: int
    lines: list[str] = field(default_factory=list)

    def append(self, line: str, index: int) -> None:
        self.lines.append(line)
        self.end_line = index

    def close(self) -> BusinessLogicBlock:
        return BusinessLogicBlock(
            kind=self.kind,
            text="\n".join(self.lines),
            start_line=self.start_line,
            end_line=self.end_line,
        )


class BusinessLogicSegmenter:
    """Line-oriented state machine carving classified spans out of a handler.

    Brace depth is counted per line without any lexing, so braces inside strings
    or comments count too. Only the first ``try {`` and the first return of the
    depth counter to zero delimit a scope; nested try blocks are not tracked.
    """

    def __init__(self) -> None:
        self.state = OUTSIDE
        self.depth = 0
        self.blocks: list[BusinessLogicBlock] = []
        self._open: _OpenBlock | None = None

    def feed(self, line: str, index: int) -> None:
        if TRY_OPEN_PATTERN.search(line):
            self.state = INSIDE_SCOPE

        if self.state == INSIDE_SCOPE:
            self._classify(line, index)

        self.depth += line.count("{") - line.count("}")

        if self.depth == 0 and self.state == INSIDE_SCOPE:
            self.state = OUTSIDE
            self._flush()

    def finish(self) -> list[BusinessLogicBlock]:
        self._flush()
        return list(self.blocks)

    def _classify(self, line: str, index: int) -> None:
        kind = _match_category(line)
        if kind is None and self._open is None and CONDITION_PATTERN.search(line):
            kind = "condition"

        if kind is not None and (self._open is None or self._open.kind != kind):
            self._flush()
            self._open = _OpenBlock(kind=kind, start_line=index, end_line=index)
            self._open.append(line, index)
            return

        if self._open is not None:
            self._open.append(line, index)

    def _flush(self) -> None:
        if self._open is not None:
            self.blocks.append(self._open.close())
            self._open = None


def segment_business_logic(source: str) -> list[BusinessLogicBlock]:
    summary = summarize_source(source)
    logger.info(
        "segment_business_logic: source_len=%s source_hash=%s lines=%s",
        summary["len"],
        summary["sha256_8"],
        count_lines(source),
    )
    if not source:
        return []

    segmenter = BusinessLogicSegmenter()
    for index, line in enumerate(source.split("\n")):
        segmenter.feed(line, index)
    return segmenter.finish()


def _match_category(line: str) -> str | None:
    for kind, pattern in CATEGORY_SIGNATURES:
        if pattern.search(line):
            return kind
    return None
