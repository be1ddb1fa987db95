"""Pretty-print the assistant's stream-json output as it is relayed."""

from __future__ import annotations

import json
from typing import TextIO


def format_stream_line(line: str) -> str:
    """Return `line` re-indented when it holds one JSON value, else unchanged.

    A trailing newline in `line` is preserved; none is added when it is absent.
    Blank lines are dropped from the relayed view.
    """

    content = line.rstrip("\r\n")
    newline = line[len(content) :]
    if not content.strip():
        return ""
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        return content + newline
    return json.dumps(parsed, ensure_ascii=False, indent=2) + newline


class StreamRelay:
    """Accumulates raw output while echoing a formatted copy to `sink`."""

    def __init__(self, sink: TextIO) -> None:
        self.sink = sink
        self._chunks: list[str] = []

    @property
    def output(self) -> str:
        return "".join(self._chunks)

    def feed(self, line: str) -> None:
        self._chunks.append(line)
        formatted = format_stream_line(line)
        if formatted:
            self.sink.write(formatted)
            self.sink.flush()
