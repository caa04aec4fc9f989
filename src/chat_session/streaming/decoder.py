"""Incremental decoder for record-framed streaming replies.

A reply body is UTF-8 text made of newline-terminated records shaped
``<tag>:<payload>``. Records tagged ``0`` carry a JSON object whose ``content``
string is one fragment of the reply; every other tag is a control signal and is
ignored. Network chunks are not aligned to records, so partial records and
partial multi-byte characters are carried over to the next chunk.
"""

import codecs
import json
from typing import Any, AsyncIterable, Callable, List, Optional, Tuple, Union

import structlog

from ..domain.errors import DecodeError

logger = structlog.get_logger()

CONTENT_TAG = "0"

FragmentCallback = Callable[[str], None]


def parse_record(line: str) -> Tuple[str, Any]:
    """Split a record into its tag and decoded JSON payload.

    Raises DecodeError when the line has no tag separator or the payload is not JSON.
    """
    tag, separator, payload = line.partition(":")
    if not separator:
        raise DecodeError("Record has no tag separator", line)
    try:
        return tag, json.loads(payload)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid record payload: {e.msg}", line) from e


class StreamDecoder:
    """Folds streamed chunks into one accumulated reply text."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._bytes = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._carry = ""
        self._parts: List[str] = []
        self._finished = False
        self.skipped_records = 0

    @property
    def text(self) -> str:
        """Text accumulated so far."""
        return "".join(self._parts)

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Consume one chunk and return the content fragments it completed."""
        if self._finished:
            raise RuntimeError("Decoder already finished")

        text = self._bytes.decode(chunk) if isinstance(chunk, bytes) else chunk
        *lines, self._carry = (self._carry + text).split("\n")

        fragments = []
        for line in lines:
            fragment = self._decode_line(line)
            if fragment:
                fragments.append(fragment)
        self._parts.extend(fragments)
        return fragments

    def finish(self) -> str:
        """Signal end of stream and return the full reply.

        Trailing data without a newline terminator is discarded.
        """
        if not self._finished:
            tail = self._carry + self._bytes.decode(b"", final=True)
            if tail.strip():
                logger.debug("stream_trailing_data_discarded", size=len(tail))
            self._carry = ""
            self._finished = True
        return self.text

    def _decode_line(self, line: str) -> Optional[str]:
        line = line.rstrip("\r")
        if not line:
            return None

        tag = line.partition(":")[0]
        if tag != CONTENT_TAG and ":" in line:
            logger.debug("stream_record_ignored", tag=tag)
            return None

        try:
            _, payload = parse_record(line)
        except DecodeError as e:
            self.skipped_records += 1
            logger.debug("stream_record_skipped", error=e.message, record=e.record[:80])
            return None

        if isinstance(payload, dict):
            content = payload.get("content")
            if isinstance(content, str):
                return content
        return None


async def decode_stream(
    chunks: AsyncIterable[Union[bytes, str]],
    decoder: Optional[StreamDecoder] = None,
    on_fragment: Optional[FragmentCallback] = None,
) -> str:
    """Drain an async chunk iterator and return the accumulated reply.

    ``on_fragment`` receives each content fragment as it is decoded, for callers
    that want to show live typing; the return value is only available once the
    stream is exhausted.
    """
    decoder = decoder or StreamDecoder()
    async for chunk in chunks:
        for fragment in decoder.feed(chunk):
            if on_fragment is not None:
                on_fragment(fragment)
    return decoder.finish()
