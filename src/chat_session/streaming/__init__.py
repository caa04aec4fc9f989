"""Decoding of record-framed streaming replies."""

from .decoder import CONTENT_TAG, StreamDecoder, decode_stream, parse_record

__all__ = ["CONTENT_TAG", "StreamDecoder", "decode_stream", "parse_record"]
