"""Frame decoding and event classification for run streams."""

from playground.stream.classifier import classify_event
from playground.stream.decoder import FrameDecoder, decode_stream

__all__ = ["FrameDecoder", "classify_event", "decode_stream"]
