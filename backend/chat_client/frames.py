"""
Decoding of the gateway's Server-Sent Events stream.

Only ``data:`` lines carry payloads. Comment lines (sse_starlette's keepalive
pings start with ``:``), blank separators and other SSE fields are ignored.
"""

import json
import logging
from typing import Optional

from domain.events import DONE_SENTINEL, CanonicalEvent, event_from_dict

logger = logging.getLogger("FrameDecoder")

DATA_PREFIX = "data:"


def parse_data_line(line: str) -> Optional[str]:
    """Extract the payload of an SSE ``data:`` line, or None for any other line."""
    line = line.rstrip("\r\n")
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX) :]
    # A single space after the colon is part of the field separator
    if payload.startswith(" "):
        payload = payload[1:]
    return payload


def is_done(payload: str) -> bool:
    return payload.strip() == DONE_SENTINEL


def decode_payload(payload: str) -> Optional[CanonicalEvent]:
    """Turn a frame payload into a canonical event.

    Returns None for the sentinel, malformed JSON and unknown event types.
    """
    if is_done(payload):
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Skipping malformed frame: {payload[:100]}")
        return None
    return event_from_dict(data)
