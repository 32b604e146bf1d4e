"""RIFF/WAVE container helpers - header parsing, size rewriting and silence generation."""

import struct
from typing import Optional

from pydantic import BaseModel, Field

from scriptcast.core.exceptions import AssemblyError
from scriptcast.models.schemas import PcmFormat

CANONICAL_HEADER_SIZE = 44
RIFF_SIZE_OFFSET = 4


class WavHeader(BaseModel):
    """Parsed RIFF/WAVE header."""

    pcm_format: PcmFormat = Field(..., description="Sample format from the fmt chunk")
    data_offset: int = Field(..., description="Offset of the 'data' chunk id")
    payload_offset: int = Field(..., description="Offset of the first payload byte")
    declared_data_size: int = Field(..., description="Size field of the data chunk")
    declared_riff_size: int = Field(..., description="Size field of the RIFF chunk")


def is_container(buffer: bytes) -> bool:
    """Return True if ``buffer`` starts with a RIFF/WAVE header."""
    return len(buffer) >= 12 and buffer[0:4] == b"RIFF" and buffer[8:12] == b"WAVE"


def _find_data_chunk(buffer: bytes) -> Optional[int]:
    """Walk the chunk list for the 'data' chunk, falling back to a byte scan."""
    offset = 12
    while offset + 8 <= len(buffer):
        chunk_id = buffer[offset : offset + 4]
        (chunk_size,) = struct.unpack_from("<I", buffer, offset + 4)
        if chunk_id == b"data":
            return offset
        # Chunks are word aligned
        offset += 8 + chunk_size + (chunk_size & 1)

    position = buffer.find(b"data", 12)
    if position != -1 and position + 8 <= len(buffer):
        return position
    return None


def _parse_fmt(buffer: bytes) -> PcmFormat:
    position = buffer.find(b"fmt ", 12)
    if position == -1 or position + 24 > len(buffer):
        return PcmFormat()
    channels, sample_rate = struct.unpack_from("<HI", buffer, position + 10)
    (bits_per_sample,) = struct.unpack_from("<H", buffer, position + 22)
    if not channels or not sample_rate or not bits_per_sample:
        return PcmFormat()
    return PcmFormat(sample_rate=sample_rate, channels=channels, bits_per_sample=bits_per_sample)


def parse_header(buffer: bytes) -> WavHeader:
    """
    Parse a RIFF/WAVE header.

    Args:
        buffer: Container bytes.

    Returns:
        Parsed header.

    Raises:
        AssemblyError: If the buffer is not a container or has no locatable data chunk.
    """
    if not is_container(buffer):
        raise AssemblyError("Buffer is not a RIFF/WAVE container")

    data_offset = _find_data_chunk(buffer)
    if data_offset is None:
        raise AssemblyError("RIFF/WAVE container has no data chunk")

    (declared_data_size,) = struct.unpack_from("<I", buffer, data_offset + 4)
    (declared_riff_size,) = struct.unpack_from("<I", buffer, RIFF_SIZE_OFFSET)
    return WavHeader(
        pcm_format=_parse_fmt(buffer),
        data_offset=data_offset,
        payload_offset=data_offset + 8,
        declared_data_size=declared_data_size,
        declared_riff_size=declared_riff_size,
    )


def payload_offset(buffer: bytes) -> int:
    """Offset of the first audio byte in a container, or 0 for raw PCM."""
    if not is_container(buffer):
        return 0
    return parse_header(buffer).payload_offset


def payload(buffer: bytes, header: Optional[WavHeader] = None) -> bytes:
    """
    Audio samples of a container, excluding any chunks that follow the data chunk.

    A data size of zero or one running past the end of the buffer (streamed or
    truncated output) is treated as "to the end of the buffer".

    Args:
        buffer: Container bytes.
        header: Already-parsed header, if available.

    Returns:
        Payload bytes.
    """
    header = header or parse_header(buffer)
    available = len(buffer) - header.payload_offset
    size = header.declared_data_size
    if size <= 0 or size > available:
        size = available
    return buffer[header.payload_offset : header.payload_offset + size]


def rewrite_size_fields(buffer: bytes) -> bytes:
    """
    Rewrite the RIFF and data chunk size fields to match the buffer length.

    Args:
        buffer: Container bytes whose payload may have grown.

    Returns:
        New bytes with consistent size fields.
    """
    header = parse_header(buffer)
    patched = bytearray(buffer)
    struct.pack_into("<I", patched, RIFF_SIZE_OFFSET, len(patched) - 8)
    struct.pack_into("<I", patched, header.data_offset + 4, len(patched) - header.payload_offset)
    return bytes(patched)


def build_header(data_size: int, pcm_format: PcmFormat) -> bytes:
    """Build a canonical 44-byte PCM header."""
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        data_size + CANONICAL_HEADER_SIZE - 8,
        b"WAVE",
        b"fmt ",
        16,
        1,
        pcm_format.channels,
        pcm_format.sample_rate,
        pcm_format.byte_rate,
        pcm_format.block_align,
        pcm_format.bits_per_sample,
        b"data",
        data_size,
    )


def make_silence(duration_seconds: float, pcm_format: Optional[PcmFormat] = None) -> bytes:
    """
    Generate raw (headerless) PCM silence.

    Args:
        duration_seconds: Length of silence.
        pcm_format: Sample format (defaults to 24 kHz mono 16-bit).

    Returns:
        Zero-filled PCM bytes, aligned to whole frames.
    """
    pcm_format = pcm_format or PcmFormat()
    frames = int(round(max(0.0, duration_seconds) * pcm_format.sample_rate))
    return bytes(frames * pcm_format.block_align)


def wrap_pcm(payload: bytes, pcm_format: Optional[PcmFormat] = None) -> bytes:
    """Wrap raw PCM in a canonical container."""
    pcm_format = pcm_format or PcmFormat()
    return build_header(len(payload), pcm_format) + payload


def duration_seconds(buffer: bytes, fallback_format: Optional[PcmFormat] = None) -> float:
    """
    Compute the playback duration of a container or raw PCM buffer.

    Args:
        buffer: Container or raw PCM bytes.
        fallback_format: Format assumed for raw PCM.

    Returns:
        Duration in seconds.
    """
    if is_container(buffer):
        header = parse_header(buffer)
        byte_rate = header.pcm_format.byte_rate
        payload_size = len(payload(buffer, header))
    else:
        pcm_format = fallback_format or PcmFormat()
        byte_rate = pcm_format.byte_rate
        payload_size = len(buffer)
    if byte_rate <= 0:
        return 0.0
    return payload_size / byte_rate
