"""Text utility functions for narration processing."""

import re

SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]+")

DRAWTEXT_SPECIAL_CHARS = "\\'\":=,[]()%;"


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def split_sentence_chunks(text: str, max_sentences: int = 2) -> list[str]:
    """
    Split text into chunks of at most ``max_sentences`` sentences.

    Text after the last sentence terminator is kept as a trailing chunk.

    Args:
        text: Section text.
        max_sentences: Maximum sentences per chunk.

    Returns:
        Chunks in reading order, empty if the text has no sentence terminators.
    """
    matches = list(SENTENCE_PATTERN.finditer(text))
    sentences = [match.group(0).strip() for match in matches if match.group(0).strip()]
    if not sentences:
        return []

    tail = text[matches[-1].end() :].strip()
    if tail:
        sentences.append(tail)

    return [
        " ".join(sentences[i : i + max_sentences]) for i in range(0, len(sentences), max_sentences)
    ]


def split_word_chunks(text: str, words_per_chunk: int = 10) -> list[str]:
    """Split text into chunks of ``words_per_chunk`` words."""
    words = text.split()
    return [" ".join(words[i : i + words_per_chunk]) for i in range(0, len(words), words_per_chunk)]


def chunk_text(text: str, max_sentences: int = 2, words_per_chunk: int = 10) -> list[str]:
    """Sentence chunks, falling back to fixed-size word chunks."""
    chunks = split_sentence_chunks(text, max_sentences)
    if chunks:
        return chunks
    return split_word_chunks(text, words_per_chunk)


def escape_drawtext(text: str) -> str:
    """
    Escape text for embedding in an ffmpeg drawtext filter value.

    Args:
        text: Raw text.

    Returns:
        Text with filter-significant characters backslash-escaped.
    """
    escaped = []
    for char in text.replace("\r", " ").replace("\n", " "):
        if char in DRAWTEXT_SPECIAL_CHARS:
            escaped.append("\\" + char)
        else:
            escaped.append(char)
    return "".join(escaped)


def escape_script_text(text: str) -> str:
    """
    Escape text for embedding inside a double-quoted Python string literal.

    Args:
        text: Raw text.

    Returns:
        Escaped text safe to place between double quotes.
    """
    replacements = {
        "\\": "\\\\",
        '"': '\\"',
        "'": "\\'",
        "\n": "\\n",
        "\r": "\\r",
        "\t": "\\t",
        "\0": "\\x00",
    }
    escaped = []
    for char in text:
        if char in replacements:
            escaped.append(replacements[char])
        elif ord(char) < 32 or ord(char) == 127:
            escaped.append(f"\\x{ord(char):02x}")
        else:
            escaped.append(char)
    return "".join(escaped)


def format_srt_timestamp(seconds: float) -> str:
    """Format seconds as an SRT timestamp (HH:MM:SS,mmm)."""
    total_ms = int(round(max(0.0, seconds) * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"
