"""Utility functions for ScriptCast."""

from scriptcast.utils.io_utils import create_run_output_dir, job_temp_dir, slugify
from scriptcast.utils.text_utils import chunk_text, count_words, escape_drawtext

__all__ = [
    "create_run_output_dir",
    "job_temp_dir",
    "slugify",
    "chunk_text",
    "count_words",
    "escape_drawtext",
]
