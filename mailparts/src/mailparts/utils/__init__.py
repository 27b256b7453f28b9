"""Expose the public utility surface for mailparts.

What:
  Re-export the logging and MIME helpers other packages import.

Why:
  A stable facade lets callers write ``from mailparts.utils import get_logger``
  without depending on internal filenames.

Interfaces:
  ``get_logger``, ``parse_message``, ``split_header_block``,
  ``structure_from_message``, ``part_payload``.
"""

from .logging import get_logger
from .mime import part_payload, parse_message, split_header_block, structure_from_message

__all__ = [
    "get_logger",
    "parse_message",
    "split_header_block",
    "structure_from_message",
    "part_payload",
]
