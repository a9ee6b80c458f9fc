"""
Label table loading.
"""

from __future__ import annotations

import logging
import os
from typing import List

from models.errors import LabelLoadError


def parse_labels(text: str) -> List[str]:
    """One label per line; whitespace trimmed, blank lines dropped."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def load_labels(path: str) -> List[str]:
    """
    Load an ordered label table from a text file.

    Raises:
        LabelLoadError: If the file is missing, unreadable, or contains no labels.
    """
    if not path:
        raise LabelLoadError("No labels file configured")
    if not os.path.exists(path):
        raise LabelLoadError(f"Labels file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            labels = parse_labels(f.read())
    except (OSError, UnicodeDecodeError) as e:
        raise LabelLoadError(f"Failed to read labels file {path}: {e}") from e
    if not labels:
        raise LabelLoadError(f"Labels file {path} contains no labels")

    logging.info(f"Loaded {len(labels)} class labels from {path}")
    return labels
