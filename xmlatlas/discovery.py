"""Locate XML files under a directory."""

import logging
import os

logger = logging.getLogger("xmlatlas.discovery")


def find_xml_files(directory: str, extensions: list[str], max_depth: int = 0) -> list[str]:
    """Walk ``directory`` and return matching file paths, sorted.

    Depth 1 means files directly inside ``directory``; 0 means unlimited.
    Extensions match case-insensitively, with or without a leading dot.
    """
    wanted = {"." + e.lower().lstrip(".") for e in extensions}
    logger.info("Scanning directory: %s", directory)

    found = []
    base_depth = os.path.abspath(directory).rstrip(os.sep).count(os.sep)
    for root, dirs, files in os.walk(directory, onerror=_log_walk_error):
        depth = os.path.abspath(root).rstrip(os.sep).count(os.sep) - base_depth + 1
        if max_depth and depth >= max_depth:
            dirs[:] = []
        for name in files:
            if os.path.splitext(name)[1].lower() in wanted:
                path = os.path.join(root, name)
                logger.debug("Found XML file: %s", path)
                found.append(path)

    logger.info("Found %d XML files", len(found))
    return sorted(found)


def validate_directory(path: str):
    """Raise if ``path`` is missing or not a directory."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Path does not exist: {path}")
    if not os.path.isdir(path):
        raise NotADirectoryError(f"Path is not a directory: {path}")


def _log_walk_error(error: OSError):
    logger.warning("Error accessing path: %s", error)
