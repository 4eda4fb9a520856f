"""
Best-effort content type detection.

A static extension table answers for the common cases. Anything it does not
know goes through a chain of sniffers, callables that take a path and return
a type string or ``None``.
"""

from __future__ import annotations

import mimetypes
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

DEFAULT_TYPE = "application/octet-stream"

ContentSniffer = Callable[[Path], Optional[str]]

_TYPE_MAP: Dict[str, str] = {
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".css": "text/css",
    ".html": "text/html",
    ".htm": "text/html",
    ".json": "application/json",
    ".md": "text/markdown",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".xml": "application/xml",
    ".yml": "application/yaml",
    ".yaml": "application/yaml",
    ".toml": "application/toml",
    ".py": "text/x-python",
    ".php": "application/x-httpd-php",
    ".sh": "application/x-sh",
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
}


def type_from_ext(path: Path) -> Optional[str]:
    return _TYPE_MAP.get(path.suffix.lower())


def mimetypes_sniffer(path: Path) -> Optional[str]:
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed


def file_command_sniffer(path: Path) -> Optional[str]:
    """Ask ``file --mime-type -b``; ``None`` if the utility is missing or unsure."""
    exe = shutil.which("file")
    if exe is None:
        return None
    try:
        proc = subprocess.run(
            [exe, "--mime-type", "-b", str(path)],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    out = proc.stdout.strip()
    if proc.returncode != 0 or "/" not in out or " " in out:
        return None
    return out


DEFAULT_SNIFFERS = (mimetypes_sniffer,)


def detect_type(path: Path, sniffers: Iterable[ContentSniffer] = DEFAULT_SNIFFERS) -> str:
    known = type_from_ext(path)
    if known:
        return known
    for sniff in sniffers:
        found = sniff(path)
        if found:
            return found
    return DEFAULT_TYPE
