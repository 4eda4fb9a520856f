from pathlib import Path
from typing import Callable, Dict, Optional

import pytest


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[..., Path]:
    """Create files from a ``{relative path: content}`` mapping and return the root."""

    def _make(files: Dict[str, str], root: Optional[Path] = None) -> Path:
        base = root or tmp_path / "src"
        base.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = base / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return base

    return _make


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    def _write(text: str, name: str = ".artifacts") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
