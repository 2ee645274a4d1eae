"""Small filesystem helpers shared by the JSON/XML stores and the index snapshot."""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

# internal state files living next to uploads, never treated as documents
RESERVED_EXTENSIONS = {".json"}


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temp file in the same directory and rename it into place.

    Readers either see the previous file or the complete new one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def write_json_atomic(path: Path, data: Any) -> None:
    write_text_atomic(path, json.dumps(data, indent=2, ensure_ascii=False))


def read_json(path: Path) -> Any | None:
    """Return the parsed JSON content of ``path``, None if the file is missing or blank.

    Raises:
        json.JSONDecodeError: If the file holds invalid JSON.
    """
    if not path.exists():
        return None
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return None
    return json.loads(raw)


def safe_file_name(name: str) -> str:
    """Strip any directory part and characters that are unsafe in a file name."""
    base = Path(name.replace("\\", "/")).name
    base = re.sub(r"[^\w.\- ()]", "_", base).strip(" .")
    return base or "file"


def is_reserved(path: Path) -> bool:
    return path.suffix.lower() in RESERVED_EXTENSIONS or path.name.startswith(".")


_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]{0,127}$")


def is_safe_id(value: str | None) -> bool:
    """True for ids usable as a single path component (letters, digits, "-" and "_")."""
    return bool(value) and bool(_ID_PATTERN.match(value))
