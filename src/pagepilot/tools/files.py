"""截图文件命名"""

import re
from datetime import datetime
from pathlib import Path

_UNSAFE_LABEL = re.compile(r"[^a-zA-Z0-9]")
_UNSAFE_DIR = re.compile(r"[^a-zA-Z0-9_-]")


def _timestamp() -> str:
    return datetime.now().isoformat(timespec="milliseconds").replace(":", "-").replace(".", "-")


def screenshot_filename(session_id: str, label: str, fmt: str = "png") -> str:
    safe_label = _UNSAFE_LABEL.sub("-", label)[:50]
    return f"screenshot-{_UNSAFE_DIR.sub('_', session_id)}-{safe_label}-{_timestamp()}.{fmt}"


def screenshot_path(root: Path, session_id: str, label: str, fmt: str = "png") -> Path:
    """<root>/<session_id>/screenshot-... ，目录不存在时创建"""
    session_dir = Path(root) / _UNSAFE_DIR.sub("_", session_id)
    session_dir.mkdir(parents=True, exist_ok=True)
    return session_dir / screenshot_filename(session_id, label, fmt)
