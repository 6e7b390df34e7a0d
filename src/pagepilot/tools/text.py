"""文本清洗"""

import re

_ZERO_WIDTH = re.compile("[\u200b-\u200d\ufeff]")
_CONTROL = re.compile(r"[\x00-\x09\x0B-\x1F\x7F]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_text(text: str | None) -> str:
    """NBSP→空格，去掉零宽/控制字符，合并空白并去首尾空白。"""
    if not text:
        return ""
    s = str(text).replace("\u00a0", " ")
    s = _ZERO_WIDTH.sub("", s)
    s = _CONTROL.sub("", s)
    s = _WHITESPACE.sub(" ", s)
    return s.strip()


def truncate(text: str, limit: int) -> tuple[str, bool]:
    if limit >= 0 and len(text) > limit:
        return text[:limit], True
    return text, False
