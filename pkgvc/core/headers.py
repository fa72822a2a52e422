"""源码库头（library header）读取

包的源码文件在开头的注释块里声明元信息:

    # foo.py --- Frobnicate widgets
    #
    # Version: 1.2
    # URL: https://example.com/foo
    # Package-Requires: ((bar "1.0")
    #                    (baz "2.3"))

规则:
  - 只扫描文件开头的注释块，遇到第一行非空非注释代码即停止
  - 头名不区分大小写
  - 多行头的续行必须以 tab 或至少两个空格缩进
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_COMMENT_RE = re.compile(r"^\s*#")
_SUMMARY_RE = re.compile(r"^#+\s*\S+\s+---\s+(.*?)\s*$")
_MODELINE_RE = re.compile(r"\s*-\*-.*-\*-\s*$")
_CONTINUATION_RE = re.compile(r"^#+(?:\t|[ \t]{2,})(\S.*?)\s*$")
_RCS_RE = re.compile(r"^\s*\$[A-Za-z]+:\s*(.*?)\s*\$\s*$")


def strip_rcs_id(value: str) -> str:
    """剥离版本控制关键字展开残留，如 "$Revision: 1.2 $" -> "1.2" """
    m = _RCS_RE.match(value)
    if m:
        return m.group(1)
    return value.strip()


class SourceHeaders:
    """单个源码文件的库头集合"""

    def __init__(self, lines: list[str]) -> None:
        self.lines = lines

    @classmethod
    def from_text(cls, text: str) -> SourceHeaders:
        block: list[str] = []
        for raw in text.splitlines():
            line = raw.rstrip("\r")
            if not line.strip():
                continue
            if not _COMMENT_RE.match(line):
                break
            block.append(line.lstrip())
        return cls(block)

    @classmethod
    def from_file(cls, path: Path) -> SourceHeaders:
        text = path.read_text(encoding="utf-8", errors="replace")
        return cls.from_text(text)

    @staticmethod
    def _header_re(name: str) -> re.Pattern[str]:
        return re.compile(
            rf"^#+\s*{re.escape(name)}\s*:\s*(.*?)\s*$", re.IGNORECASE,
        )

    def _find(self, name: str) -> int | None:
        pattern = self._header_re(name)
        for idx, line in enumerate(self.lines):
            if pattern.match(line):
                return idx
        return None

    def get(self, name: str) -> str | None:
        """读取单行头，不存在或为空返回 None"""
        idx = self._find(name)
        if idx is None:
            return None
        m = self._header_re(name).match(self.lines[idx])
        value = m.group(1) if m else ""
        return value or None

    def get_multiline(self, name: str) -> str | None:
        """读取多行头，续行以单个空格拼接"""
        idx = self._find(name)
        if idx is None:
            return None
        m = self._header_re(name).match(self.lines[idx])
        parts = [m.group(1)] if m and m.group(1) else []
        for line in self.lines[idx + 1:]:
            cont = _CONTINUATION_RE.match(line)
            if cont is None:
                break
            parts.append(cont.group(1))
        value = " ".join(parts).strip()
        return value or None

    def summary(self) -> str | None:
        """首行 "# file.py --- 摘要" 中的摘要"""
        for line in self.lines:
            m = _SUMMARY_RE.match(line)
            if m:
                text = _MODELINE_RE.sub("", m.group(1))
                return text or None
        return self.get("Summary")
