"""版本号解析与比较

版本字符串与可比较整数元组之间的转换:

    "1.2"        -> (1, 2)
    "2.0alpha1"  -> (2, 0, -3, 1)
    "1.0-pre"    -> (1, 0, -1)

预发布限定词映射为负数，保证 1.0pre < 1.0 < 1.0.1。
比较时较短的元组按 0 补齐，因此 (1, 2) == (1, 2, 0)。
"""

from __future__ import annotations

import re

# 限定词 -> 排序值
_QUALIFIERS: dict[str, int] = {
    "snapshot": -4,
    "cvs": -4,
    "git": -4,
    "bzr": -4,
    "svn": -4,
    "hg": -4,
    "darcs": -4,
    "unknown": -4,
    "alpha": -3,
    "beta": -2,
    "pre": -1,
    "rc": -1,
}

_JOIN_NAMES: dict[int, str] = {-1: "pre", -2: "beta", -3: "alpha", -4: "snapshot"}

_TOKEN_RE = re.compile(r"(?P<num>\d+)|(?P<sep>\.)|[-_+ ]?(?P<word>[A-Za-z]+)")


def version_to_list(ver: str) -> tuple[int, ...]:
    """把版本字符串转换为整数元组

    Raises:
        ValueError: 版本字符串不合法
    """
    text = ver.strip()
    if not text or not text[0].isdigit():
        raise ValueError(f"无效的版本号: {ver!r}")

    parts: list[int] = []
    prev = ""
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise ValueError(f"无效的版本号: {ver!r}")
        if m.group("num") is not None:
            parts.append(int(m.group("num")))
            prev = "num"
        elif m.group("sep") is not None:
            if prev != "num":
                raise ValueError(f"无效的版本号: {ver!r}")
            prev = "sep"
        else:
            word = m.group("word").lower()
            if word not in _QUALIFIERS:
                raise ValueError(f"未知的版本限定词 '{word}': {ver!r}")
            parts.append(_QUALIFIERS[word])
            prev = "word"
        pos = m.end()

    if prev == "sep":
        raise ValueError(f"无效的版本号: {ver!r}")
    return tuple(parts)


def version_join(vlist: tuple[int, ...] | list[int]) -> str:
    """把整数元组还原为规范版本字符串（version_to_list 的逆运算）"""
    if not vlist or vlist[0] < 0:
        raise ValueError(f"无效的版本元组: {vlist!r}")

    out = [str(vlist[0])]
    pending_dot = True
    for num in vlist[1:]:
        if num >= 0:
            if pending_dot:
                out.append(".")
            out.append(str(num))
            pending_dot = True
        elif num in _JOIN_NAMES:
            out.append(_JOIN_NAMES[num])
            pending_dot = False
        else:
            raise ValueError(f"无效的版本元组: {vlist!r}")
    return "".join(out)


def is_valid_version(ver: str) -> bool:
    try:
        version_to_list(ver)
    except ValueError:
        return False
    return True


def version_cmp(a: tuple[int, ...], b: tuple[int, ...]) -> int:
    """比较两个版本元组，返回 -1 / 0 / 1（短元组按 0 补齐）"""
    width = max(len(a), len(b))
    pa = tuple(a) + (0,) * (width - len(a))
    pb = tuple(b) + (0,) * (width - len(b))
    if pa < pb:
        return -1
    if pa > pb:
        return 1
    return 0


def version_satisfies(have: tuple[int, ...], need: tuple[int, ...]) -> bool:
    """have >= need"""
    return version_cmp(have, need) >= 0
