"""网络工具 — URL 识别与安全校验"""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import urlparse

from pkgvc.core.exceptions import InvalidSpecError

# 可识别为仓库地址的 URL 协议
REPO_SCHEMES = frozenset((
    "http", "https", "git", "ssh", "file", "hg", "svn",
    "git+ssh", "git+https",
))

_DOWNLOAD_SCHEMES = frozenset(("http", "https"))


def is_repo_url(text: str) -> bool:
    """字符串是否为带已知协议的仓库 URL"""
    parsed = urlparse(text.strip())
    if parsed.scheme not in REPO_SCHEMES:
        return False
    if parsed.scheme == "file":
        return bool(parsed.path)
    return bool(parsed.netloc)


def url_basename(url: str) -> str:
    """URL 路径最后一段去掉扩展名，如 https://x/pkg.git -> pkg"""
    path = urlparse(url.strip()).path.rstrip("/")
    return PurePosixPath(path).stem


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """下载地址仅允许 http/https，防止 file:// 等非预期协议访问

    Raises:
        InvalidSpecError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _DOWNLOAD_SCHEMES:
        label = f" ({context})" if context else ""
        raise InvalidSpecError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )
