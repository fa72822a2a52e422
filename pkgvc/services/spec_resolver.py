"""仓库规格解析 — 包名 / URL -> 未安装的 PackageDescriptor

输入两种形式:
  - 仓库 URL:  https://example.com/foo.git -> name=foo，后端未指定
  - 索引包名:  读取条目的 vc 规格字符串

vc 规格语法（空白分隔，尾部字段可省略）:

    <backend> <location> [<subdir> [<branch>]]
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from pkgvc.core.exceptions import (
    InvalidSpecError,
    NoVcHeaderError,
    UnknownPackageError,
)
from pkgvc.core.models import KIND_VC, PackageDescriptor, PackageExtras, RepositorySpec
from pkgvc.services.vc.backends import check_ref
from pkgvc.utils.net import is_repo_url, url_basename

if TYPE_CHECKING:
    from pkgvc.core.protocols import PackageIndex

logger = logging.getLogger(__name__)

_SPEC_RE = re.compile(r"^\s*(\S+)\s+(\S+)(?:\s+(\S+)(?:\s+(\S+))?)?\s*$")
_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.+\-]*$")

VC_SPEC_KEY = "vc"


def parse_vc_spec(text: str) -> RepositorySpec:
    """解析 vc 规格字符串

    Raises:
        InvalidSpecError: 不符合语法
    """
    m = _SPEC_RE.match(text or "")
    if m is None:
        raise InvalidSpecError(f"无效的仓库规格: {text!r}，应为 '<backend> <location> [<subdir> [<branch>]]'")
    backend, location, subdir, branch = m.groups()
    return RepositorySpec(
        backend=backend.lower(),
        location=location,
        subdir=subdir,
        branch=branch,
    )


def check_package_name(name: str) -> str:
    """包名只允许字母数字开头的 [A-Za-z0-9_.+-]，不能含路径分隔符

    Raises:
        InvalidSpecError: 包名非法
    """
    if not _NAME_RE.match(name or ""):
        raise InvalidSpecError(f"非法包名: {name!r}")
    return name


class RepositorySpecResolver:
    """把用户输入解析为待安装的描述符"""

    def __init__(self, index: PackageIndex) -> None:
        self._index = index

    def resolve(
        self, name_or_url: str, *, name: str | None = None, rev: str | None = None,
    ) -> PackageDescriptor:
        text = (name_or_url or "").strip()
        if not text:
            raise UnknownPackageError("包名或 URL 不能为空")
        if rev:
            check_ref(rev)

        if is_repo_url(text):
            desc = self._from_url(text, name=name, rev=rev)
        elif _NAME_RE.match(text):
            desc = self._from_index(text, name=name, rev=rev)
        else:
            raise UnknownPackageError(f"既不是仓库 URL 也不是合法包名: {text}")
        check_package_name(desc.name)
        return desc

    @staticmethod
    def _from_url(url: str, *, name: str | None, rev: str | None) -> PackageDescriptor:
        pkg_name = name or url_basename(url)
        if not pkg_name:
            raise UnknownPackageError(f"无法从 URL 推导包名: {url}")
        logger.info("按 URL 解析: %s -> %s", url, pkg_name)
        return PackageDescriptor(
            name=pkg_name,
            kind=KIND_VC,
            extras=PackageExtras(
                upstream=RepositorySpec(backend=None, location=url),
                rev=rev or None,
            ),
        )

    def _from_index(
        self, pkg: str, *, name: str | None, rev: str | None,
    ) -> PackageDescriptor:
        entry = self._index.lookup(pkg)
        if entry is None:
            raise UnknownPackageError(f"包 '{pkg}' 不在索引中")

        spec_text = entry.metadata.get(VC_SPEC_KEY)
        if not spec_text:
            raise NoVcHeaderError(f"包 '{pkg}' 的索引条目没有 vc 规格")
        upstream = parse_vc_spec(str(spec_text))

        logger.info(
            "按索引解析: %s -> [%s] %s", pkg, upstream.backend, upstream.location,
        )
        return PackageDescriptor(
            name=name or pkg,
            kind=KIND_VC,
            summary=entry.summary,
            extras=PackageExtras(
                upstream=upstream,
                rev=rev or None,
                vc_spec=str(spec_text),
            ),
        )
