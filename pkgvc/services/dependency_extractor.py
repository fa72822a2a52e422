"""依赖提取器 — 从源码文件的 Package-Requires 头收集依赖

    # Package-Requires: ((bar "1.0")
    #                    (baz "2.3"))

只扫描目录下一层的源码文件；结果按文件顺序拼接，
去重与版本元组转换由调用方负责（见 merge_requirements）。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pkgvc.core.exceptions import MalformedRequirementsError
from pkgvc.core.headers import SourceHeaders
from pkgvc.core.models import DependencyRequirement
from pkgvc.core.sexp import SexpError, Symbol, read
from pkgvc.core.sources import by_name, list_source_files
from pkgvc.core.version import version_cmp, version_to_list

if TYPE_CHECKING:
    from pkgvc.core.protocols import FileOrdering

logger = logging.getLogger(__name__)

REQUIRES_HEADER = "Package-Requires"


def parse_requires(text: str, *, origin: str = "") -> list[tuple[str, str]]:
    """解析 ((name "version") ...) 形式的依赖列表

    (name) 不带版本时视为 "0"。

    Raises:
        MalformedRequirementsError: 语法或结构不合法
    """
    where = f" ({origin})" if origin else ""
    try:
        form = read(text)
    except SexpError as e:
        raise MalformedRequirementsError(f"Package-Requires 语法错误{where}: {e}") from e

    if form is None:
        return []
    if not isinstance(form, list):
        raise MalformedRequirementsError(f"Package-Requires 必须是列表{where}: {text}")

    result: list[tuple[str, str]] = []
    for item in form:
        result.append(_parse_item(item, text, where))
    return result


def _parse_item(item: Any, text: str, where: str) -> tuple[str, str]:
    if not isinstance(item, list) or not 1 <= len(item) <= 2:
        raise MalformedRequirementsError(
            f"Package-Requires 条目应为 (name \"version\"){where}: {text}"
        )
    name = item[0]
    if not isinstance(name, (Symbol, str)) or not name:
        raise MalformedRequirementsError(f"依赖名无效{where}: {name!r}")
    version = item[1] if len(item) == 2 else "0"
    if not isinstance(version, str) or isinstance(version, Symbol):
        raise MalformedRequirementsError(
            f"依赖 {name} 的版本必须是字符串{where}: {version!r}"
        )
    return str(name), version


def merge_requirements(raw: list[tuple[str, str]]) -> list[DependencyRequirement]:
    """版本转元组并按包名去重

    同名依赖保留最高的最低版本要求，位置取首次出现处。

    Raises:
        MalformedRequirementsError: 版本字符串无法解析
    """
    merged: dict[str, tuple[int, ...]] = {}
    for name, ver in raw:
        try:
            vlist = version_to_list(ver)
        except ValueError as e:
            raise MalformedRequirementsError(f"依赖 {name} 的版本无效: {e}") from e
        current = merged.get(name)
        if current is None or version_cmp(vlist, current) > 0:
            if current is not None:
                logger.info("依赖 %s 出现多次，采用更高版本要求 %s", name, ver)
            merged[name] = vlist
    return [DependencyRequirement(name, vlist) for name, vlist in merged.items()]


class DependencyExtractor:
    """扫描目录收集依赖声明"""

    def __init__(self, *, suffix: str = ".py", order: FileOrdering = by_name) -> None:
        self.suffix = suffix
        self.order = order

    def extract(self, directory: Path) -> list[tuple[str, str]]:
        """返回 (name, version-string) 原始列表，未去重"""
        result: list[tuple[str, str]] = []
        for path in self.order(list_source_files(directory, self.suffix)):
            text = SourceHeaders.from_file(path).get_multiline(REQUIRES_HEADER)
            if not text:
                continue
            reqs = parse_requires(text, origin=path.name)
            logger.debug("%s 声明 %d 个依赖", path.name, len(reqs))
            result.extend(reqs)
        return result
