"""包索引 — YAML 文件中的可安装包清单

    packages:
      foo:
        version: "1.0"
        summary: Frobnicate widgets
        requires: {bar: "0.3"}
        vc: git https://example.com/foo.git src main
        archive: https://example.com/foo-1.0.tar.gz
        sha256: ...

vc 字段供 RepositorySpecResolver 使用，archive 字段供依赖事务安装使用。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pkgvc.core.exceptions import InvalidSpecError, MalformedRequirementsError
from pkgvc.core.models import DependencyRequirement, IndexEntry
from pkgvc.core.registry import YamlRegistry
from pkgvc.core.version import version_to_list

logger = logging.getLogger(__name__)

_ENTRY_FIELDS = ("version", "summary", "requires")


class ArchiveIndex(YamlRegistry):
    """包索引"""

    section_key = "packages"

    def __init__(self, index_file: str | Path = "") -> None:
        if not index_file:
            from pkgvc.core.config import get_config
            index_file = get_config().index_file
        super().__init__(index_file)

    def lookup(self, name: str) -> IndexEntry | None:
        raw = self._get_raw(name)
        if raw is None:
            return None
        return IndexEntry(
            name=name,
            version=str(raw.get("version", "") or ""),
            summary=str(raw.get("summary", "") or ""),
            requires=self._parse_requires(name, raw.get("requires")),
            metadata={k: v for k, v in raw.items() if k not in _ENTRY_FIELDS},
        )

    @staticmethod
    def _parse_requires(name: str, raw: Any) -> list[DependencyRequirement]:
        if not raw:
            return []
        if not isinstance(raw, dict):
            raise MalformedRequirementsError(f"索引条目 {name} 的 requires 必须是映射: {raw!r}")
        result: list[DependencyRequirement] = []
        for dep, ver in raw.items():
            try:
                result.append(DependencyRequirement(str(dep), version_to_list(str(ver or "0"))))
            except ValueError as e:
                raise MalformedRequirementsError(
                    f"索引条目 {name} 的依赖 {dep} 版本无效: {e}"
                ) from e
        return result

    def add(
        self,
        name: str,
        *,
        version: str = "",
        summary: str = "",
        requires: dict[str, str] | None = None,
        **metadata: Any,
    ) -> dict[str, Any]:
        """新增或覆盖索引条目"""
        self._parse_requires(name, requires)
        entry: dict[str, Any] = {}
        if version:
            try:
                version_to_list(version)
            except ValueError as e:
                raise InvalidSpecError(f"索引条目 {name} 版本无效: {e}") from e
            entry["version"] = version
        if summary:
            entry["summary"] = summary
        if requires:
            entry["requires"] = dict(requires)
        entry.update({k: v for k, v in metadata.items() if v})
        self._put(name, entry)
        logger.info("索引条目已写入: %s", name)
        return entry

    def list_all(self) -> list[dict[str, Any]]:
        return self._list_raw()

    def remove(self, name: str) -> bool:
        if not self._remove(name):
            return False
        logger.info("索引条目已移除: %s", name)
        return True
