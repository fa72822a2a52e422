"""版本解析器 — 计算检出源码树的版本号与提交号

两个操作都是启发式扫描，按文件顺序"第一个命中即返回":

  - version(): 文件名短的优先（主文件更可能带权威版本头），
    先读 Package-Version，再读 Version；都没有时返回 "0"
  - commit():  逐文件询问版本控制后端的工作副本修订；都没有时返回 "unknown"

commit() 以逐文件查询代替目录级查询，结果只是近似值。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pkgvc.core.headers import SourceHeaders, strip_rcs_id
from pkgvc.core.sources import by_name, by_name_length, list_source_files
from pkgvc.core.version import is_valid_version

if TYPE_CHECKING:
    from pkgvc.core.protocols import FileOrdering, VcProvider

logger = logging.getLogger(__name__)

FALLBACK_VERSION = "0"
FALLBACK_COMMIT = "unknown"

VERSION_HEADERS = ("Package-Version", "Version")


class VersionResolver:
    """版本号 / 提交号解析"""

    def __init__(
        self,
        vc: VcProvider,
        *,
        suffix: str = ".py",
        version_order: FileOrdering = by_name_length,
        commit_order: FileOrdering = by_name,
    ) -> None:
        self._vc = vc
        self.suffix = suffix
        self.version_order = version_order
        self.commit_order = commit_order

    def version(self, directory: Path) -> str:
        """源码树的版本号，无版本头时返回 "0" """
        for path in self.version_order(list_source_files(directory, self.suffix)):
            headers = SourceHeaders.from_file(path)
            for header in VERSION_HEADERS:
                raw = headers.get(header)
                if not raw:
                    continue
                value = strip_rcs_id(raw)
                if not value:
                    continue
                if not is_valid_version(value):
                    logger.debug("忽略无法解析的版本头 %s: %s=%r", path.name, header, raw)
                    continue
                logger.info("版本号来自 %s (%s): %s", path.name, header, value)
                return value
        return FALLBACK_VERSION

    def commit(self, directory: Path) -> str:
        """源码树的提交号，无法查询时返回 "unknown" """
        for path in self.commit_order(list_source_files(directory, self.suffix)):
            rev = self._vc.working_revision(path)
            if rev and rev.strip():
                return rev.strip()
        return FALLBACK_COMMIT
