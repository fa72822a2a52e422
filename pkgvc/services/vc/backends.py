"""版本控制后端 — Git / Mercurial

职责：
- clone 仓库
- 检出指定修订
- 查询工作副本当前修订

后端本身只是对 git / hg 可执行文件的薄封装，所有调用都带超时。
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from pkgvc.core.exceptions import (
    CheckoutError,
    CloneError,
    ExecutionError,
    InvalidSpecError,
    PkgVcError,
)
from pkgvc.utils.shell import CommandExecutor, LocalExecutor, run_checked

logger = logging.getLogger(__name__)

SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@\-]+$")


def check_ref(rev: str) -> None:
    """修订名只允许安全字符，且不能以 - 开头（避免被当作选项）"""
    if not SAFE_REF_RE.match(rev) or rev.startswith("-"):
        raise InvalidSpecError(f"修订包含非法字符: {rev}")


class _CommandBackend:
    """基于命令行工具的后端公共逻辑"""

    name = ""
    marker = ""  # 工作副本根目录下的元数据目录名

    def __init__(
        self, executor: CommandExecutor | None = None, timeout: int = 600,
    ) -> None:
        self._executor = executor or LocalExecutor()
        self.timeout = timeout

    def is_working_copy(self, path: Path) -> bool:
        return (path / self.marker).exists()

    def find_root(self, path: Path) -> Path | None:
        """自下而上查找包含 marker 的工作副本根目录"""
        current = path if path.is_dir() else path.parent
        for candidate in (current, *current.parents):
            if self.is_working_copy(candidate):
                return candidate
        return None

    def _run(
        self, cmd: list[str], *, cwd: Path, label: str, error: type[PkgVcError],
    ) -> None:
        """执行命令，失败时转换为对应的领域错误（保留原始信息）"""
        try:
            run_checked(
                self._executor, cmd, cwd=str(cwd), timeout=self.timeout, label=label,
            )
        except ExecutionError as e:
            raise error(str(e)) from e

    def _query(self, cmd: list[str], *, cwd: Path) -> str | None:
        r = self._executor.execute(cmd, cwd=str(cwd), timeout=self.timeout)
        if not r.success:
            return None
        return r.stdout.strip() or None


class GitBackend(_CommandBackend):
    """Git 后端"""

    name = "git"
    marker = ".git"

    def clone(self, location: str, dest: Path) -> Path | None:
        self._run(
            ["git", "clone", "--", location, str(dest)],
            cwd=dest.parent, label="git clone", error=CloneError,
        )
        return dest if self.is_working_copy(dest) else None

    def checkout_revision(self, path: Path, rev: str) -> None:
        check_ref(rev)
        self._run(
            ["git", "checkout", rev],
            cwd=path, label=f"git checkout {rev}", error=CheckoutError,
        )

    def working_revision(self, file: Path) -> str | None:
        return self._query(["git", "rev-parse", "HEAD"], cwd=file.parent)


class HgBackend(_CommandBackend):
    """Mercurial 后端"""

    name = "hg"
    marker = ".hg"

    def clone(self, location: str, dest: Path) -> Path | None:
        self._run(
            ["hg", "clone", "--", location, str(dest)],
            cwd=dest.parent, label="hg clone", error=CloneError,
        )
        return dest if self.is_working_copy(dest) else None

    def checkout_revision(self, path: Path, rev: str) -> None:
        check_ref(rev)
        self._run(
            ["hg", "update", "--rev", rev],
            cwd=path, label=f"hg update {rev}", error=CheckoutError,
        )

    def working_revision(self, file: Path) -> str | None:
        return self._query(
            ["hg", "log", "--rev", ".", "--template", "{node}"], cwd=file.parent,
        )
