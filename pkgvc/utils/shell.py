"""子进程执行工具

通过 CommandExecutor 协议抽象子进程执行，版本控制后端经由它调用
git / hg，测试时注入替身即可，无需 patch subprocess。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

from pkgvc.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out


class CommandExecutor(Protocol):
    """命令执行器协议"""

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        timeout: int | None = None,
    ) -> CommandResult:
        ...


class LocalExecutor:
    """本地子进程执行器（默认实现）

    超时不抛异常，而是返回 timed_out=True 的结果，由调用方映射为领域错误。
    """

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        timeout: int | None = None,
    ) -> CommandResult:
        logger.debug("执行: %s (cwd=%s)", " ".join(cmd), cwd)
        try:
            r = subprocess.run(
                cmd, capture_output=True, text=True,
                cwd=cwd, check=False, timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            return CommandResult(
                returncode=-1,
                stdout=_text(e.stdout),
                stderr=f"命令超时 ({timeout}s): {' '.join(cmd)}",
                timed_out=True,
            )
        except FileNotFoundError as e:
            return CommandResult(returncode=127, stdout="", stderr=str(e))
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )


def _text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def run_checked(
    executor: CommandExecutor,
    cmd: list[str],
    *,
    cwd: str = ".",
    timeout: int | None = None,
    label: str = "cmd",
) -> CommandResult:
    """执行命令，失败抛 ExecutionError"""
    logger.info("  %s: %s (cwd=%s)", label, " ".join(cmd), cwd)
    r = executor.execute(cmd, cwd=cwd, timeout=timeout)
    if not r.success:
        raise ExecutionError(
            f"{label}失败 (rc={r.returncode}): {r.stderr.strip()[:500]}"
        )
    return r
