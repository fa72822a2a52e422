"""领域协议定义

集中定义安装流水线与外部协作者之间的接口契约（Protocol），
编排器依赖抽象而非具体实现，测试时可直接注入替身。

使用 typing.Protocol 而非 ABC，使得现有类无需修改继承关系即可满足协议。
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from pkgvc.core.models import (
    DependencyRequirement,
    IndexEntry,
    PackageDescriptor,
    WorkingCopy,
)

# 源码文件排序策略：输入文件列表，返回扫描顺序
FileOrdering = Callable[[list[Path]], list[Path]]

# 覆盖确认回调：参数为已存在的目标目录，返回 True 表示允许删除
OverwriteConfirm = Callable[[Path], bool]


# =========================================================================
# 版本控制协议
# =========================================================================

class VcProvider(Protocol):
    """版本控制能力

    后端实现（git / hg ...）不在安装器内实现，只通过此接口调用。
    """

    def clone(
        self, backend: str | None, location: str, dest: Path,
    ) -> WorkingCopy | None:
        """克隆仓库到 dest，无可用工作副本时返回 None"""
        ...

    def checkout_revision(self, working_copy: WorkingCopy, rev: str) -> None:
        """检出指定修订，失败抛 CheckoutError"""
        ...

    def working_revision(self, file: Path) -> str | None:
        """查询文件所在工作副本的当前修订"""
        ...


# =========================================================================
# 包索引 / 依赖事务协议
# =========================================================================

class PackageIndex(Protocol):
    """包索引"""

    def lookup(self, name: str) -> IndexEntry | None:
        ...


class DependencyInstaller(Protocol):
    """依赖事务安装器

    负责解析、下载并安装尚未满足的依赖包。
    """

    def compute_and_install(
        self, requirements: list[DependencyRequirement],
    ) -> list[PackageDescriptor]:
        """安装缺失依赖，返回本次新安装的包"""
        ...


# =========================================================================
# 激活协议
# =========================================================================

class PackageRegistry(Protocol):
    """已安装包注册与激活"""

    def load_descriptor(self, pkg_dir: Path) -> PackageDescriptor:
        ...

    def activate(
        self, desc: PackageDescriptor, *, reload: bool = True, deps: bool = True,
    ) -> bool:
        ...
