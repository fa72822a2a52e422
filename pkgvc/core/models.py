"""核心数据模型

所有核心数据类集中定义，各服务统一从此处导入。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pkgvc.core.exceptions import NoRepositoryError

KIND_VC = "vc"
KIND_ARCHIVE = "archive"

DESCRIPTOR_SUFFIX = "-pkg.sexp"


@dataclass(frozen=True)
class RepositorySpec:
    """仓库规格 — 创建后不可变

    backend 为 None 表示未指定，由调度器使用默认后端。
    """

    backend: str | None
    location: str
    subdir: str | None = None
    branch: str | None = None


@dataclass(frozen=True)
class DependencyRequirement:
    """依赖需求 — 相等性和哈希只看包名"""

    name: str
    min_version: tuple[int, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class WorkingCopy:
    """clone 得到的工作副本"""

    path: Path
    backend: str


@dataclass
class PackageExtras:
    """描述符扩展信息

    固定字段之外的元信息（url、keywords、maintainer 等）放在 other 中。
    """

    upstream: RepositorySpec | None = None
    rev: str | None = None        # 显式修订，优先于 upstream.branch
    vc_spec: str | None = None    # 索引中的原始规格字符串，仅解析阶段使用
    commit: str = ""
    other: dict[str, Any] = field(default_factory=dict)


@dataclass
class PackageDescriptor:
    """单个包实例的身份与元信息"""

    name: str
    kind: str = KIND_VC  # "vc", "archive"
    version: str = ""
    summary: str = ""
    requires: list[DependencyRequirement] = field(default_factory=list)
    extras: PackageExtras = field(default_factory=PackageExtras)
    install_dir: Path | None = None

    @property
    def upstream(self) -> RepositorySpec:
        """upstream 信息，缺失即为错误状态"""
        if self.extras.upstream is None:
            raise NoRepositoryError(f"包 '{self.name}' 没有 upstream 仓库信息")
        return self.extras.upstream

    @property
    def full_name(self) -> str:
        return f"{self.name}-{self.version}" if self.version else self.name

    def descriptor_file(self, directory: Path | None = None) -> Path:
        base = directory if directory is not None else self.install_dir
        if base is None:
            raise ValueError(f"包 '{self.name}' 尚未设置安装目录")
        return Path(base) / f"{self.name}{DESCRIPTOR_SUFFIX}"


@dataclass
class IndexEntry:
    """包索引中的一条记录"""

    name: str
    version: str = ""
    summary: str = ""
    requires: list[DependencyRequirement] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)  # vc / archive / sha256 ...
