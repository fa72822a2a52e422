"""依赖事务安装器（默认实现）

职责:
- 计算事务: 从需求出发，沿索引声明的依赖深度优先展开，
  跳过已满足的包，依赖排在被依赖者之前
- 拉取归档（本地路径或 http/https URL，可选 sha256 校验）
- 解包到 <package_dir>/<name>-<version>/，必要时补写描述符
- 逐个激活

任何失败都以 DependencyTransactionError 抛出，不重试。
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import tarfile
import tempfile
import urllib.error
import urllib.request
from pathlib import Path
from typing import TYPE_CHECKING

from pkgvc.core.exceptions import (
    DependencyTransactionError,
    InvalidSpecError,
    PkgVcError,
)
from pkgvc.core.models import (
    KIND_ARCHIVE,
    DependencyRequirement,
    IndexEntry,
    PackageDescriptor,
)
from pkgvc.core.version import version_join, version_satisfies, version_to_list
from pkgvc.utils.net import validate_url_scheme

if TYPE_CHECKING:
    from pkgvc.core.protocols import PackageIndex
    from pkgvc.services.activation import PackageActivator
    from pkgvc.services.descriptor_writer import DescriptorWriter

logger = logging.getLogger(__name__)


class TransactionInstaller:
    """按索引安装缺失依赖 — 实现 DependencyInstaller 协议"""

    def __init__(
        self,
        index: PackageIndex,
        activator: PackageActivator,
        writer: DescriptorWriter,
        package_dir: str | Path,
    ) -> None:
        self._index = index
        self._activator = activator
        self._writer = writer
        self.package_dir = Path(package_dir)

    # ---- 事务计算 ----

    def compute(self, requirements: list[DependencyRequirement]) -> list[IndexEntry]:
        """返回需要安装的索引条目，依赖在前"""
        plan: list[IndexEntry] = []
        planned: set[str] = set()

        def visit(req: DependencyRequirement, chain: tuple[str, ...]) -> None:
            if req.name in planned or req.name in chain:
                return
            if self._activator.is_satisfied(req):
                return
            entry = self._index.lookup(req.name)
            if entry is None:
                raise DependencyTransactionError(
                    f"依赖 {req.name} 未安装且不在索引中"
                    + (f"（来自 {' -> '.join(chain)}）" if chain else "")
                )
            try:
                available = version_to_list(entry.version or "0")
            except ValueError as e:
                raise DependencyTransactionError(
                    f"索引中 {entry.name} 的版本无效: {entry.version}"
                ) from e
            if not version_satisfies(available, req.min_version):
                raise DependencyTransactionError(
                    f"依赖 {req.name} 需要 >= {version_join(req.min_version)}，"
                    f"索引中只有 {entry.version or '0'}"
                )
            for sub in entry.requires:
                visit(sub, (*chain, req.name))
            planned.add(req.name)
            plan.append(entry)

        for req in requirements:
            visit(req, ())
        return plan

    def compute_and_install(
        self, requirements: list[DependencyRequirement],
    ) -> list[PackageDescriptor]:
        try:
            plan = self.compute(requirements)
        except DependencyTransactionError:
            raise
        except PkgVcError as e:
            raise DependencyTransactionError(f"依赖事务计算失败: {e}") from e

        if not plan:
            logger.info("依赖均已满足 (%d 项)", len(requirements))
            return []

        logger.info("依赖事务: %s", ", ".join(f"{e.name}-{e.version}" for e in plan))
        return [self.install_entry(entry) for entry in plan]

    # ---- 单包安装 ----

    def install_entry(self, entry: IndexEntry) -> PackageDescriptor:
        archive = entry.metadata.get("archive")
        if not archive:
            raise DependencyTransactionError(f"索引条目 {entry.name} 没有可安装的归档 (archive)")

        dest = self.package_dir / f"{entry.name}-{entry.version or '0'}"
        staging = Path(tempfile.mkdtemp(prefix="pkgvc-txn-"))
        try:
            src = self._fetch(str(archive), staging)
            sha = entry.metadata.get("sha256")
            if sha:
                self._verify_checksum(src, str(sha))
            if dest.exists():
                shutil.rmtree(dest)
            dest.mkdir(parents=True)
            self._unpack(src, staging / "unpacked", dest)
        except (OSError, tarfile.TarError, urllib.error.URLError, InvalidSpecError) as e:
            raise DependencyTransactionError(f"安装依赖 {entry.name} 失败: {e}") from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        if self._activator.find_descriptor_file(dest) is None:
            desc = PackageDescriptor(
                name=entry.name,
                kind=KIND_ARCHIVE,
                version=entry.version or "0",
                summary=entry.summary,
                requires=list(entry.requires),
            )
            self._writer.write(desc, desc.descriptor_file(dest))

        desc = self._activator.load_descriptor(dest)
        if not self._activator.activate(desc, reload=True, deps=True):
            raise DependencyTransactionError(f"依赖 {entry.name} 激活失败")
        logger.info("依赖已安装: %s-%s -> %s", entry.name, entry.version, dest)
        return desc

    @staticmethod
    def _fetch(archive: str, staging: Path) -> Path:
        """本地路径直接使用，http/https 下载到暂存目录"""
        if "://" not in archive:
            src = Path(archive).expanduser()
            if not src.exists():
                raise DependencyTransactionError(f"归档不存在: {archive}")
            return src
        validate_url_scheme(archive, context="dependency archive")
        filename = archive.rstrip("/").split("/")[-1] or "download"
        dest = staging / filename
        logger.info("  下载: %s", archive)
        urllib.request.urlretrieve(archive, str(dest))  # nosec B310
        return dest

    @staticmethod
    def _unpack(src: Path, scratch: Path, dest: Path) -> None:
        """tar 包解压（单一顶层目录会被展平），其他文件原样复制"""
        if src.is_dir():
            shutil.copytree(src, dest, dirs_exist_ok=True)
            return
        if not tarfile.is_tarfile(str(src)):
            shutil.copy2(src, dest / src.name)
            return
        scratch.mkdir(parents=True, exist_ok=True)
        with tarfile.open(str(src)) as tf:
            tf.extractall(path=str(scratch), filter="data")  # noqa: S202
        children = list(scratch.iterdir())
        root = children[0] if len(children) == 1 and children[0].is_dir() else scratch
        for child in root.iterdir():
            shutil.move(str(child), str(dest / child.name))

    @staticmethod
    def _verify_checksum(path: Path, expected: str) -> None:
        sha256 = hashlib.sha256()
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha256.update(chunk)
        actual = sha256.hexdigest()
        if actual != expected.lower():
            raise DependencyTransactionError(
                f"校验和不匹配 {path.name}: 期望 {expected}, 实际 {actual}",
            )
        logger.info("  校验和通过: %s", path.name)
