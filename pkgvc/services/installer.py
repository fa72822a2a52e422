"""包安装编排器 — 从版本控制仓库安装包

流水线（严格顺序，任一步失败即中止）:

  1. 目标目录 <package_dir>/<name>-<suffix>；已存在时需确认覆盖，确认后整体删除
  2. 读取 upstream
  3. 创建父目录
  4. clone
  5. 检出修订（显式 rev 优先于 branch）
  6. 子目录重定向
  7. 提取依赖 -> 转版本元组 -> 按包名去重
  8. 依赖事务安装
  9. 生成描述符
 10. 从磁盘重新加载描述符并激活；成功后编译、可选后台优化编译、重新加载旧模块

同名包的安装通过进程内按名加锁串行化。
步骤 4 之后任何失败默认保留检出目录供手工排查（keep_failed_checkout），
非 PkgVcError 的异常统一包装为 InstallError。
"""

from __future__ import annotations

import dataclasses
import logging
import shutil
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from pkgvc.core.exceptions import (
    AlreadyInstalledError,
    CheckoutError,
    CloneError,
    DependencyTransactionError,
    InstallError,
    PkgVcError,
)
from pkgvc.core.headers import SourceHeaders
from pkgvc.core.models import DependencyRequirement, PackageDescriptor
from pkgvc.core.sources import main_file
from pkgvc.services.dependency_extractor import DependencyExtractor, merge_requirements
from pkgvc.services.descriptor_writer import DescriptorWriter
from pkgvc.services.spec_resolver import check_package_name
from pkgvc.services.version_resolver import VersionResolver

if TYPE_CHECKING:
    from pkgvc.core.models import WorkingCopy
    from pkgvc.core.protocols import (
        DependencyInstaller,
        OverwriteConfirm,
        PackageRegistry,
        VcProvider,
    )
    from pkgvc.services.activation import PackageCompiler
    from pkgvc.services.spec_resolver import RepositorySpecResolver

logger = logging.getLogger(__name__)

# 从主文件头补充到描述符 extras 的字段
_METADATA_HEADERS = {
    "url": ("URL", "Homepage"),
    "keywords": ("Keywords",),
    "maintainer": ("Maintainer", "Author"),
}


class PackageInstaller:
    """版本控制来源包的安装编排"""

    def __init__(
        self,
        package_dir: str | Path,
        *,
        vc: VcProvider,
        transaction: DependencyInstaller,
        registry: PackageRegistry,
        compiler: PackageCompiler | None = None,
        spec_resolver: RepositorySpecResolver | None = None,
        extractor: DependencyExtractor | None = None,
        version_resolver: VersionResolver | None = None,
        writer: DescriptorWriter | None = None,
        dir_suffix: str = "vc",
        source_suffix: str = ".py",
        native_compile: bool = False,
        keep_failed_checkout: bool = True,
    ) -> None:
        self.package_dir = Path(package_dir)
        self._vc = vc
        self._transaction = transaction
        self._registry = registry
        self._compiler = compiler
        self._spec_resolver = spec_resolver
        self._extractor = extractor or DependencyExtractor(suffix=source_suffix)
        self._versions = version_resolver or VersionResolver(vc, suffix=source_suffix)
        self._writer = writer or DescriptorWriter(suffix=source_suffix)
        self.dir_suffix = dir_suffix
        self.source_suffix = source_suffix
        self.native_compile = native_compile
        self.keep_failed_checkout = keep_failed_checkout

        # 包名 -> [锁, 使用者计数]；计数归零时移除
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    # ---- 入口 ----

    def install_from(
        self,
        name_or_url: str,
        *,
        name: str | None = None,
        rev: str | None = None,
        confirm_overwrite: OverwriteConfirm | None = None,
    ) -> PackageDescriptor:
        """解析包名 / URL 后安装"""
        if self._spec_resolver is None:
            raise RuntimeError("PackageInstaller 未配置 spec_resolver")
        desc = self._spec_resolver.resolve(name_or_url, name=name, rev=rev)
        return self.install(desc, confirm_overwrite=confirm_overwrite)

    def target_dir(self, name: str) -> Path:
        check_package_name(name)
        return self.package_dir / f"{name}-{self.dir_suffix}"

    def install(
        self,
        desc: PackageDescriptor,
        *,
        confirm_overwrite: OverwriteConfirm | None = None,
    ) -> PackageDescriptor:
        """安装已解析的描述符，返回激活后的描述符"""
        check_package_name(desc.name)
        lock = self._acquire_lock(desc.name)
        try:
            with lock:
                return self._install_locked(desc, confirm_overwrite)
        finally:
            self._release_lock(desc.name)

    def _acquire_lock(self, name: str) -> threading.Lock:
        with self._locks_guard:
            slot = self._locks.setdefault(name, [threading.Lock(), 0])
            slot[1] += 1
            return slot[0]

    def _release_lock(self, name: str) -> None:
        with self._locks_guard:
            slot = self._locks[name]
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[name]

    # ---- 流水线 ----

    def _install_locked(
        self,
        desc: PackageDescriptor,
        confirm_overwrite: OverwriteConfirm | None,
    ) -> PackageDescriptor:
        target = self.target_dir(desc.name)

        # 1. 覆盖检查
        if target.exists():
            if confirm_overwrite is None or not confirm_overwrite(target):
                raise AlreadyInstalledError(f"包 '{desc.name}' 已安装: {target}")
            logger.warning("覆盖安装，删除已有目录: %s", target)
            shutil.rmtree(target)

        # 2. upstream
        upstream = desc.upstream

        # 3. 父目录
        target.parent.mkdir(parents=True, exist_ok=True)

        # 4. clone
        working_copy = self._vc.clone(upstream.backend, upstream.location, target)
        if working_copy is None:
            raise CloneError(f"clone 未得到可用的工作副本: {upstream.location}")
        desc.install_dir = target

        try:
            return self._after_clone(desc, working_copy)
        except Exception as e:
            if not self.keep_failed_checkout and target.exists():
                logger.warning("安装失败，清理检出目录: %s", target)
                shutil.rmtree(target, ignore_errors=True)
            else:
                logger.warning("安装失败，检出目录保留在: %s", target)
            if isinstance(e, PkgVcError):
                raise
            raise InstallError(f"安装 {desc.name} 失败: {e}") from e

    def _after_clone(
        self, desc: PackageDescriptor, working_copy: WorkingCopy,
    ) -> PackageDescriptor:
        upstream = desc.upstream

        # 5. 检出修订
        revision = desc.extras.rev or upstream.branch
        if revision:
            self._vc.checkout_revision(working_copy, revision)

        # 6. 子目录
        pkg_dir = working_copy.path
        if upstream.subdir:
            pkg_dir = working_copy.path / upstream.subdir
            if not pkg_dir.is_dir():
                raise CheckoutError(f"仓库中不存在子目录: {upstream.subdir}")
        desc.install_dir = pkg_dir

        # 7. 依赖
        requirements = merge_requirements(self._extractor.extract(pkg_dir))
        desc.requires = requirements

        # 8. 依赖事务
        self._install_dependencies(desc.name, requirements)

        # 9. 描述符
        desc.version = self._versions.version(pkg_dir)
        desc.extras.commit = self._versions.commit(pkg_dir)
        desc.extras.upstream = dataclasses.replace(upstream, backend=working_copy.backend)
        self._fill_metadata(desc, pkg_dir)
        self._writer.write(desc, self._writer.descriptor_path(desc, pkg_dir))

        # 10. 激活
        return self._activate(pkg_dir)

    def _install_dependencies(
        self, name: str, requirements: list[DependencyRequirement],
    ) -> None:
        if not requirements:
            return
        logger.info("%s 依赖: %s", name, ", ".join(r.name for r in requirements))
        try:
            self._transaction.compute_and_install(requirements)
        except DependencyTransactionError:
            raise
        except (PkgVcError, OSError) as e:
            raise DependencyTransactionError(f"{name} 的依赖安装失败: {e}") from e

    def _fill_metadata(self, desc: PackageDescriptor, pkg_dir: Path) -> None:
        """从主源码文件头补充摘要和 url / keywords / maintainer"""
        primary = main_file(pkg_dir, desc.name, self.source_suffix)
        if primary is None:
            return
        headers = SourceHeaders.from_file(primary)
        if not desc.summary:
            desc.summary = headers.summary() or ""
        for key, names in _METADATA_HEADERS.items():
            if key in desc.extras.other:
                continue
            for header in names:
                value = headers.get(header)
                if value:
                    if key == "keywords":
                        desc.extras.other[key] = value.replace(",", " ").split()
                    else:
                        desc.extras.other[key] = value
                    break

    def _activate(self, pkg_dir: Path) -> PackageDescriptor:
        loaded = self._registry.load_descriptor(pkg_dir)
        if not self._registry.activate(loaded, reload=True, deps=True):
            logger.warning("包 %s 已安装但激活失败", loaded.name)
            return loaded

        if self._compiler is not None:
            self._compiler.compile(pkg_dir)
            if self.native_compile:
                self._compiler.compile_async(pkg_dir)
            self._compiler.reload_loaded(pkg_dir)

        logger.info("安装完成: %s %s -> %s", loaded.name, loaded.version, pkg_dir)
        return loaded
