"""服务容器 — 统一依赖注入

安装流水线的各协作者通过容器懒加载，同一容器内的实例共享状态
（激活注册表、按名安装锁等）。CLI 通过 get_container() 获取服务。

依赖关系图（→ 表示依赖）:
  installer     → vc, transaction, activator, compiler, spec_resolver, writer
  transaction   → index, activator, writer
  spec_resolver → index

用法:
    container = ServiceContainer()
    container.installer.install_from("foo")

    # 显式注入配置
    cfg = Config.from_file("my_config.yml")
    container = ServiceContainer(config=cfg)
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgvc.core.config import Config
    from pkgvc.services.activation import PackageActivator, PackageCompiler
    from pkgvc.services.archive import ArchiveIndex, TransactionInstaller
    from pkgvc.services.descriptor_writer import DescriptorWriter
    from pkgvc.services.installer import PackageInstaller
    from pkgvc.services.spec_resolver import RepositorySpecResolver
    from pkgvc.services.vc import VcDispatcher
    from pkgvc.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from pkgvc.core.config import get_config
            config = get_config()
        self._config = config
        self._executor = executor

    @property
    def config(self) -> Config:
        return self._config

    @property
    def index(self) -> ArchiveIndex:
        if "index" not in self._instances:
            from pkgvc.services.archive import ArchiveIndex
            self._instances["index"] = ArchiveIndex(self._config.index_file)
        return self._instances["index"]  # type: ignore[return-value]

    @property
    def vc(self) -> VcDispatcher:
        if "vc" not in self._instances:
            from pkgvc.services.vc import VcDispatcher
            self._instances["vc"] = VcDispatcher(
                default_backend=self._config.default_vc_backend,
                executor=self._executor,
                timeout=self._config.vc_timeout,
            )
        return self._instances["vc"]  # type: ignore[return-value]

    @property
    def activator(self) -> PackageActivator:
        if "activator" not in self._instances:
            from pkgvc.services.activation import PackageActivator
            self._instances["activator"] = PackageActivator(self._config.package_dir)
        return self._instances["activator"]  # type: ignore[return-value]

    @property
    def compiler(self) -> PackageCompiler:
        if "compiler" not in self._instances:
            from pkgvc.services.activation import PackageCompiler
            self._instances["compiler"] = PackageCompiler()
        return self._instances["compiler"]  # type: ignore[return-value]

    @property
    def writer(self) -> DescriptorWriter:
        if "writer" not in self._instances:
            from pkgvc.services.descriptor_writer import DescriptorWriter
            self._instances["writer"] = DescriptorWriter(suffix=self._config.source_suffix)
        return self._instances["writer"]  # type: ignore[return-value]

    @property
    def transaction(self) -> TransactionInstaller:
        if "transaction" not in self._instances:
            from pkgvc.services.archive import TransactionInstaller
            self._instances["transaction"] = TransactionInstaller(
                self.index, self.activator, self.writer, self._config.package_dir,
            )
        return self._instances["transaction"]  # type: ignore[return-value]

    @property
    def spec_resolver(self) -> RepositorySpecResolver:
        if "spec_resolver" not in self._instances:
            from pkgvc.services.spec_resolver import RepositorySpecResolver
            self._instances["spec_resolver"] = RepositorySpecResolver(self.index)
        return self._instances["spec_resolver"]  # type: ignore[return-value]

    @property
    def installer(self) -> PackageInstaller:
        if "installer" not in self._instances:
            from pkgvc.services.installer import PackageInstaller
            cfg = self._config
            self._instances["installer"] = PackageInstaller(
                cfg.package_dir,
                vc=self.vc,
                transaction=self.transaction,
                registry=self.activator,
                compiler=self.compiler,
                spec_resolver=self.spec_resolver,
                writer=self.writer,
                dir_suffix=cfg.vc_dir_suffix,
                source_suffix=cfg.source_suffix,
                native_compile=cfg.native_compile,
                keep_failed_checkout=cfg.keep_failed_checkout,
            )
        return self._instances["installer"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
