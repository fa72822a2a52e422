"""版本控制调度器 — 按后端标识分派到具体后端

实现 VcProvider 协议，安装器只与它交互。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pkgvc.core.exceptions import CheckoutError, CloneError
from pkgvc.core.models import WorkingCopy

if TYPE_CHECKING:
    from pkgvc.services.vc.backends import GitBackend, HgBackend
    from pkgvc.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class VcDispatcher:
    """版本控制能力入口"""

    def __init__(
        self,
        backends: dict[str, GitBackend | HgBackend] | None = None,
        default_backend: str = "git",
        executor: CommandExecutor | None = None,
        timeout: int = 600,
    ) -> None:
        if backends is None:
            from pkgvc.services.vc.backends import GitBackend, HgBackend
            backends = {
                "git": GitBackend(executor, timeout=timeout),
                "hg": HgBackend(executor, timeout=timeout),
            }
        self._backends = {k.lower(): v for k, v in backends.items()}
        self.default_backend = default_backend.lower()

    @property
    def backend_names(self) -> list[str]:
        return sorted(self._backends)

    def _backend(self, token: str | None) -> tuple[str, GitBackend | HgBackend]:
        name = (token or self.default_backend).lower()
        backend = self._backends.get(name)
        if backend is None:
            raise CloneError(
                f"不支持的版本控制后端: {name}，可用: {self.backend_names}"
            )
        return name, backend

    def clone(
        self, backend: str | None, location: str, dest: Path,
    ) -> WorkingCopy | None:
        name, impl = self._backend(backend)
        logger.info("clone [%s] %s -> %s", name, location, dest)
        path = impl.clone(location, dest)
        if path is None:
            return None
        return WorkingCopy(path=path, backend=name)

    def checkout_revision(self, working_copy: WorkingCopy, rev: str) -> None:
        impl = self._backends.get(working_copy.backend)
        if impl is None:
            raise CheckoutError(f"不支持的版本控制后端: {working_copy.backend}")
        logger.info("检出修订: %s @ %s", working_copy.path, rev)
        impl.checkout_revision(working_copy.path, rev)

    def working_revision(self, file: Path) -> str | None:
        for impl in self._backends.values():
            if impl.find_root(file) is not None:
                return impl.working_revision(file)
        return None
