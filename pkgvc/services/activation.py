"""已安装包的加载、激活与编译

职责：
- 解析 <name>-pkg.sexp 描述符（DescriptorWriter 的逆过程）
- 扫描包根目录，列出已安装包
- 激活：把包目录加入 sys.path，按依赖顺序先激活依赖
- 字节编译、可选的后台优化编译、重新加载已导入的旧模块
"""

from __future__ import annotations

import compileall
import importlib
import logging
import re
import sys
import threading
from pathlib import Path
from types import ModuleType
from typing import Any

from pkgvc.core.exceptions import InvalidDescriptorError, NoRepositoryError
from pkgvc.core.models import (
    DESCRIPTOR_SUFFIX,
    KIND_ARCHIVE,
    KIND_VC,
    DependencyRequirement,
    PackageDescriptor,
    PackageExtras,
    RepositorySpec,
)
from pkgvc.core.sexp import Pair, SexpError, Symbol, read_all
from pkgvc.core.version import version_satisfies, version_to_list
from pkgvc.services.descriptor_writer import DEFINE_PACKAGE, DEFINE_VC_PACKAGE

logger = logging.getLogger(__name__)

_VC_METADATA_RE = re.compile(r"[/\\]\.(git|hg)([/\\]|$)")

# 子目录安装时描述符所在的最大深度（不进入隐藏目录）
_MAX_DESCRIPTOR_DEPTH = 4


# =========================================================================
# 描述符解析
# =========================================================================

def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _parse_upstream(value: Any) -> RepositorySpec:
    if not isinstance(value, list) or len(value) != 4 or not isinstance(value[1], str):
        raise InvalidDescriptorError(f":upstream 格式错误: {value!r}")
    backend, location, subdir, branch = value
    return RepositorySpec(
        backend=_opt_str(backend),
        location=str(location),
        subdir=_opt_str(subdir),
        branch=_opt_str(branch),
    )


def _parse_requires(value: Any) -> list[DependencyRequirement]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidDescriptorError(f"依赖列表格式错误: {value!r}")
    result: list[DependencyRequirement] = []
    for item in value:
        if not isinstance(item, list) or len(item) != 2:
            raise InvalidDescriptorError(f"依赖条目格式错误: {item!r}")
        name, ver = item
        try:
            result.append(DependencyRequirement(str(name), version_to_list(str(ver))))
        except ValueError as e:
            raise InvalidDescriptorError(f"依赖 {name} 版本无效: {e}") from e
    return result


def parse_descriptor(text: str, *, origin: str = "") -> PackageDescriptor:
    """解析描述符文本

    Raises:
        InvalidDescriptorError: 形状不符合 define-package / define-vc-package
        NoRepositoryError: 版本控制来源的包缺少 :upstream
    """
    where = f" ({origin})" if origin else ""
    try:
        forms = read_all(text)
    except SexpError as e:
        raise InvalidDescriptorError(f"描述符语法错误{where}: {e}") from e

    if len(forms) != 1 or not isinstance(forms[0], list) or len(forms[0]) < 3:
        raise InvalidDescriptorError(f"描述符应为单个 define-package 表达式{where}")

    form = forms[0]
    head, name, version_field = form[0], form[1], form[2]
    summary = form[3] if len(form) > 3 else ""
    requires = form[4] if len(form) > 4 else None
    rest = form[5:]

    if head == DEFINE_VC_PACKAGE:
        kind = KIND_VC
        if not (isinstance(version_field, Pair) and version_field.car == "vc"):
            raise InvalidDescriptorError(f"版本字段应为 (vc . \"版本\"){where}")
        version = str(version_field.cdr)
    elif head == DEFINE_PACKAGE:
        kind = KIND_ARCHIVE
        version = str(version_field)
    else:
        raise InvalidDescriptorError(f"未知的描述符类型 {head!r}{where}")

    if not isinstance(name, str) or not name:
        raise InvalidDescriptorError(f"包名无效{where}: {name!r}")
    if len(rest) % 2:
        raise InvalidDescriptorError(f"扩展字段必须成对出现{where}")

    extras = PackageExtras()
    for key, value in zip(rest[::2], rest[1::2]):
        if not isinstance(key, Symbol) or not key.is_keyword:
            raise InvalidDescriptorError(f"扩展字段名必须是关键字{where}: {key!r}")
        field_name = key[1:].replace("-", "_")
        if field_name == "upstream":
            extras.upstream = _parse_upstream(value)
        elif field_name == "commit":
            extras.commit = str(value or "")
        else:
            extras.other[field_name] = value

    desc = PackageDescriptor(
        name=str(name),
        kind=kind,
        version=version,
        summary=str(summary or ""),
        requires=_parse_requires(requires),
        extras=extras,
    )
    if kind == KIND_VC and extras.upstream is None:
        raise NoRepositoryError(f"版本控制包 '{desc.name}' 的描述符缺少 :upstream{where}")
    return desc


def installed_version(desc: PackageDescriptor) -> tuple[int, ...]:
    try:
        return version_to_list(desc.version or "0")
    except ValueError:
        return (0,)


def _owns(pkg_dir: Path, descriptor: Path) -> bool:
    stem = descriptor.name[: -len(DESCRIPTOR_SUFFIX)]
    return pkg_dir.name.startswith(f"{stem}-")


# =========================================================================
# 激活
# =========================================================================

class PackageActivator:
    """已安装包注册表 — 实现 PackageRegistry 协议"""

    def __init__(
        self,
        package_dir: str | Path,
        *,
        sys_path: list[str] | None = None,
    ) -> None:
        self.package_dir = Path(package_dir)
        self._sys_path = sys.path if sys_path is None else sys_path
        self.activated: dict[str, PackageDescriptor] = {}
        self._activating: set[str] = set()

    # ---- 加载 ----

    @staticmethod
    def find_descriptor_file(pkg_dir: Path) -> Path | None:
        """包目录下的描述符

        子目录安装的包描述符位于更深层，逐层查找（不进入隐藏目录）。
        与目录同名（<name>-pkg.sexp 对应 <name>-<suffix>）的描述符优先，
        否则取最浅一层的第一个。
        """
        fallback: Path | None = None
        level = [pkg_dir]
        for _ in range(_MAX_DESCRIPTOR_DEPTH + 1):
            found = sorted(
                p for d in level for p in d.glob(f"*{DESCRIPTOR_SUFFIX}") if p.is_file()
            )
            for p in found:
                if p.parent == pkg_dir or _owns(pkg_dir, p):
                    return p
            if fallback is None and found:
                fallback = found[0]
            level = sorted(
                c for d in level for c in d.iterdir()
                if c.is_dir() and not c.name.startswith(".")
            )
            if not level:
                break
        return fallback

    def load_descriptor(self, pkg_dir: Path) -> PackageDescriptor:
        """从磁盘读取描述符（强制规范化重新解析）"""
        path = self.find_descriptor_file(pkg_dir)
        if path is None:
            raise InvalidDescriptorError(f"目录中没有描述符文件: {pkg_dir}")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise InvalidDescriptorError(f"读取描述符失败 {path}: {e}") from e
        desc = parse_descriptor(text, origin=str(path))
        desc.install_dir = path.parent
        return desc

    def installed(self) -> list[PackageDescriptor]:
        """扫描包根目录下所有已安装包"""
        result: list[PackageDescriptor] = []
        if not self.package_dir.is_dir():
            return result
        for child in sorted(self.package_dir.iterdir()):
            if not child.is_dir() or child.name.startswith("."):
                continue
            try:
                result.append(self.load_descriptor(child))
            except (InvalidDescriptorError, NoRepositoryError) as e:
                logger.warning("跳过无法识别的包目录 %s: %s", child, e)
        return result

    def find_installed(self, name: str) -> PackageDescriptor | None:
        """已激活的优先，否则取磁盘上版本最高的"""
        if name in self.activated:
            return self.activated[name]
        candidates = [d for d in self.installed() if d.name == name]
        if not candidates:
            return None
        return max(candidates, key=installed_version)

    def is_satisfied(self, req: DependencyRequirement) -> bool:
        desc = self.find_installed(req.name)
        return desc is not None and version_satisfies(installed_version(desc), req.min_version)

    # ---- 激活 ----

    def activate(
        self, desc: PackageDescriptor, *, reload: bool = True, deps: bool = True,
    ) -> bool:
        """激活包，返回是否成功

        reload=True 时已激活的同名包会被替换；deps=True 时先激活依赖。
        """
        if desc.install_dir is None:
            logger.error("包 %s 没有安装目录，无法激活", desc.name)
            return False

        previous = self.activated.get(desc.name)
        if previous is not None and not reload:
            return True
        if desc.name in self._activating:
            return True  # 依赖环

        self._activating.add(desc.name)
        try:
            if deps and not self._activate_deps(desc):
                return False
            if previous is not None and previous.install_dir != desc.install_dir:
                old_entry = str(previous.install_dir)
                if old_entry in self._sys_path:
                    self._sys_path.remove(old_entry)
            entry = str(desc.install_dir)
            if entry not in self._sys_path:
                self._sys_path.insert(0, entry)
            self.activated[desc.name] = desc
        finally:
            self._activating.discard(desc.name)

        importlib.invalidate_caches()
        logger.info("已激活: %s %s -> %s", desc.name, desc.version, desc.install_dir)
        return True

    def _activate_deps(self, desc: PackageDescriptor) -> bool:
        for req in desc.requires:
            dep = self.find_installed(req.name)
            if dep is None:
                logger.error("激活 %s 失败: 缺少依赖 %s", desc.name, req.name)
                return False
            if not version_satisfies(installed_version(dep), req.min_version):
                logger.error(
                    "激活 %s 失败: 依赖 %s 版本 %s 低于要求",
                    desc.name, req.name, dep.version,
                )
                return False
            if not self.activate(dep, reload=False, deps=True):
                return False
        return True


# =========================================================================
# 编译 / 重新加载
# =========================================================================

class PackageCompiler:
    """字节编译与模块重新加载"""

    def __init__(self, modules: dict[str, ModuleType] | None = None) -> None:
        self._modules = sys.modules if modules is None else modules

    def compile(self, pkg_dir: Path, *, optimize: int = -1) -> bool:
        """编译包目录下所有源码，返回是否全部成功"""
        ok = bool(compileall.compile_dir(
            str(pkg_dir), quiet=1, rx=_VC_METADATA_RE, optimize=optimize,
        ))
        if not ok:
            logger.warning("部分源码编译失败: %s", pkg_dir)
        return ok

    def compile_async(self, pkg_dir: Path) -> threading.Thread:
        """后台生成优化字节码，失败只记日志，不影响安装结果"""
        def _worker() -> None:
            try:
                self.compile(pkg_dir, optimize=2)
            except Exception:  # noqa: BLE001
                logger.exception("后台优化编译失败（已忽略）: %s", pkg_dir)

        thread = threading.Thread(
            target=_worker, name=f"pkgvc-compile-{pkg_dir.name}", daemon=True,
        )
        thread.start()
        return thread

    def reload_loaded(self, pkg_dir: Path) -> list[str]:
        """重新加载已从该目录导入的模块，返回成功重新加载的模块名列表

        包已激活，单个模块重新加载失败（语法错误、导入错误等）只记日志，
        不影响安装结果，也不中断其余模块。
        """
        root = pkg_dir.resolve()
        reloaded: list[str] = []
        for name, module in sorted(self._modules.items()):
            file = getattr(module, "__file__", None)
            if not file:
                continue
            try:
                Path(file).resolve().relative_to(root)
            except ValueError:
                continue
            try:
                importlib.reload(module)
            except Exception:  # noqa: BLE001
                logger.warning("重新加载模块失败（保留旧定义）: %s", name, exc_info=True)
                continue
            reloaded.append(name)
        if reloaded:
            logger.info("已重新加载 %d 个模块: %s", len(reloaded), ", ".join(reloaded))
        return reloaded
