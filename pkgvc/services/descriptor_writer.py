"""描述符写入器 — 生成 <name>-pkg.sexp

版本控制来源的包:

    ;; Generated package description from foo.py
    (define-vc-package "foo" (vc . "1.2") "Summary"
      (("bar" "1.0"))
      :upstream (git "https://example.com/foo.git" nil nil)
      :commit "0123abcd")

归档来源的包使用 define-package，版本为普通字符串。
字段顺序固定，由 PackageActivator.load_descriptor 按同一形状解析。
写入使用临时文件 + rename，失败时目标文件保持原样。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pkgvc.core.exceptions import DescriptorWriteError
from pkgvc.core.models import KIND_VC, PackageDescriptor
from pkgvc.core.sexp import Pair, Symbol, dumps
from pkgvc.core.sources import main_file
from pkgvc.core.version import version_join
from pkgvc.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

DEFINE_VC_PACKAGE = "define-vc-package"
DEFINE_PACKAGE = "define-package"


def keyword(key: str) -> Symbol:
    return Symbol(":" + key.replace("_", "-"))


def _extra_fields(desc: PackageDescriptor) -> list[tuple[Symbol, Any]]:
    extras = desc.extras
    fields: list[tuple[Symbol, Any]] = []
    if extras.upstream is not None:
        up = extras.upstream
        backend = Symbol(up.backend) if up.backend else None
        fields.append((keyword("upstream"), [backend, up.location, up.subdir, up.branch]))
    if extras.commit:
        fields.append((keyword("commit"), extras.commit))
    for key, value in extras.other.items():
        if value is None or value == "" or value == []:
            continue
        fields.append((keyword(key), value))
    return fields


def render_descriptor(desc: PackageDescriptor, *, source_name: str = "") -> str:
    """把描述符渲染为文本"""
    source = source_name or f"{desc.name}.py"
    version = desc.version or "0"
    requires = [[r.name, version_join(r.min_version) if r.min_version else "0"]
                for r in desc.requires]

    if desc.kind == KIND_VC:
        head = f"({DEFINE_VC_PACKAGE} {dumps(desc.name)} {dumps(Pair(Symbol('vc'), version))}"
    else:
        head = f"({DEFINE_PACKAGE} {dumps(desc.name)} {dumps(version)}"

    lines = [
        f";; Generated package description from {source}",
        f"{head} {dumps(desc.summary)}",
        f"  {dumps(requires) if requires else 'nil'}",
    ]
    for key, value in _extra_fields(desc):
        lines.append(f"  {key} {dumps(value)}")
    lines[-1] += ")"
    return "\n".join(lines) + "\n"


class DescriptorWriter:
    """描述符写入"""

    def __init__(self, *, suffix: str = ".py") -> None:
        self.suffix = suffix

    def descriptor_path(self, desc: PackageDescriptor, directory: Path) -> Path:
        return desc.descriptor_file(directory)

    def write(self, desc: PackageDescriptor, path: Path) -> Path:
        """原子写入描述符文件

        Raises:
            DescriptorWriteError: 序列化或文件系统失败
        """
        primary = main_file(path.parent, desc.name, self.suffix)
        try:
            content = render_descriptor(
                desc, source_name=primary.name if primary else "",
            )
            atomic_write(path, content)
        except ValueError as e:
            raise DescriptorWriteError(f"描述符序列化失败 {desc.name}: {e}") from e
        except OSError as e:
            raise DescriptorWriteError(f"描述符写入失败 {path}: {e}") from e
        logger.info("描述符已生成: %s", path)
        return path
