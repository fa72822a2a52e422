"""源码文件枚举与扫描顺序策略

版本号、提交号、依赖提取都是"第一个命中即返回"的启发式扫描，
扫描顺序通过可替换的排序策略（FileOrdering）控制。
"""

from __future__ import annotations

from pathlib import Path

from pkgvc.core.models import DESCRIPTOR_SUFFIX


def list_source_files(directory: Path, suffix: str = ".py") -> list[Path]:
    """列出目录下（不递归）的源码文件，按文件名排序

    排除隐藏文件和包描述符。
    """
    if not directory.is_dir():
        return []
    return sorted(
        (
            p for p in directory.iterdir()
            if p.is_file()
            and p.name.endswith(suffix)
            and not p.name.startswith(".")
            and not p.name.endswith(DESCRIPTOR_SUFFIX)
        ),
        key=lambda p: p.name,
    )


def by_name(files: list[Path]) -> list[Path]:
    return sorted(files, key=lambda p: p.name)


def by_name_length(files: list[Path]) -> list[Path]:
    """文件名短的优先，"主" 文件通常名字最短；等长按文件名"""
    return sorted(files, key=lambda p: (len(p.name), p.name))


def main_file(directory: Path, name: str, suffix: str = ".py") -> Path | None:
    """包的主源码文件：优先 <name><suffix>，否则取文件名最短者"""
    candidate = directory / f"{name}{suffix}"
    if candidate.is_file():
        return candidate
    files = by_name_length(list_source_files(directory, suffix))
    return files[0] if files else None
