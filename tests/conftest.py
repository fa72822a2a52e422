"""测试共享 fixture — 版本控制替身 + 隔离配置

FakeVc 按 location 查表生成工作副本，不调用 git / hg:

  repos = {"https://example.com/foo.git": {"foo.py": "# Version: 1.2\\n"}}
  vc = FakeVc(repos)
  vc.clone(None, "https://example.com/foo.git", dest)
    -> dest/.git/ + dest/foo.py
"""

from __future__ import annotations

from pathlib import Path

import pytest

import pkgvc.core.config as cfgmod
from pkgvc.core.exceptions import CheckoutError, CloneError
from pkgvc.core.models import WorkingCopy
from pkgvc.services.container import reset_container


class FakeVc:
    """VcProvider 替身，记录所有调用"""

    def __init__(
        self,
        repos: dict[str, dict[str, str]] | None = None,
        *,
        default_backend: str = "git",
        commit: str | None = "0123abcd",
    ) -> None:
        self.repos = repos or {}
        self.default_backend = default_backend
        self.commit = commit
        self.clone_calls: list[tuple[str | None, str, Path]] = []
        self.checkout_calls: list[tuple[Path, str]] = []
        self.fail_checkout: str | None = None
        self.empty_clone = False

    def clone(self, backend: str | None, location: str, dest: Path) -> WorkingCopy | None:
        self.clone_calls.append((backend, location, dest))
        if location not in self.repos:
            raise CloneError(f"fatal: repository '{location}' not found")
        if self.empty_clone:
            return None
        name = backend or self.default_backend
        dest.mkdir(parents=True)
        (dest / f".{name}").mkdir()
        write_tree(dest, self.repos[location])
        return WorkingCopy(path=dest, backend=name)

    def checkout_revision(self, working_copy: WorkingCopy, rev: str) -> None:
        self.checkout_calls.append((working_copy.path, rev))
        if self.fail_checkout is not None:
            raise CheckoutError(self.fail_checkout)

    def working_revision(self, file: Path) -> str | None:
        return self.commit


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """按 {相对路径: 内容} 写入文件"""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture()
def fake_vc() -> FakeVc:
    return FakeVc()


@pytest.fixture()
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> cfgmod.Config:
    """独立的包目录与索引文件，测试间互不影响"""
    cfg = cfgmod.Config(
        package_dir=str(tmp_path / "packages"),
        index_file=str(tmp_path / "index.yml"),
    )
    monkeypatch.setattr(cfgmod, "_current", cfg)
    reset_container()
    yield cfg
    reset_container()


@pytest.fixture()
def make_vc():
    """FakeVc 工厂: make_vc({location: {文件: 内容}})"""
    return FakeVc


@pytest.fixture()
def write_files():
    """write_tree 的 fixture 形式"""
    return write_tree
