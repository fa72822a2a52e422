"""CLI — 安装 / 解析 / 列出已安装包"""

from __future__ import annotations

from pathlib import Path

import click

from pkgvc.cli import _svc, handle_errors
from pkgvc.core.models import PackageDescriptor, RepositorySpec
from pkgvc.core.version import version_join


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(resolve)
    group.add_command(list_installed)


def _format_upstream(spec: RepositorySpec) -> str:
    parts = [spec.backend or "(默认)", spec.location]
    if spec.subdir:
        parts.append(f"subdir={spec.subdir}")
    if spec.branch:
        parts.append(f"branch={spec.branch}")
    return " ".join(parts)


def _format_requires(desc: PackageDescriptor) -> str:
    return ", ".join(f"{r.name}>={version_join(r.min_version)}" for r in desc.requires) or "-"


@click.command()
@click.argument("name_or_url")
@click.option("--name", default=None, help="覆盖包名（默认取 URL 末段或索引名）")
@click.option("--rev", default=None, help="检出指定修订（优先于规格中的分支）")
@click.option("--yes", "-y", is_flag=True, help="目标已存在时不询问直接覆盖")
@handle_errors
def install(name_or_url: str, name: str | None, rev: str | None, yes: bool) -> None:
    """从版本控制仓库安装包"""

    def _confirm(target: Path) -> bool:
        if yes:
            return True
        return click.confirm(f"{target} 已存在，删除后重新安装?", default=False)

    desc = _svc().installer.install_from(
        name_or_url, name=name, rev=rev, confirm_overwrite=_confirm,
    )
    click.echo(f"已安装: {desc.name} {desc.version} -> {desc.install_dir}")
    if desc.extras.commit:
        click.echo(f"  commit:   {desc.extras.commit}")
    click.echo(f"  requires: {_format_requires(desc)}")


@click.command()
@click.argument("name_or_url")
@click.option("--name", default=None, help="覆盖包名")
@click.option("--rev", default=None, help="指定修订")
@handle_errors
def resolve(name_or_url: str, name: str | None, rev: str | None) -> None:
    """只解析仓库规格，不安装"""
    desc = _svc().spec_resolver.resolve(name_or_url, name=name, rev=rev)
    click.echo(f"{desc.name}: {_format_upstream(desc.upstream)}")
    if desc.extras.rev:
        click.echo(f"  rev:     {desc.extras.rev}")
    if desc.summary:
        click.echo(f"  summary: {desc.summary}")


@click.command(name="list")
@handle_errors
def list_installed() -> None:
    """列出已安装的包"""
    packages = _svc().activator.installed()
    if not packages:
        click.echo("没有已安装的包。")
        return
    for p in packages:
        click.echo(
            f"  {p.name:20s} {p.version or '-':12s} [{p.kind:7s}] "
            f"{p.install_dir}  {p.summary}"
        )
