"""CLI — 包索引管理命令"""

from __future__ import annotations

import click

from pkgvc.cli import _parse_kv_pairs, _svc, handle_errors


def register(group: click.Group) -> None:
    group.add_command(index_group)


@click.group(name="index")
def index_group() -> None:
    """包索引管理"""


@index_group.command(name="list")
@handle_errors
def index_list() -> None:
    """列出索引中的包"""
    items = _svc().index.list_all()
    if not items:
        click.echo("索引为空。")
        return
    for e in items:
        source = e.get("vc") or e.get("archive") or "-"
        click.echo(
            f"  {e['name']:20s} {str(e.get('version', '-')):12s} "
            f"{source}  {e.get('summary', '')}"
        )


@index_group.command(name="add")
@click.argument("name")
@click.option("--vc", default="", help="仓库规格: '<backend> <location> [<subdir> [<branch>]]'")
@click.option("--version", "version", default="", help="版本")
@click.option("--summary", default="", help="摘要")
@click.option("--archive", default="", help="归档路径或 http(s) URL（供依赖安装使用）")
@click.option("--sha256", default="", help="归档的 sha256 校验和")
@click.option("--require", multiple=True, help="依赖，格式: name=version（可多次指定）")
@handle_errors
def index_add(
    name: str, vc: str, version: str, summary: str,
    archive: str, sha256: str, require: tuple[str, ...],
) -> None:
    """新增或覆盖索引条目"""
    if vc:
        from pkgvc.services.spec_resolver import parse_vc_spec
        parse_vc_spec(vc)
    _svc().index.add(
        name, version=version, summary=summary,
        requires=_parse_kv_pairs(require) or None,
        vc=vc, archive=archive, sha256=sha256,
    )
    click.echo(f"索引条目已写入: {name}")


@index_group.command(name="remove")
@click.argument("name")
@handle_errors
def index_remove(name: str) -> None:
    """移除索引条目"""
    if _svc().index.remove(name):
        click.echo(f"索引条目已移除: {name}")
    else:
        click.echo(f"索引条目不存在: {name}")
