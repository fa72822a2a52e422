"""pkgvc 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import functools
import os
from typing import Any, Callable

import click

from pkgvc import __version__
from pkgvc.core.exceptions import PkgVcError
from pkgvc.services.container import ServiceContainer, get_container
from pkgvc.utils.logger import setup_logging


def _svc() -> ServiceContainer:
    """获取全局服务容器的快捷方式"""
    return get_container()


def _parse_kv_pairs(pairs: tuple[str, ...]) -> dict[str, str]:
    """解析 key=value 参数对"""
    result: dict[str, str] = {}
    for p in pairs:
        if "=" in p:
            k, v = p.split("=", 1)
            result[k.strip()] = v.strip()
    return result


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """把 PkgVcError 转换为带错误码的 ClickException"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except PkgVcError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default=None, help="配置文件路径")
def main(config_path: str | None) -> None:
    """pkgvc - 从版本控制仓库安装包"""
    setup_logging(
        level=os.getenv("PKGVC_LOG_LEVEL", "INFO"),
        json_output=os.getenv("PKGVC_LOG_JSON", "") == "1",
    )
    if config_path:
        from pkgvc.core.config import init_config
        from pkgvc.services.container import reset_container

        try:
            init_config(config_path)
        except PkgVcError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e
        reset_container()


# 注册各领域子命令
from pkgvc.cli.cmd_install import register as _reg_install  # noqa: E402
from pkgvc.cli.cmd_index import register as _reg_index  # noqa: E402

_reg_install(main)
_reg_index(main)
