"""集中配置管理

提供统一的配置入口，支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pkgvc.core.exceptions import ConfigError
from pkgvc.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """全局配置"""

    # 目录
    package_dir: str = "data/packages"   # 用户包根目录
    index_file: str = "data/index.yml"   # 包索引

    # 版本控制
    default_vc_backend: str = "git"      # 规格未指定后端时使用
    vc_dir_suffix: str = "vc"            # 检出目录为 <name>-<suffix>
    vc_timeout: int = 600                # clone/checkout 超时（秒）

    # 源码
    source_suffix: str = ".py"

    # 安装行为
    native_compile: bool = False         # 激活后后台生成优化字节码
    keep_failed_checkout: bool = True    # 后续步骤失败时保留检出目录

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效: {path} - {e}") from e
        if not isinstance(cfg.vc_timeout, int) or cfg.vc_timeout <= 0:
            raise ConfigError(f"vc_timeout 必须为正整数: {cfg.vc_timeout!r}")
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        from dataclasses import asdict
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/default.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
