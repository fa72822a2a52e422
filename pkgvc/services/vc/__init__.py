"""版本控制能力

- backends.py: Git / Mercurial 命令行后端
- dispatcher.py: 按后端标识分派（VcProvider 协议实现）
"""

from pkgvc.services.vc.backends import GitBackend, HgBackend
from pkgvc.services.vc.dispatcher import VcDispatcher

__all__ = [
    "GitBackend",
    "HgBackend",
    "VcDispatcher",
]
