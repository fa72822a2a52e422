"""包索引与依赖事务

- index.py: YAML 包索引（PackageIndex 协议实现）
- transaction.py: 依赖事务安装器（DependencyInstaller 协议实现）
"""

from pkgvc.services.archive.index import ArchiveIndex
from pkgvc.services.archive.transaction import TransactionInstaller

__all__ = [
    "ArchiveIndex",
    "TransactionInstaller",
]
