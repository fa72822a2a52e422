"""pkgvc - 从版本控制仓库安装包"""

__version__ = "0.1.0"
