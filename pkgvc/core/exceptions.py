"""统一异常体系

所有业务异常继承 PkgVcError，按安装流水线的失败阶段划分。
CLI 层据 code 输出友好提示；每个异常都会中止剩余的安装步骤。
"""

from __future__ import annotations


class PkgVcError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(PkgVcError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ExecutionError(PkgVcError):
    """外部命令执行失败"""

    code = "EXECUTION_ERROR"


# ---- 输入解析阶段 ----

class UnknownPackageError(PkgVcError):
    """既不是 URL，也不在包索引中"""

    code = "UNKNOWN_PACKAGE"


class NoVcHeaderError(PkgVcError):
    """索引条目没有 vc 规格"""

    code = "NO_VC_HEADER"


class InvalidSpecError(PkgVcError):
    """仓库规格字符串不符合语法"""

    code = "INVALID_SPEC"


# ---- 安装阶段 ----

class NoRepositoryError(PkgVcError):
    """描述符缺少 upstream 信息"""

    code = "NO_REPOSITORY"


class AlreadyInstalledError(PkgVcError):
    """目标目录已存在且未确认覆盖"""

    code = "ALREADY_INSTALLED"


class CloneError(PkgVcError):
    """版本控制后端 clone 失败"""

    code = "CLONE_FAILED"


class CheckoutError(PkgVcError):
    """版本控制后端检出指定修订失败"""

    code = "CHECKOUT_FAILED"


class MalformedRequirementsError(PkgVcError):
    """Package-Requires 头存在但无法解析"""

    code = "MALFORMED_REQUIREMENTS"


class DependencyTransactionError(PkgVcError):
    """依赖事务安装失败（已检出的源码树保留在磁盘上）"""

    code = "DEPENDENCY_TRANSACTION_FAILED"


class DescriptorWriteError(PkgVcError):
    """描述符文件写入失败"""

    code = "DESCRIPTOR_WRITE_FAILED"


class InvalidDescriptorError(PkgVcError):
    """描述符文件无法解析"""

    code = "INVALID_DESCRIPTOR"


class InstallError(PkgVcError):
    """clone 之后的安装步骤出现非预期错误（文件读写、编译等）"""

    code = "INSTALL_FAILED"
