"""统一异常体系

所有业务异常继承 WsDepsError，每个异常带机器可读的 code。
CLI 层据此输出友好提示；未继承 WsDepsError 的异常视为程序缺陷，直接向上抛出。
"""

from __future__ import annotations


class WsDepsError(Exception):
    """解析引擎基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(WsDepsError):
    """配置缺失、格式错误或前后矛盾"""

    code = "CONFIG_ERROR"

    def __init__(self, message: str, file: str = "") -> None:
        if file:
            message = f"{file}: {message}"
        super().__init__(message)
        self.file = file


class InvalidRecursiveReference(WsDepsError):
    """osdep 关键字引用了一个没有定义的依赖名"""

    code = "INVALID_RECURSIVE_REFERENCE"


class InternalError(WsDepsError):
    """调用方违反约定（如 strict 包管理器收到不完整列表），不可恢复"""

    code = "INTERNAL_ERROR"


class PackageNotFound(WsDepsError):
    """名字既不是 osdep，也不是源码包或元包"""

    code = "PACKAGE_NOT_FOUND"


class PackageUnavailable(PackageNotFound):
    """osdep 有定义，但在当前系统上不可用且没有源码回退"""

    code = "PACKAGE_UNAVAILABLE"


class MissingOSDep(WsDepsError):
    """安装解析时某个 osdep 无法解析"""

    code = "MISSING_OSDEP"


class ExcludedSelectionError(WsDepsError):
    """用户显式选择的包全部被排除

    携带选择器、被排除的包名及各自原因，可直接展示给用户。
    """

    code = "EXCLUDED_SELECTION"

    def __init__(
        self,
        message: str,
        selector: str,
        exclusions: list[tuple[str, str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.selector = selector
        self.exclusions = exclusions or []

    @property
    def excluded_names(self) -> list[str]:
        return [name for name, _ in self.exclusions]
