"""wsdeps 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
CLI 只负责打印，解析逻辑全部在服务容器里。
"""

import os
from typing import Any

import click

from wsdeps import __version__
from wsdeps.core.exceptions import WsDepsError
from wsdeps.services.container import get_container, reset_container
from wsdeps.utils.logger import setup_logging


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


class _Group(click.Group):
    """把业务异常转换为带错误码的 ClickException"""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except WsDepsError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e


@click.group(cls=_Group)
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default="", help="配置文件路径")
def main(config_path: str) -> None:
    """wsdeps - 工作区依赖解析引擎"""
    setup_logging(
        level=os.getenv("WSDEPS_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("WSDEPS_LOG_JSON", "") == "1",
    )
    if config_path:
        from wsdeps.core.config import init_config
        init_config(config_path)
        reset_container()


# 注册各领域子命令
from wsdeps.cli.cmd_osdeps import register as _reg_osdeps  # noqa: E402
from wsdeps.cli.cmd_resolve import register as _reg_resolve  # noqa: E402
from wsdeps.cli.cmd_vcs import register as _reg_vcs  # noqa: E402

_reg_osdeps(main)
_reg_vcs(main)
_reg_resolve(main)
