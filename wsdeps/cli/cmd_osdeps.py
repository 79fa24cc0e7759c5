"""CLI：osdeps 命令"""

from __future__ import annotations

import json

import click

from wsdeps.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(osdeps)


@click.group()
def osdeps() -> None:
    """OS 依赖解析"""


@osdeps.command(name="os")
def show_os() -> None:
    """显示目标操作系统与宿主包管理器"""
    resolver = _svc().osdeps
    profile = resolver.operating_system
    click.echo(f"操作系统: {profile if profile else '未知'}")
    click.echo(f"包管理器: {resolver.os_package_manager}")
    if not resolver.supported_operating_system:
        click.echo("当前操作系统不受支持，OS 包需要手动安装")


@osdeps.command(name="resolve")
@click.argument("names", nargs=-1, required=True)
@click.option("--no-recursive", is_flag=True, help="不展开 osdep 引用")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
def resolve_osdeps(names: tuple[str, ...], no_recursive: bool, as_json: bool) -> None:
    """解析 osdep 为各包管理器下的包"""
    resolver = _svc().osdeps
    output = {}
    for name in names:
        entries = resolver.resolve(name, resolve_recursive=not no_recursive)
        output[name] = None if entries is None else [
            {"manager": e.manager, "status": e.status.value, "packages": sorted(e.packages)}
            for e in entries
        ]
    if as_json:
        click.echo(json.dumps(output, ensure_ascii=False, indent=2))
        return
    for name, entries in output.items():
        if entries is None:
            click.echo(f"{name}: 没有定义")
            continue
        if not entries:
            click.echo(f"{name}: 当前操作系统没有对应条目")
            continue
        click.echo(f"{name}:")
        for e in entries:
            click.echo(f"  {e['manager']:10s} [{e['status']}] {' '.join(e['packages'])}")


@osdeps.command(name="status")
@click.argument("names", nargs=-1, required=True)
def status(names: tuple[str, ...]) -> None:
    """显示 osdep 在当前系统上的可用性"""
    resolver = _svc().osdeps
    for name in names:
        click.echo(f"  {name:30s} {resolver.availability(name).value}")


@osdeps.command(name="plan")
@click.argument("names", nargs=-1, required=True)
@click.option("--all-known", multiple=True, help="strict 包管理器所需的全部 osdep（可多次指定）")
@click.option("--mode", default=None, help="覆盖 osdeps 模式，如 os,pip")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
def plan(names: tuple[str, ...], all_known: tuple[str, ...], mode: str | None, as_json: bool) -> None:
    """生成安装计划（不执行）"""
    from wsdeps.core.managers.installer import parse_osdeps_mode
    installer = _svc().installer
    if mode is not None:
        installer.osdeps_mode = parse_osdeps_mode(mode)
    steps = installer.plan(names, all_known=list(all_known) if all_known else None)
    if as_json:
        click.echo(json.dumps([s.to_dict() for s in steps], ensure_ascii=False, indent=2))
        return
    if not steps:
        click.echo("无需安装任何包。")
        return
    for step in steps:
        if step.manual:
            click.echo(f"[{step.manager}] 请手动安装: {' '.join(step.packages)}")
        else:
            click.echo(f"[{step.manager}] {' '.join(step.command)}")
