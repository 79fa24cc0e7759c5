"""CLI：包选择解析"""

from __future__ import annotations

import json

import click

from wsdeps.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(resolve)


@click.command()
@click.argument("selectors", nargs=-1, required=True)
@click.option("--mainline", default=None, help="只应用到该声明源为止的 overrides")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
def resolve(selectors: tuple[str, ...], mainline: str | None, as_json: bool) -> None:
    """解析选择器及其依赖：源码包、osdep、被排除的包"""
    result = _svc().resolution_queue(mainline=mainline).run(selectors)
    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return

    click.echo("源码包:")
    for name, spec in sorted(result.source_packages.items()):
        click.echo(f"  {name:30s} {spec}")
    click.echo("osdeps:")
    for name in sorted(result.osdeps):
        click.echo(f"  {name}")
    if result.excluded:
        click.echo("被排除:")
        for name, reason in sorted(result.excluded.items()):
            click.echo(f"  {name}: {reason}")
    if result.ignored:
        click.echo(f"已忽略: {', '.join(sorted(result.ignored))}")
