"""CLI：VCS 定义查看"""

from __future__ import annotations

import click

from wsdeps.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(vcs)


@click.group()
def vcs() -> None:
    """版本控制定义"""


@vcs.command(name="show")
@click.argument("packages", nargs=-1, required=True)
@click.option("--mainline", default=None, help="只应用到该声明源为止的 overrides")
def show(packages: tuple[str, ...], mainline: str | None) -> None:
    """显示源码包最终的 VCS 定义及各层来源"""
    resolver = _svc().vcs
    for name in packages:
        spec = resolver.resolve_for(name, mainline=mainline)
        click.echo(f"{name}: {spec}")
        click.echo(f"  repository_id: {spec.repository_id}")
        for layer in spec.history:
            fields = ", ".join(f"{k}={v}" for k, v in sorted(layer.fragment.items()))
            click.echo(f"  <- {layer.source or '-'}: {fields}")
