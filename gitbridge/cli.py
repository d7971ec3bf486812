"""gitbridge 命令行接口"""

from __future__ import annotations

import os
import tempfile
from dataclasses import replace

import click

from gitbridge import __version__
from gitbridge.core.config import init_config
from gitbridge.core.context import CallContext
from gitbridge.core.exceptions import GitBridgeError
from gitbridge.core.models import CloneConfig
from gitbridge.services.pipeline import CheckoutPipeline
from gitbridge.utils.logger import setup_logging


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """gitbridge - 使用 GCP 元数据凭据检出 Git 仓库"""
    setup_logging(
        level=os.getenv("GITBRIDGE_LOG_LEVEL", "INFO"),
        json_output=os.getenv("GITBRIDGE_LOG_JSON", "") == "1",
    )


@main.command()
@click.argument("url")
@click.option("--dest", "-d", default="", help="检出目录（默认新建临时目录）")
@click.option("--config", "-c", "config_path", default="configs/gitbridge.yml", help="配置文件路径")
@click.option("--auto-login", is_flag=True, default=False, help="允许访问元数据服务获取凭据")
@click.option("--branch", default="", help="检出分支")
@click.option("--tag", default="", help="检出标签")
def checkout(
    url: str, dest: str, config_path: str,
    auto_login: bool, branch: str, tag: str,
) -> None:
    """浅克隆 URL 并输出提交信息"""
    try:
        cfg = init_config(config_path)
        if auto_login:
            cfg = replace(cfg, auto_login=auto_login)
        if not dest:
            dest = tempfile.mkdtemp(prefix="gitbridge-gitrepo-")
        commit = CheckoutPipeline(cfg).run(
            CallContext.background(), url, dest,
            CloneConfig(shallow_clone=True, branch=branch, tag=tag),
        )
    except GitBridgeError as e:
        raise click.ClickException(f"{e.code}: {e}") from e

    click.echo(f"commit: {commit}")
    click.echo(f"path: {dest}")
    click.echo("checkout complete")


if __name__ == "__main__":
    main()
