# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/cli/app.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import typer

from winboot.bootstrap.bootstrapper import NodeBootstrapper
from winboot.bootstrap.models import (
    BOOTSTRAP_SUCCESS_MESSAGE,
    CNI_SUCCESS_MESSAGE,
    UNINSTALL_SUCCESS_MESSAGE,
)
from winboot.config.loader import load_config
from winboot.errors import BootstrapError
from winboot.logging.log import init_logging
from winboot.observers.logger import LoggerObserver
from winboot.remote.session import DEFAULT_REMOTE_DIR, SSHSession, initialize_remote


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(
    help="Bootstraps a Windows host so it can join a Kubernetes cluster as a worker node",
    no_args_is_help=True,
)


@dataclass
class GlobalOptions:
    config: Optional[Path] = None
    log_dir: Optional[Path] = None
    debug: bool = False


@app.callback()
def _root(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="YAML config file (or set WINBOOT_CONFIG)"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for kubelet and winboot logs"),
    debug: bool = typer.Option(False, "--debug", help="Print debug output"),
):
    ctx.obj = GlobalOptions(config=config, log_dir=log_dir, debug=debug)


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _execute(
    ctx: typer.Context,
    overrides: dict,
    action: Callable[[NodeBootstrapper], object],
    success_message: str,
) -> None:
    """
    Load config, run action against a NodeBootstrapper and print success_message.

    Failures are logged at ERROR, which goes to stderr, and exit 1.
    """
    opts: GlobalOptions = ctx.obj or GlobalOptions()
    overrides = {"log_dir": opts.log_dir, **overrides}

    try:
        cfg = load_config(opts.config, overrides)
    except BootstrapError as exc:
        logger, _, _ = init_logging(verbose=opts.debug)
        logger.error("invalid configuration: %s", exc)
        raise typer.Exit(1)

    logger, run_id, log_path = init_logging(base_dir=cfg.log_dir, verbose=opts.debug)
    logger.debug("config: %s", cfg.model_dump())

    bootstrapper: Optional[NodeBootstrapper] = None
    try:
        bootstrapper = NodeBootstrapper(cfg, observers=[LoggerObserver(logger)], run_id=run_id)
        action(bootstrapper)
    except BootstrapError as exc:
        logger.error("%s", exc)
        raise typer.Exit(1)
    finally:
        if bootstrapper is not None:
            bootstrapper.disconnect()

    typer.echo(success_message)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

def initialize_kubelet(
    ctx: typer.Context,
    ignition_file: Optional[Path] = typer.Option(None, "--ignition-file", help="Worker ignition file"),
    kubelet_path: Optional[Path] = typer.Option(None, "--kubelet-path", help="kubelet.exe to install"),
    install_dir: Optional[Path] = typer.Option(None, "--install-dir", help="Install directory (default C:\\k)"),
    node_ip: Optional[str] = typer.Option(None, "--node-ip", help="IP the kubelet registers the node with"),
    cluster_dns: Optional[str] = typer.Option(None, "--cluster-dns", help="IP of the cluster DNS server"),
    platform_type: Optional[str] = typer.Option(None, "--platform-type", help="Cloud platform, e.g. aws or gcp"),
    verbosity: Optional[str] = typer.Option(None, "--verbosity", help="kubelet log level"),
):
    """Install the kubelet as a Windows service and start it."""
    _execute(
        ctx,
        {
            "ignition_file": ignition_file,
            "kubelet_path": kubelet_path,
            "install_dir": install_dir,
            "node_ip": node_ip,
            "cluster_dns": cluster_dns,
            "platform_type": platform_type,
            "verbosity": verbosity,
        },
        lambda b: b.initialize_kubelet(),
        BOOTSTRAP_SUCCESS_MESSAGE,
    )


def configure_cni(
    ctx: typer.Context,
    cni_dir: Optional[Path] = typer.Option(None, "--cni-dir", help="Directory holding the CNI plugin binaries"),
    cni_config: Optional[Path] = typer.Option(None, "--cni-config", help="CNI config file"),
    install_dir: Optional[Path] = typer.Option(None, "--install-dir", help="Install directory (default C:\\k)"),
):
    """Copy a CNI plugin into place and restart the kubelet with it."""
    _execute(
        ctx,
        {"cni_dir": cni_dir, "cni_config": cni_config, "install_dir": install_dir},
        lambda b: b.configure_cni(),
        CNI_SUCCESS_MESSAGE,
    )


def uninstall_kubelet(ctx: typer.Context):
    """Stop the kubelet service and remove it."""
    _execute(ctx, {}, lambda b: b.uninstall_kubelet(), UNINSTALL_SUCCESS_MESSAGE)


app.command("initialize-kubelet")(initialize_kubelet)
app.command("initialize", hidden=True)(initialize_kubelet)
app.command("configure-cni")(configure_cni)
app.command("configure-plugin", hidden=True)(configure_cni)
app.command("uninstall-kubelet")(uninstall_kubelet)
app.command("uninstall", hidden=True)(uninstall_kubelet)


@app.command("run")
def run(
    ctx: typer.Context,
    ignition_file: Path = typer.Option(..., "--ignition-file", help="Worker ignition file"),
    kubelet_path: Path = typer.Option(..., "--kubelet-path", help="kubelet.exe to install"),
    install_dir: Optional[Path] = typer.Option(None, "--install-dir", help="Install directory (default C:\\k)"),
):
    """Legacy entry point: initialize-kubelet with only the basic options."""
    _execute(
        ctx,
        {"ignition_file": ignition_file, "kubelet_path": kubelet_path, "install_dir": install_dir},
        lambda b: b.initialize_kubelet(),
        BOOTSTRAP_SUCCESS_MESSAGE,
    )


@app.command("initialize-remote")
def initialize_remote_cmd(
    ctx: typer.Context,
    address: str = typer.Option(..., "--address", help="Windows node address"),
    ignition_file: Path = typer.Option(..., "--ignition-file", help="Worker ignition file"),
    kubelet_path: Path = typer.Option(..., "--kubelet-path", help="kubelet.exe to install"),
    username: str = typer.Option("Administrator", "--ssh-username"),
    ssh_key: Optional[Path] = typer.Option(None, "--ssh-key"),
    ssh_password: Optional[str] = typer.Option(None, "--ssh-password"),
    port: int = typer.Option(22, "--port"),
    remote_dir: str = typer.Option(DEFAULT_REMOTE_DIR, "--remote-dir"),
    bootstrapper: str = typer.Option("winboot", "--bootstrapper", help="winboot command on the node"),
    node_ip: Optional[str] = typer.Option(None, "--node-ip"),
    platform_type: Optional[str] = typer.Option(None, "--platform-type"),
):
    """Copy the ignition file and kubelet to a node over SSH and initialize it there."""
    opts: GlobalOptions = ctx.obj or GlobalOptions()
    logger, _, _ = init_logging(base_dir=opts.log_dir, verbose=opts.debug)

    extra_args: List[str] = []
    if node_ip:
        extra_args += ["--node-ip", node_ip]
    if platform_type:
        extra_args += ["--platform-type", platform_type]

    session: Optional[SSHSession] = None
    try:
        session = SSHSession.connect(
            address,
            username,
            port=port,
            key_path=ssh_key,
            password=ssh_password,
        )
        output = initialize_remote(
            session,
            ignition_file,
            kubelet_path,
            remote_dir=remote_dir,
            bootstrapper=bootstrapper,
            extra_args=extra_args,
        )
        logger.debug("remote output:\n%s", output)
    except BootstrapError as exc:
        logger.error("%s", exc)
        raise typer.Exit(1)
    finally:
        if session is not None:
            session.close()

    typer.echo(BOOTSTRAP_SUCCESS_MESSAGE)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
