# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/bootstrap/kubelet_args.py

from __future__ import annotations

import ipaddress
import logging
from typing import Callable, Iterable, List, Optional, Tuple

from ..cloud.metadata import get_hostname_override
from ..errors import InputValidationError
from .models import (
    CERT_DIRECTORY,
    CONTAINER_RUNTIME,
    CONTAINER_RUNTIME_ENDPOINT,
    DEFAULT_VERBOSITY,
    KUBELET_EXE,
    WINDOWS_NODE_LABEL,
    WINDOWS_TAINTS,
    ExtractedValues,
    KubeletOverrides,
    KubeletPaths,
)

log = logging.getLogger("winboot")

Entry = Tuple[str, Optional[str]]


def _quote(text: str) -> str:
    if any(c.isspace() for c in text):
        return f'"{text}"'
    return text


def _split_command_line(command_line: str) -> List[str]:
    """Split on whitespace outside double quotes, dropping the quotes."""
    tokens: List[str] = []
    current: List[str] = []
    in_token = False
    quoted = False
    for c in command_line:
        if c == '"':
            quoted = not quoted
            in_token = True
        elif c.isspace() and not quoted:
            if in_token:
                tokens.append("".join(current))
                current = []
                in_token = False
        else:
            current.append(c)
            in_token = True
    if in_token:
        tokens.append("".join(current))
    return tokens


class ArgumentSet:
    """
    Ordered kubelet arguments plus the executable they are passed to.

    Entries keep the key exactly as written ("--v", "--windows-service");
    a value of None marks a standalone flag, "" is a real empty value
    ("--resolv-conf="). Keys may repeat (two --node-labels are legal).
    """

    def __init__(self, executable: str = "", entries: Iterable[Entry] = ()):
        self.executable = executable
        self._entries: List[Entry] = list(entries)

    # ------------------------------------------------------------------
    def add(self, key: str, value: Optional[str] = None) -> "ArgumentSet":
        self._entries.append((key, value))
        return self

    def set(self, key: str, value: str) -> "ArgumentSet":
        """Replace the value of key in place, dropping later repeats; append if absent."""
        replaced = False
        entries: List[Entry] = []
        for k, v in self._entries:
            if k != key or v is None:
                entries.append((k, v))
            elif not replaced:
                entries.append((k, value))
                replaced = True
        if not replaced:
            entries.append((key, value))
        self._entries = entries
        return self

    def get(self, key: str) -> Optional[str]:
        for k, v in self._entries:
            if k == key and v is not None:
                return v
        return None

    def get_all(self, key: str) -> List[str]:
        return [v for k, v in self._entries if k == key and v is not None]

    def has_flag(self, key: str) -> bool:
        return any(k == key and v is None for k, v in self._entries)

    @property
    def flags(self) -> List[str]:
        return [k for k, v in self._entries if v is None]

    @property
    def pairs(self) -> List[Entry]:
        return [(k, v) for k, v in self._entries if v is not None]

    # ------------------------------------------------------------------
    def to_entries(self) -> List[Entry]:
        return list(self._entries)

    def to_list(self) -> List[str]:
        return [k if v is None else f"{k}={v}" for k, v in self._entries]

    def to_command_line(self) -> str:
        tokens = [_quote(self.executable)] if self.executable else []
        for k, v in self._entries:
            tokens.append(k if v is None else f"{k}={_quote(v)}")
        return " ".join(tokens)

    @classmethod
    def from_command_line(cls, command_line: str, expected_executable: str = KUBELET_EXE) -> "ArgumentSet":
        """
        Decompose a service command line.

        The result holds the executable, then every standalone flag, then every
        key=value pair, each group in the order it appeared. Double quotes
        group whitespace and are dropped from the result.
        """
        tokens = _split_command_line(command_line)
        exe = tokens[0] if tokens else ""

        if expected_executable.lower() not in exe.lower():
            raise InputValidationError(
                f"command line {command_line!r} does not start with {expected_executable}"
            )

        flags: List[Entry] = []
        pairs: List[Entry] = []
        for token in tokens[1:]:
            if "=" in token:
                # values may contain '=' themselves (taints, labels)
                key, value = token.split("=", 1)
                pairs.append((key, value))
            else:
                flags.append((token, None))
        return cls(exe, flags + pairs)

    def __contains__(self, key: str) -> bool:
        return any(k == key for k, _ in self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArgumentSet):
            return NotImplemented
        return self.executable == other.executable and self._entries == other._entries

    def __repr__(self) -> str:
        return f"ArgumentSet({self.to_command_line()!r})"


def validate_node_ip(node_ip: Optional[str]) -> None:
    if not node_ip:
        return
    try:
        ipaddress.ip_address(node_ip)
    except ValueError as exc:
        raise InputValidationError(f"invalid node IP {node_ip!r}: {exc}") from exc


def build_kubelet_args(
    paths: KubeletPaths,
    extracted: ExtractedValues,
    overrides: KubeletOverrides = KubeletOverrides(),
    hostname_lookup: Callable[[str], str] = get_hostname_override,
) -> ArgumentSet:
    """
    Build the kubelet arguments for a first install.

    Output order is fixed so that identical inputs always produce an
    identical service definition.
    """
    validate_node_ip(overrides.node_ip)

    args = ArgumentSet(str(paths.kubelet_exe))
    args.add("--config", str(paths.kubelet_conf))
    args.add("--bootstrap-kubeconfig", str(paths.bootstrap_kubeconfig))
    args.add("--kubeconfig", str(paths.kubeconfig))
    args.add("--cert-dir", CERT_DIRECTORY)
    args.add("--windows-service")
    args.add("--logtostderr", "false")
    args.add("--log-file", str(paths.log_file))
    # Linux pods must not get scheduled onto Windows nodes
    args.add("--register-with-taints", WINDOWS_TAINTS)
    args.add("--node-labels", WINDOWS_NODE_LABEL)
    args.add("--container-runtime", CONTAINER_RUNTIME)
    args.add("--container-runtime-endpoint", CONTAINER_RUNTIME_ENDPOINT)
    # the host resolv.conf must not leak into pods
    args.add("--resolv-conf", "")

    if extracted.cloud_provider:
        args.add("--cloud-provider", extracted.cloud_provider)

    args.add("--v", overrides.verbosity or extracted.verbosity or DEFAULT_VERBOSITY)

    if extracted.cloud_config:
        args.add("--cloud-config", extracted.cloud_config)

    extra_labels = [l for l in extracted.node_labels if l != WINDOWS_NODE_LABEL]
    if extra_labels:
        args.add("--node-labels", ",".join(extra_labels))

    if overrides.node_ip:
        args.add("--node-ip", overrides.node_ip)

    if overrides.platform_type:
        hostname = hostname_lookup(overrides.platform_type)
        if hostname:
            args.add("--hostname-override", hostname)
        else:
            log.debug("no hostname override for platform %s", overrides.platform_type)

    return args
