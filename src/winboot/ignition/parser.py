# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/ignition/parser.py

from __future__ import annotations

import json
import logging
from typing import Callable, Dict, List, TypeVar

from pydantic import ValidationError

from ..errors import DocumentParseError
from .models import (
    SPEC2_VERSIONS,
    SPEC3_VERSIONS,
    File,
    FileContents,
    IgnitionConfig,
    IgnitionMeta,
    Storage,
    Systemd,
    Unit,
    V2Config,
)

log = logging.getLogger("winboot")

# spec 2 documents are upgraded to the first spec 3 release
UPGRADED_VERSION = "3.0.0"

T = TypeVar("T")


class UnknownVersionError(DocumentParseError):
    """The document's version is not one the spec 3 parser accepts."""


def parse(raw: bytes | str) -> IgnitionConfig:
    """
    Parse an ignition document into the spec 3 shape.

    Spec 3 is tried first; only an unknown-version result falls back to the
    spec 2 parser, whose output is upgraded. Any other failure is fatal.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DocumentParseError(f"boot document is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DocumentParseError("boot document must be a JSON object")

    try:
        return _parse_v3(data)
    except UnknownVersionError as exc:
        log.debug("%s, retrying as ignition spec 2", exc)

    return upgrade_v2(_parse_v2(data))


def _version_of(data: dict) -> str:
    meta = data.get("ignition")
    if isinstance(meta, dict) and isinstance(meta.get("version"), str):
        return meta["version"]
    return ""


def _parse_v3(data: dict) -> IgnitionConfig:
    version = _version_of(data)
    if version not in SPEC3_VERSIONS:
        raise UnknownVersionError(f"unsupported ignition spec 3 version {version!r}")
    try:
        return IgnitionConfig.model_validate(data)
    except ValidationError as exc:
        raise DocumentParseError(f"invalid ignition {version} document: {exc}") from exc


def _parse_v2(data: dict) -> V2Config:
    version = _version_of(data)
    if version not in SPEC2_VERSIONS:
        raise DocumentParseError(f"unsupported ignition version {version!r}")
    try:
        return V2Config.model_validate(data)
    except ValidationError as exc:
        raise DocumentParseError(f"invalid ignition {version} document: {exc}") from exc


def _dedupe(items: List[T], key: Callable[[T], str]) -> List[T]:
    # last entry wins, first position is kept
    merged: Dict[str, T] = {}
    for item in items:
        merged[key(item)] = item
    return list(merged.values())


def upgrade_v2(cfg: V2Config) -> IgnitionConfig:
    """Translate a spec 2 document into the spec 3 shape."""
    files = []
    for f in _dedupe(cfg.storage.files, key=lambda f: f.path):
        if f.filesystem != "root":
            raise DocumentParseError(
                f"cannot upgrade file {f.path}: filesystem {f.filesystem!r} is not 'root'"
            )
        files.append(
            File(
                path=f.path,
                contents=FileContents(source=f.contents.source or None, compression=f.contents.compression),
                mode=f.mode,
            )
        )

    units = [
        Unit(name=u.name, contents=u.contents, enabled=u.enabled)
        for u in _dedupe(cfg.systemd.units, key=lambda u: u.name)
    ]

    return IgnitionConfig(
        ignition=IgnitionMeta(version=UPGRADED_VERSION),
        storage=Storage(files=files),
        systemd=Systemd(units=units),
    )
