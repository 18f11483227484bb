# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/ignition/models.py

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Only the parts of the ignition schema the bootstrapper reads are modelled;
# everything else (passwd, networkd, ...) is ignored.

SPEC3_VERSIONS = frozenset({"3.0.0", "3.1.0", "3.2.0", "3.3.0", "3.4.0"})
SPEC2_VERSIONS = frozenset({"2.0.0", "2.1.0", "2.2.0", "2.3.0"})


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore")


class IgnitionMeta(_Model):
    version: str


# ---------------------------------------------------------------------
# Spec 3 (current shape, used by everything downstream of the parser)
# ---------------------------------------------------------------------
class FileContents(_Model):
    source: Optional[str] = None
    compression: Optional[str] = None


class File(_Model):
    path: str
    contents: FileContents = Field(default_factory=FileContents)
    mode: Optional[int] = None
    overwrite: Optional[bool] = None


class Unit(_Model):
    name: str
    contents: Optional[str] = None
    enabled: Optional[bool] = None


class Storage(_Model):
    files: List[File] = Field(default_factory=list)


class Systemd(_Model):
    units: List[Unit] = Field(default_factory=list)


class IgnitionConfig(_Model):
    ignition: IgnitionMeta
    storage: Storage = Field(default_factory=Storage)
    systemd: Systemd = Field(default_factory=Systemd)

    @model_validator(mode="after")
    def _no_duplicates(self) -> "IgnitionConfig":
        _reject_duplicates("file path", [f.path for f in self.storage.files])
        _reject_duplicates("unit", [u.name for u in self.systemd.units])
        return self

    def unit(self, name: str) -> Optional[Unit]:
        for unit in self.systemd.units:
            if unit.name == name:
                return unit
        return None


def _reject_duplicates(kind: str, names: List[str]) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise ValueError(f"duplicate {kind} {name!r}")
        seen.add(name)


# ---------------------------------------------------------------------
# Spec 2 (legacy, upgraded to spec 3 after parsing)
# ---------------------------------------------------------------------
class V2FileContents(_Model):
    source: str = ""
    compression: Optional[str] = None


class V2File(_Model):
    filesystem: str = "root"
    path: str
    contents: V2FileContents = Field(default_factory=V2FileContents)
    mode: Optional[int] = None


class V2Unit(_Model):
    name: str
    contents: Optional[str] = None
    enabled: Optional[bool] = None


class V2Storage(_Model):
    files: List[V2File] = Field(default_factory=list)


class V2Systemd(_Model):
    units: List[V2Unit] = Field(default_factory=list)


class V2Config(_Model):
    ignition: IgnitionMeta
    storage: V2Storage = Field(default_factory=V2Storage)
    systemd: V2Systemd = Field(default_factory=V2Systemd)
