# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/bootstrap/translator.py

from __future__ import annotations

import gzip
import logging
import posixpath
import re
from typing import Callable

from ..cloud.metadata import get_hostname_override
from ..errors import DocumentParseError, FileOperationError
from ..ignition.dataurl import decode_data_url
from ..ignition.models import IgnitionConfig
from ..ignition.parser import parse
from .kubelet_args import ArgumentSet, build_kubelet_args, validate_node_ip
from .models import (
    KUBELET_UNIT_NAME,
    WORKER_LABEL,
    ExtractedValues,
    FileTable,
    FileTranslation,
    KubeletOverrides,
    KubeletPaths,
)

log = logging.getLogger("winboot")

# Compiled once; the kubelet unit is searched with each independently.
CLOUD_PROVIDER_REGEX = re.compile(r"--cloud-provider=(\w*)")
# Only set on Azure, where the cloud config is a file that has to be shipped too.
CLOUD_CONFIG_REGEX = re.compile(r"--cloud-config=([^\s\"'\\]*)")
VERBOSITY_REGEX = re.compile(r"--v=(\w*)")
# Labels are comma separated, e.g. node-role.kubernetes.io/worker,node.openshift.io/os_id=${ID}
NODE_LABELS_REGEX = re.compile(r"--node-labels=([^\s\"'\\]*)")

CLOUD_CONFIG_EXTENSION = "conf"


class IgnitionTranslator:
    """
    Turns a worker ignition document into kubelet arguments and the files the
    kubelet needs in the install directory.
    """

    def __init__(
        self,
        paths: KubeletPaths,
        overrides: KubeletOverrides = KubeletOverrides(),
        hostname_lookup: Callable[[str], str] = get_hostname_override,
    ):
        # fail on a bad node IP before anything is parsed or written
        validate_node_ip(overrides.node_ip)
        self.paths = paths
        self.overrides = overrides
        self.hostname_lookup = hostname_lookup

    # ------------------------------------------------------------------
    def translate(self, raw_document: bytes | str, file_table: FileTable) -> ArgumentSet:
        """
        Parse the document, register and write the files named in file_table
        and return the kubelet arguments.

        Files written before a failure are left in place; running again
        overwrites them.
        """
        document = parse(raw_document)
        extracted = self.extract(document, file_table)
        args = build_kubelet_args(self.paths, extracted, self.overrides, self.hostname_lookup)
        self.write_files(document, file_table)
        return args

    def extract(self, document: IgnitionConfig, file_table: FileTable) -> ExtractedValues:
        unit = document.unit(KUBELET_UNIT_NAME)
        if unit is None:
            raise DocumentParseError(f"boot document has no {KUBELET_UNIT_NAME} unit")
        if not unit.contents:
            raise DocumentParseError(f"{KUBELET_UNIT_NAME} unit has no contents")

        text = unit.contents
        extracted = ExtractedValues()

        m = CLOUD_PROVIDER_REGEX.search(text)
        if m and m.group(1):
            extracted.cloud_provider = m.group(1)

        m = CLOUD_CONFIG_REGEX.search(text)
        if m:
            source = m.group(1)
            filename = posixpath.basename(source)
            if not filename or filename in (".", "..") or filename.startswith("/"):
                raise DocumentParseError(f"could not get cloud config filename from {m.group(0)!r}")
            if not filename.endswith(CLOUD_CONFIG_EXTENSION):
                # only .conf files are shipped; anything else is left to the node
                log.debug("ignoring cloud config %s without a .%s extension", source, CLOUD_CONFIG_EXTENSION)
            else:
                if not any(f.path == source for f in document.storage.files):
                    raise DocumentParseError(f"cloud config {source} is referenced but not in the boot document")

                dest = self.paths.install_dir / filename
                file_table[source] = FileTranslation(dest=dest)
                extracted.cloud_config = str(dest)

        m = VERBOSITY_REGEX.search(text)
        if m and m.group(1):
            extracted.verbosity = m.group(1)

        m = NODE_LABELS_REGEX.search(text)
        if m:
            # only the worker role is applied, the rest are Linux specific
            extracted.node_labels = [l for l in m.group(1).split(",") if WORKER_LABEL in l]

        log.debug("extracted from %s: %s", KUBELET_UNIT_NAME, extracted)
        return extracted

    def write_files(self, document: IgnitionConfig, file_table: FileTable) -> None:
        for ign_file in document.storage.files:
            translation = file_table.get(ign_file.path)
            if translation is None:
                continue

            source = ign_file.contents.source
            if not source:
                raise DocumentParseError(f"{ign_file.path} has no contents in the boot document")

            contents = decode_data_url(source)
            if ign_file.contents.compression == "gzip":
                try:
                    contents = gzip.decompress(contents)
                except OSError as exc:
                    raise DocumentParseError(f"could not decompress {ign_file.path}: {exc}") from exc

            if translation.transform is not None:
                try:
                    contents = translation.transform(contents)
                except Exception as exc:
                    raise DocumentParseError(f"could not process {ign_file.path}: {exc}") from exc

            try:
                translation.dest.write_bytes(contents)
            except OSError as exc:
                raise FileOperationError(f"could not write {ign_file.path} to {translation.dest}: {exc}") from exc
            log.debug("wrote %s -> %s", ign_file.path, translation.dest)
