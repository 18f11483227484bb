# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/ignition/dataurl.py

from __future__ import annotations

import base64
import binascii
import urllib.parse

from ..errors import DocumentParseError


def decode_data_url(source: str) -> bytes:
    """
    Decode an RFC 2397 data URL: data:[<mediatype>][;base64],<data>

    Percent-encoded payloads are unquoted byte-for-byte, base64 payloads are
    unquoted first (ignition writers sometimes escape '+' and '/').
    """
    if not source.startswith("data:"):
        raise DocumentParseError(f"not a data URL: {source[:32]!r}")

    header, sep, payload = source[len("data:"):].partition(",")
    if not sep:
        raise DocumentParseError("data URL has no ',' separating the media type from the data")

    if header.endswith(";base64"):
        try:
            return base64.b64decode(urllib.parse.unquote(payload), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DocumentParseError(f"invalid base64 payload in data URL: {exc}") from exc

    return urllib.parse.unquote_to_bytes(payload)
