# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/cloud/metadata.py

from __future__ import annotations

import logging

import requests

from ..errors import MetadataLookupError

log = logging.getLogger("winboot")

AWS_PLATFORM = "aws"
GCP_PLATFORM = "gcp"

AWS_IMDS_URL = "http://169.254.169.254/latest"
GCP_METADATA_URL = "http://metadata.google.internal/computeMetadata/v1"

# GCP rejects instance hostnames longer than this
GCP_HOSTNAME_MAX_LENGTH = 63

REQUEST_TIMEOUT = 10


def get_hostname_override(platform_type: str | None) -> str:
    """
    Return the hostname the kubelet should register with, or "" when the
    platform does not need an override.
    """
    platform = (platform_type or "").lower()
    if platform == AWS_PLATFORM:
        return get_aws_hostname()
    if platform == GCP_PLATFORM:
        return get_gcp_hostname()
    return ""


def get_aws_hostname() -> str:
    # Matches the AWS in-tree provider: the node name is the instance's
    # local-hostname rather than the FQDN.
    try:
        token = requests.put(
            f"{AWS_IMDS_URL}/api/token",
            headers={"X-aws-ec2-metadata-token-ttl-seconds": "21600"},
            timeout=REQUEST_TIMEOUT,
        )
        token.raise_for_status()
        resp = requests.get(
            f"{AWS_IMDS_URL}/meta-data/local-hostname",
            headers={"X-aws-ec2-metadata-token": token.text},
            timeout=REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise MetadataLookupError(f"unable to retrieve the hostname from the EC2 instance: {exc}") from exc

    hostname = resp.text.strip()
    log.debug("EC2 local-hostname is %s", hostname)
    return hostname


def get_gcp_hostname() -> str:
    try:
        resp = requests.get(
            f"{GCP_METADATA_URL}/instance/hostname",
            headers={"Metadata-Flavor": "Google"},
            timeout=REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise MetadataLookupError(f"unable to retrieve the hostname from GCP instance metadata service: {exc}") from exc

    return process_gcp_hostname(resp.text.strip())


def process_gcp_hostname(hostname: str) -> str:
    """
    Shorten a GCP FQDN ("<instance>.c.<project>.internal") that is too long:
    keep the first label when that fits, otherwise hard-truncate.
    """
    if len(hostname) <= GCP_HOSTNAME_MAX_LENGTH:
        return hostname
    first_dot = hostname.find(".")
    if 0 < first_dot < GCP_HOSTNAME_MAX_LENGTH:
        return hostname[:first_dot]
    return hostname[:GCP_HOSTNAME_MAX_LENGTH]
