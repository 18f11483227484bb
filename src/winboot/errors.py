# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/errors.py


class BootstrapError(RuntimeError):
    """Base class for every failure surfaced by the bootstrapper."""


class InputValidationError(BootstrapError):
    """Raised for malformed IP literals, unpaired options or invalid filesystem inputs."""


class DocumentParseError(BootstrapError):
    """Raised when the boot document cannot be parsed or does not describe a node."""


class FileOperationError(BootstrapError):
    """Raised when creating directories, copying or writing files fails."""


class ServiceError(BootstrapError):
    """Raised when the host service manager rejects a request."""


class ServiceManagerConnectionError(ServiceError):
    """Raised when the host service manager cannot be reached."""


class ServiceNotFoundError(ServiceError):
    """Raised when an operation needs a service that is not installed."""


class ServiceTimeoutError(ServiceError):
    """Raised when a service does not reach the desired state in time."""


class MetadataLookupError(BootstrapError):
    """Raised when the cloud metadata service cannot provide a hostname."""


class RemoteError(BootstrapError):
    """Raised when a remote session fails to copy files or run commands."""
