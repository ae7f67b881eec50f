"""Test-signing certificate store capability.

The named certificate store is machine-global state shared across
invocations. It is modelled as an injected capability rather than a
singleton: the Package Task only sees the ``CertificateStore`` protocol.

``WindowsCertificateStore`` drives ``certmgr`` and ``makecert`` from the
WDK; ``InMemoryCertificateStore`` backs tests and dry runs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from wdkforge.core.exec import CommandError, RunCommand
from wdkforge.errors import WdkForgeError

logger = logging.getLogger(__name__)

# Enhanced key usage OID for code signing.
CODE_SIGNING_EKU = "1.3.6.1.5.5.7.3.3"


class CertificateStoreError(WdkForgeError):
    """Raised when the store cannot be queried or updated."""


@runtime_checkable
class CertificateStore(Protocol):
    """Protocol for a named certificate store."""

    def exists(self, name: str) -> bool:
        """Return ``True`` if a certificate called *name* is in the store."""
        ...

    def create(self, name: str, cert_path: Path) -> None:
        """Generate a self-signed certificate *name* in the store and write it to *cert_path*."""
        ...

    def export(self, name: str, cert_path: Path) -> None:
        """Write the existing certificate *name* to *cert_path*."""
        ...


class WindowsCertificateStore:
    """Certificate store backed by ``certmgr.exe`` and ``makecert``.

    Parameters
    ----------
    command_exec:
        Command backend.
    store:
        Name of the certificate store (``-s`` argument).
    """

    def __init__(self, command_exec: RunCommand, store: str) -> None:
        self._exec = command_exec
        self.store = store

    def exists(self, name: str) -> bool:
        logger.debug("Checking if self signed certificate exists in %s store.", self.store)
        try:
            result = self._exec.run("certmgr.exe", ["-s", self.store])
        except CommandError as exc:
            # certmgr exits non-zero for a store that does not exist yet.
            if exc.returncode is not None:
                return False
            raise CertificateStoreError(
                f"Checking for existence of cert in store using certmgr: {exc.diagnostic}"
            ) from exc
        return name in result.stdout

    def create(self, name: str, cert_path: Path) -> None:
        logger.info("Creating self signed certificate in %s store using makecert.", self.store)
        args = [
            "-r",
            "-pe",
            "-a",
            "SHA256",
            "-eku",
            CODE_SIGNING_EKU,
            "-ss",
            self.store,
            "-n",
            f"CN={name}",
            str(cert_path),
        ]
        try:
            self._exec.run("makecert", args)
        except CommandError as exc:
            raise CertificateStoreError(
                f"Error generating certificate to cert store using makecert: {exc.diagnostic}"
            ) from exc

    def export(self, name: str, cert_path: Path) -> None:
        logger.info("Creating certificate file from %s store using certmgr.", self.store)
        args = ["-put", "-s", self.store, "-c", "-n", name, str(cert_path)]
        try:
            self._exec.run("certmgr.exe", args)
        except CommandError as exc:
            raise CertificateStoreError(
                f"Creating cert file from store using certmgr: {exc.diagnostic}"
            ) from exc


class InMemoryCertificateStore:
    """Process-local certificate store for tests.

    ``created`` and ``exported`` record every call so tests can assert the
    certificate is generated at most once.
    """

    def __init__(self, names: set[str] | None = None) -> None:
        self.names: set[str] = set(names or ())
        self.created: list[str] = []
        self.exported: list[str] = []

    def exists(self, name: str) -> bool:
        return name in self.names

    def create(self, name: str, cert_path: Path) -> None:
        self.names.add(name)
        self.created.append(name)
        cert_path.write_bytes(f"CN={name}\n".encode())

    def export(self, name: str, cert_path: Path) -> None:
        if name not in self.names:
            raise CertificateStoreError(f"certificate {name} not in store")
        self.exported.append(name)
        cert_path.write_bytes(f"CN={name}\n".encode())
