"""Data handed to Rego policies and loaders for Rego module sources."""

from __future__ import annotations

import copy
import os
import stat
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from .rego_modules import builtin_modules


@dataclass
class RegoK8sConfig:
    """Connection settings of the Kubernetes API, as seen by Rego policies."""

    token: str = ""
    ip: str = ""
    host: str = ""
    port: str = ""
    crtfile: str = ""
    clientcrtfile: str = ""
    clientkeyfile: str = ""

    @classmethod
    def from_connection(
        cls,
        host: str,
        bearer_token: str,
        ca_file: str,
        cert_file: str,
        key_file: str,
    ) -> "RegoK8sConfig":
        """Build the settings from a client connection.

        An empty host falls back to the in-cluster service address taken
        from KUBERNETES_SERVICE_HOST and KUBERNETES_SERVICE_PORT.
        """
        if not host:
            service_host = os.environ.get("KUBERNETES_SERVICE_HOST", "")
            service_port = os.environ.get("KUBERNETES_SERVICE_PORT", "")
            host = f"https://{service_host}:{service_port}"
        token = f"Bearer {bearer_token}" if bearer_token else ""
        return cls(
            token=token,
            host=host,
            crtfile=ca_file,
            clientcrtfile=cert_file,
            clientkeyfile=key_file,
        )

    def to_dict(self) -> dict[str, str]:
        """Return the JSON form of the settings."""
        return {
            "token": self.token,
            "ip": self.ip,
            "host": self.host,
            "port": self.port,
            "crtfile": self.crtfile,
            "clientcrtfile": self.clientcrtfile,
            "clientkeyfile": self.clientkeyfile,
        }


@dataclass
class RegoDependenciesData:
    """Data documents made available to Rego policies."""

    cluster_name: str = ""
    posture_control_inputs: dict[str, list[str] | None] = field(default_factory=dict)
    data_control_inputs: dict[str, str] = field(default_factory=dict)
    k8s_config: RegoK8sConfig = field(default_factory=RegoK8sConfig)

    def filtered_posture_control_inputs(self, settings: Iterable[str]) -> dict[str, list[str]]:
        """Select the posture inputs named by dotted settings paths.

        Only paths with exactly three parts are considered; the last part
        names the input. Unknown or empty (``None``) inputs are skipped.
        """
        selected: dict[str, list[str]] = {}
        for setting in settings:
            parts = setting.split(".")
            if len(parts) != 3:
                continue
            key = parts[2]
            value = self.posture_control_inputs.get(key)
            if value is not None:
                selected[key] = value
        return selected

    def to_storage(self) -> dict[str, Any]:
        """Return the control inputs as a data document for policy evaluation."""
        return {
            "postureControlInputs": copy.deepcopy(self.posture_control_inputs),
            "dataControlInputs": copy.deepcopy(self.data_control_inputs),
        }

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the data."""
        return {
            "clusterName": self.cluster_name,
            "postureControlInputs": copy.deepcopy(self.posture_control_inputs),
            "dataControlInputs": copy.deepcopy(self.data_control_inputs),
            "k8sconfig": self.k8s_config.to_dict(),
        }


def posture_inputs_storage(posture_control_inputs: dict[str, list[str]] | None) -> dict[str, Any]:
    """Return a data document holding only the posture control inputs."""
    return {"postureControlInputs": copy.deepcopy(posture_control_inputs)}


def _walk(path: str) -> Iterator[str]:
    """Yield every non-directory path under ``path`` in lexical order."""
    try:
        info = os.lstat(path)
    except OSError:
        return
    if not stat.S_ISDIR(info.st_mode):
        yield path
        return
    try:
        names = sorted(os.listdir(path))
    except OSError:
        return
    for name in names:
        yield from _walk(os.path.join(path, name))


def load_rego_files(directory: str | os.PathLike[str]) -> dict[str, str]:
    """Load every ``*.rego`` file found under ``directory``.

    Keys are the file base names with the characters of ``.rego`` trimmed
    from both ends. Unreadable files are reported and skipped.
    """
    modules: dict[str, str] = {}
    for path in _walk(os.fspath(directory)):
        if not path.endswith(".rego"):
            continue
        try:
            with open(path, encoding="utf-8", errors="replace") as handle:
                content = handle.read()
        except OSError as exc:
            print(f"LoadRegoFiles, Failed to load: {path}: {exc}", end="")
            continue
        modules[os.path.basename(path).strip(".rego")] = content
    return modules


def load_rego_modules() -> dict[str, str]:
    """Return the built-in Rego modules keyed by package name."""
    return builtin_modules()