# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/ignition/secrets.py
"""
Where the Ignition payload comes from.

A machine references its payload as `<namespace>/<user_data_secret>`; the
secret must carry a `userData` key whose value is the raw payload bytes.
"""
from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Tuple, Union

import yaml

from ..core.exceptions import SecretError
from .config_drive import PayloadSpec

USER_DATA_KEY = "userData"


@dataclass(frozen=True)
class IgnitionRef:
    user_data_secret: str
    namespace: str = "default"


class SecretSource(Protocol):
    def get(self, namespace: str, name: str) -> Optional[Mapping[str, bytes]]:
        """Return the secret's data, or None when it does not exist."""
        ...


class MappingSecretSource:
    def __init__(self, secrets: Optional[Mapping[Tuple[str, str], Mapping[str, Union[str, bytes]]]] = None):
        self._secrets: Dict[Tuple[str, str], Dict[str, bytes]] = {}
        for (namespace, name), data in (secrets or {}).items():
            self.put(namespace, name, data)

    def put(self, namespace: str, name: str, data: Mapping[str, Union[str, bytes]]) -> None:
        self._secrets[(namespace, name)] = {
            k: (v.encode("utf-8") if isinstance(v, str) else bytes(v)) for k, v in data.items()
        }

    def get(self, namespace: str, name: str) -> Optional[Mapping[str, bytes]]:
        return self._secrets.get((namespace, name))


class SecretManifestSource:
    """
    Secrets read from Kubernetes `Secret` manifests (*.yaml / *.yml) in a directory.

    `data` values are base64 decoded; `stringData` values are taken as UTF-8 text
    and win over `data` for the same key, as the API server does.
    """

    def __init__(self, directory: Union[str, Path], *, logger: Optional[logging.Logger] = None):
        self.directory = Path(directory)
        self.logger = logger or logging.getLogger("ign2kvm")

    def _documents(self):
        files = sorted(list(self.directory.glob("*.yaml")) + list(self.directory.glob("*.yml")))
        for path in files:
            try:
                docs = list(yaml.safe_load_all(path.read_text(encoding="utf-8")))
            except (OSError, yaml.YAMLError) as e:
                raise SecretError(msg=f"can not read secret manifest {path}: {e}", cause=e, context={"path": str(path)}) from e
            for doc in docs:
                if isinstance(doc, dict) and doc.get("kind") == "Secret":
                    yield path, doc

    def get(self, namespace: str, name: str) -> Optional[Mapping[str, bytes]]:
        for path, doc in self._documents():
            meta = doc.get("metadata") or {}
            if meta.get("name") != name or (meta.get("namespace") or "default") != namespace:
                continue
            out: Dict[str, bytes] = {}
            for k, v in (doc.get("data") or {}).items():
                try:
                    out[k] = base64.b64decode(str(v), validate=True)
                except (binascii.Error, ValueError) as e:
                    raise SecretError(
                        msg=f"secret '{namespace}/{name}' key {k!r} is not valid base64",
                        cause=e,
                        context={"path": str(path)},
                    ) from e
            for k, v in (doc.get("stringData") or {}).items():
                out[k] = str(v).encode("utf-8")
            self.logger.debug("Secret %s/%s read from %s", namespace, name, path)
            return out
        return None


def load_payload(source: SecretSource, ref: IgnitionRef, *, volume_name: str, pool_name: str) -> PayloadSpec:
    if not ref.user_data_secret:
        raise SecretError(msg="ignition.userDataSecret not set")

    where = f"{ref.namespace}/{ref.user_data_secret}"
    try:
        data = source.get(ref.namespace, ref.user_data_secret)
    except SecretError:
        raise
    except Exception as e:
        raise SecretError(
            msg=f"can not retrieve user data secret '{where}': {e}",
            cause=e,
            context={"namespace": ref.namespace, "name": ref.user_data_secret},
        ) from e

    if data is None:
        raise SecretError(
            msg=f"can not retrieve user data secret '{where}': not found",
            context={"namespace": ref.namespace, "name": ref.user_data_secret},
        )
    if USER_DATA_KEY not in data:
        raise SecretError(
            msg=f"can not retrieve user data secret '{where}': key '{USER_DATA_KEY}' not found in the secret",
            context={"namespace": ref.namespace, "name": ref.user_data_secret},
        )
    return PayloadSpec(name=volume_name, pool_name=pool_name, content=bytes(data[USER_DATA_KEY]))
