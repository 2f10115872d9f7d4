# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Read credential material from Kubernetes Secrets."""

from __future__ import annotations

import base64
import binascii
import logging

from lightkube import Client
from lightkube.core.exceptions import ApiError
from lightkube.resources.core_v1 import Secret

from lbregistrar.errors import ConfigError

logger = logging.getLogger(__name__)


def get_secret_value(client: Client, namespace: str, name: str, key: str) -> str:
    """Return the decoded value stored under `key` in the Secret `namespace/name`."""
    logger.debug("getting secret %s/%s key %s", namespace, name, key)
    try:
        secret = client.get(Secret, name=name, namespace=namespace)
    except ApiError as e:
        raise ConfigError(f"unable to get secret {namespace}/{name}: {e.status.message}") from e

    data = secret.data or {}
    if key in data:
        try:
            return base64.b64decode(data[key]).decode()
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ConfigError(f"secret {namespace}/{name} key {key} is not valid base64") from e

    string_data = secret.stringData or {}
    if key in string_data:
        return string_data[key]

    raise ConfigError(f"secret key {key} not found in {namespace}/{name}")
