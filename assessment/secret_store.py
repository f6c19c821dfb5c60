# assessment/secret_store.py
"""
SSM Parameter Store access.

- Values are always read with decryption and written as SecureString.
- A missing parameter reads as None; other API errors propagate.
"""

import logging
from typing import List, Optional

from botocore.exceptions import ClientError

logger = logging.getLogger("mcsp_runner.secret_store")


class SecretStore:
    def __init__(self, session, region: Optional[str] = None):
        self._ssm = session.client("ssm", region_name=region)

    def get(self, path: str) -> Optional[str]:
        """
        Return the decrypted value at path, or None if the parameter does not exist.
        """
        try:
            resp = self._ssm.get_parameter(Name=path, WithDecryption=True)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ParameterNotFound":
                return None
            raise
        return resp.get("Parameter", {}).get("Value")

    def put(self, path: str, value: str) -> None:
        self._ssm.put_parameter(Name=path, Value=value, Type="SecureString", Overwrite=True)

    def list_names(self, path: str) -> List[str]:
        """
        List every parameter name under path (recursive).
        """
        names: List[str] = []
        paginator = self._ssm.get_paginator("get_parameters_by_path")
        for page in paginator.paginate(Path=path, Recursive=True, WithDecryption=False):
            for param in page.get("Parameters", []):
                names.append(param["Name"])
        return names

    def find_first(self, path: str, prefix: str, suffix: str) -> Optional[str]:
        """
        Lexicographically first parameter name under path matching prefix and suffix.
        """
        matches = sorted(n for n in self.list_names(path) if n.startswith(prefix) and n.endswith(suffix))
        if len(matches) > 1:
            logger.warning("Multiple credential parameters match %s*%s; using %s", prefix, suffix, matches[0])
        return matches[0] if matches else None
