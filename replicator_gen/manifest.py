"""
The persisted record of the most recent generation run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from .definitions import DEFAULT_PROTO_PACKAGE_NAME
from .logging import get_logger

logger = get_logger("manifest")

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass
class GeneratedManifest:
    """When the last run happened and which schema package it used."""

    generated_time: datetime = field(default_factory=lambda: _EPOCH)
    proto_package_name: str = DEFAULT_PROTO_PACKAGE_NAME

    @staticmethod
    def now(proto_package_name: str) -> GeneratedManifest:
        return GeneratedManifest(
            generated_time=datetime.now(tz=timezone.utc).replace(microsecond=0),
            proto_package_name=proto_package_name,
        )

    def to_dict(self) -> dict:
        return {
            "GeneratedTime": int(self.generated_time.timestamp()),
            "ProtoPackageName": self.proto_package_name,
        }

    @staticmethod
    def from_dict(d: dict) -> GeneratedManifest:
        """Create a manifest from stored data.

        Missing or mistyped fields keep their default and log a warning.
        """
        manifest = GeneratedManifest()

        generated_time = d.get("GeneratedTime")
        if isinstance(generated_time, (int, float)) and not isinstance(generated_time, bool):
            manifest.generated_time = datetime.fromtimestamp(generated_time, tz=timezone.utc)
        else:
            logger.warning("Unable to find field 'GeneratedTime'")

        proto_package_name = d.get("ProtoPackageName")
        if isinstance(proto_package_name, str):
            manifest.proto_package_name = proto_package_name
        else:
            logger.warning("Unable to find field 'ProtoPackageName'")

        return manifest
