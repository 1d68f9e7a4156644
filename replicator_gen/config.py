"""
Configuration for the replicator generator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .definitions import (
    DEFAULT_CHANNEL_DATA_MESSAGE_NAME,
    DEFAULT_INTERMEDIATE_DIR,
    DEFAULT_PROTO_PACKAGE_NAME,
    DEFAULT_REPLICATOR_PREFIX,
    GENERATED_MANIFEST_FILE,
)


@dataclass
class GeneratorConfig:
    """Configuration options for a generation run."""

    # Root directory of the host project
    project_dir: str = "."

    # Module that receives the generated code (empty = discovered under <project_dir>/Source)
    default_module_dir: str = ""

    # Directory holding every generated artifact (empty = <default_module_dir>/ChanneldGenerated)
    storage_dir: str = ""

    # Directory of the generated manifest, relative to project_dir unless absolute
    intermediate_dir: str = DEFAULT_INTERMEDIATE_DIR
    manifest_file_name: str = GENERATED_MANIFEST_FILE

    # Host module manifest used to locate class headers
    module_manifest_path: str = ""

    # Protobuf package of every generated schema
    proto_package_name: str = DEFAULT_PROTO_PACKAGE_NAME

    # Prepended to the package name to build the go_package option
    go_package_import_path_prefix: str = ""

    # Prefix of generated replicator class and file names
    replicator_prefix: str = DEFAULT_REPLICATOR_PREFIX

    # Classes to skip, matched exactly against the class path name
    ignore_class_paths: list[str] = field(default_factory=list)

    # Suffix same-named classes with _2, _3, ... instead of overwriting
    increment_if_same_name: bool = True

    # Add a "generated, do not edit" comment at the top of every artifact
    add_generation_comment: bool = True

    # Channel data aggregator naming (empty = derived from the module name)
    channel_data_message_name: str = DEFAULT_CHANNEL_DATA_MESSAGE_NAME
    channel_data_processor_namespace: str = ""
    channel_data_processor_class_name: str = ""

    @staticmethod
    def from_dict(d: dict) -> GeneratorConfig:
        """Create a config from a dictionary, ignoring unknown keys."""
        config = GeneratorConfig()
        for k, v in d.items():
            if hasattr(config, k):
                setattr(config, k, v)
        return config

    def to_dict(self) -> dict:
        """Convert config to a dictionary."""
        return {
            "project_dir": self.project_dir,
            "default_module_dir": self.default_module_dir,
            "storage_dir": self.storage_dir,
            "intermediate_dir": self.intermediate_dir,
            "manifest_file_name": self.manifest_file_name,
            "module_manifest_path": self.module_manifest_path,
            "proto_package_name": self.proto_package_name,
            "go_package_import_path_prefix": self.go_package_import_path_prefix,
            "replicator_prefix": self.replicator_prefix,
            "ignore_class_paths": self.ignore_class_paths,
            "increment_if_same_name": self.increment_if_same_name,
            "add_generation_comment": self.add_generation_comment,
            "channel_data_message_name": self.channel_data_message_name,
            "channel_data_processor_namespace": self.channel_data_processor_namespace,
            "channel_data_processor_class_name": self.channel_data_processor_class_name,
        }

    def resolve_intermediate_dir(self) -> Path:
        intermediate = Path(self.intermediate_dir)
        if intermediate.is_absolute():
            return intermediate
        return Path(self.project_dir) / intermediate
