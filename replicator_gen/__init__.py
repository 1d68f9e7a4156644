"""Replicator Code Generator

Generates channeld replicator code, protobuf schema files and channel
data processors from the structural metadata of replicated classes.
"""

__version__ = "0.3.0"

from .codegen import CodeGenerator, GeneratedCodeBundle, ReplicatorCode, SkippedClass
from .config import GeneratorConfig
from .decorator import ClassDecorator, ClassDescriptor
from .manager import GenerationManager, GenerationReport
from .manifest import GeneratedManifest
from .metadata import ClassInfo, MetadataProvider, PropertyInfo, RpcInfo, StaticMetadataProvider, StructInfo
from .module_info import ModuleInfo, TypeMetadataResolver

__all__ = [
    "GenerationManager",
    "GenerationReport",
    "GeneratorConfig",
    "CodeGenerator",
    "GeneratedCodeBundle",
    "ReplicatorCode",
    "SkippedClass",
    "ClassDecorator",
    "ClassDescriptor",
    "GeneratedManifest",
    "ClassInfo",
    "PropertyInfo",
    "RpcInfo",
    "StructInfo",
    "MetadataProvider",
    "StaticMetadataProvider",
    "ModuleInfo",
    "TypeMetadataResolver",
]
