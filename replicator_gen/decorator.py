"""
Decoration of one target class into a generator-friendly descriptor.

A ``ClassDescriptor`` carries everything the templates need: the
collision-free generated name, the ordered replicated fields with their
protobuf mapping, the RPC parameter messages, and every derived file,
message and variable name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from .definitions import (
    CPP_FILE_EXTENSION,
    DEFAULT_REPLICATOR_PREFIX,
    HEAD_FILE_EXTENSION,
    ILLEGAL_CLASS_NAME_PREFIX,
    PROTO_FILE_EXTENSION,
    PROTO_PB_HEAD_EXTENSION,
    REPLICATOR_SUFFIX,
    UNREAL_PROTO_PACKAGE,
)
from .logging import get_logger
from .metadata import ClassInfo, PropertyInfo, RpcInfo, StructInfo
from .module_info import ModuleInfo, TypeMetadataResolver
from .utils import to_code_safe_name, to_snake_case

logger = get_logger("decorator")


class FieldKind(Enum):
    """How a C++ value maps onto its protobuf field."""

    SCALAR = "scalar"  # bool and numbers, same representation on both sides
    ENUM = "enum"  # uint32 on the wire
    STRING = "string"  # FString
    NAME = "name"  # FName
    TEXT = "text"  # FText
    VECTOR = "vector"  # unrealpb.FVector
    ROTATOR = "rotator"  # unrealpb.FRotator
    OBJECT = "object"  # unrealpb.UnrealObjectRef
    STRUCT = "struct"  # message from the global struct schema


SCALAR_PROTO_TYPES = {
    "bool": "bool",
    "int8": "int32",
    "int16": "int32",
    "int32": "int32",
    "int": "int32",
    "uint8": "uint32",
    "uint16": "uint32",
    "uint32": "uint32",
    "int64": "int64",
    "uint64": "uint64",
    "float": "float",
    "double": "double",
}

NAMED_KINDS = {
    "FString": (FieldKind.STRING, "string"),
    "FName": (FieldKind.NAME, "string"),
    "FText": (FieldKind.TEXT, "string"),
    "FVector": (FieldKind.VECTOR, f"{UNREAL_PROTO_PACKAGE}.FVector"),
    "FRotator": (FieldKind.ROTATOR, f"{UNREAL_PROTO_PACKAGE}.FRotator"),
}

OBJECT_REF_PROTO_TYPE = f"{UNREAL_PROTO_PACKAGE}.UnrealObjectRef"

_ARRAY_RE = re.compile(r"^TArray\s*<\s*(.+?)\s*>$")
_ENUM_AS_BYTE_RE = re.compile(r"^TEnumAsByte\s*<\s*(\w+)\s*>$")
_OBJECT_PTR_RE = re.compile(r"^(?:TObjectPtr|TWeakObjectPtr)\s*<\s*(\w+)\s*>$|^(\w+)\s*\*$")


@dataclass
class FieldDescriptor:
    """One replicated field (or RPC parameter) and its protobuf mapping."""

    name: str = ""  # C++ member name
    cpp_type: str = ""  # Declared C++ type
    element_cpp_type: str = ""  # Element type for arrays, cpp_type otherwise
    kind: FieldKind = FieldKind.SCALAR
    proto_type: str = ""
    proto_field_name: str = ""
    field_number: int = 0  # 1-based, declaration order
    is_repeated: bool = False
    object_class: str = ""  # For OBJECT fields, the pointed-to class
    struct: StructInfo | None = None

    @property
    def is_message(self) -> bool:
        return self.kind in (FieldKind.VECTOR, FieldKind.ROTATOR, FieldKind.OBJECT, FieldKind.STRUCT)


@dataclass
class RpcDescriptor:
    """A remote call and the message packing its arguments."""

    name: str = ""
    kind: str = "Server"
    reliable: bool = True
    params: list[FieldDescriptor] = field(default_factory=list)
    params_message_name: str = ""  # Protobuf message
    params_struct_name: str = ""  # C++ parameter struct


@dataclass
class ClassDescriptor:
    """Normalized view of one target class for code emission."""

    origin_name: str = ""
    generated_name: str = ""
    package_path: str = ""
    cpp_name: str = ""
    module: ModuleInfo | None = None
    head_file_path: str = ""
    include_path: str = ""
    proto_package_name: str = ""
    go_package_import_path: str = ""
    replicator_prefix: str = DEFAULT_REPLICATOR_PREFIX
    fields: list[FieldDescriptor] = field(default_factory=list)
    rpcs: list[RpcDescriptor] = field(default_factory=list)
    source: ClassInfo | None = None
    # Generated name of the nearest ancestor that is generated in the same run
    parent_name: str | None = None
    # snake_case base of the channel data fields, unique within one run
    channel_data_field_name: str = ""
    properties_initialized: bool = False

    @property
    def snake_name(self) -> str:
        return to_snake_case(self.generated_name)

    @property
    def state_message_name(self) -> str:
        return f"{self.generated_name}State"

    @property
    def full_state_type(self) -> str:
        return f"{self.proto_package_name}::{self.state_message_name}"

    @property
    def replicator_file_base(self) -> str:
        return f"{self.replicator_prefix}{self.generated_name}{REPLICATOR_SUFFIX}"

    @property
    def replicator_class_name(self) -> str:
        return f"F{self.replicator_file_base}"

    @property
    def head_file_name(self) -> str:
        return self.replicator_file_base + HEAD_FILE_EXTENSION

    @property
    def cpp_file_name(self) -> str:
        return self.replicator_file_base + CPP_FILE_EXTENSION

    @property
    def proto_file_name(self) -> str:
        return self.generated_name + PROTO_FILE_EXTENSION

    @property
    def proto_head_file_name(self) -> str:
        return self.generated_name + PROTO_PB_HEAD_EXTENSION

    @property
    def path_fname_var(self) -> str:
        return f"{self.generated_name}PathFName"

    @property
    def entry_message_name(self) -> str:
        return f"{self.generated_name}Entry"

    @property
    def entry_field_name(self) -> str:
        return f"{self.channel_data_field_name or self.snake_name}_entry"

    @property
    def entries_field_name(self) -> str:
        return f"{self.channel_data_field_name or self.snake_name}_entries"

    @property
    def entry_var(self) -> str:
        return f"{self.generated_name}Entry"

    def uses_unreal_types(self) -> bool:
        return any(f.proto_type.startswith(f"{UNREAL_PROTO_PACKAGE}.") for f in self.all_fields())

    def uses_global_structs(self) -> bool:
        return any(f.kind == FieldKind.STRUCT for f in self.all_fields())

    def all_fields(self) -> list[FieldDescriptor]:
        """Replicated fields followed by every RPC parameter."""
        fields = list(self.fields)
        for rpc in self.rpcs:
            fields.extend(rpc.params)
        return fields


def map_cpp_type(prop: PropertyInfo) -> FieldDescriptor | None:
    """Map a property onto its protobuf representation.

    Returns:
        A FieldDescriptor without name-dependent parts filled in, or None
        when the type cannot be replicated.
    """
    cpp_type = prop.cpp_type.strip()
    element = cpp_type
    is_repeated = False
    array_match = _ARRAY_RE.match(cpp_type)
    if array_match:
        element = array_match.group(1)
        is_repeated = True
        if _ARRAY_RE.match(element):
            return None

    descriptor = FieldDescriptor(cpp_type=cpp_type, element_cpp_type=element, is_repeated=is_repeated)
    if element in SCALAR_PROTO_TYPES and not prop.is_enum:
        descriptor.kind = FieldKind.SCALAR
        descriptor.proto_type = SCALAR_PROTO_TYPES[element]
    elif prop.is_enum or _ENUM_AS_BYTE_RE.match(element):
        descriptor.kind = FieldKind.ENUM
        descriptor.proto_type = "uint32"
    elif element in NAMED_KINDS:
        descriptor.kind, descriptor.proto_type = NAMED_KINDS[element]
    elif prop.struct is not None and prop.struct.name == element:
        descriptor.kind = FieldKind.STRUCT
        descriptor.proto_type = prop.struct.name
        descriptor.struct = prop.struct
    else:
        object_match = _OBJECT_PTR_RE.match(element)
        if not object_match:
            return None
        descriptor.kind = FieldKind.OBJECT
        descriptor.proto_type = OBJECT_REF_PROTO_TYPE
        descriptor.object_class = object_match.group(1) or object_match.group(2)
    return descriptor


def decorate_properties(properties: list[PropertyInfo], owner: str) -> list[FieldDescriptor]:
    """Build ordered field descriptors, numbering them from 1 in declaration order."""
    fields: list[FieldDescriptor] = []
    used_names: set[str] = set()
    for prop in properties:
        if not prop.replicated:
            continue
        descriptor = map_cpp_type(prop)
        if descriptor is None:
            logger.debug("Skipping %s.%s: type '%s' is not supported", owner, prop.name, prop.cpp_type)
            continue
        descriptor.name = prop.name
        descriptor.proto_field_name = unique_field_name(to_snake_case(prop.name), used_names)
        descriptor.field_number = len(fields) + 1
        fields.append(descriptor)
    return fields


def unique_field_name(name: str, used_names: set[str]) -> str:
    """Return name, or name_2, name_3... when it is already in used_names, and mark it used."""
    candidate = name
    index = 2
    while candidate in used_names:
        candidate = f"{name}_{index}"
        index += 1
    used_names.add(candidate)
    return candidate


class ClassDecorator:
    """Creates ClassDescriptors for one generation run.

    Holds the per-run collision counter, so one instance must see the
    target classes in their generation order. Call ``reset`` between runs.
    """

    def __init__(
        self,
        resolver: TypeMetadataResolver,
        replicator_prefix: str = DEFAULT_REPLICATOR_PREFIX,
        ignore_classes: list[ClassInfo] | None = None,
        ignore_class_paths: list[str] | None = None,
    ):
        self.resolver = resolver
        self.replicator_prefix = replicator_prefix
        self.ignore_classes: list[ClassInfo] = list(ignore_classes or [])
        self.ignore_class_paths: list[str] = list(ignore_class_paths or [])
        self.reset()

    def reset(self) -> None:
        self._same_name_counter: dict[str, int] = {}
        self._used_names: set[str] = set()
        self._illegal_class_name_index = 0

    def is_ignored(self, class_info: ClassInfo) -> bool:
        return any(c is class_info for c in self.ignore_classes) or class_info.path_name in self.ignore_class_paths

    def decorate(
        self,
        class_info: ClassInfo,
        proto_package_name: str,
        go_package_import_path: str,
        init_properties_and_rpcs: bool = True,
        increment_if_same_name: bool = True,
    ) -> tuple[ClassDescriptor | None, str]:
        """Decorate one class.

        Returns:
            (descriptor, "") on success, (None, reason) when the class is
            ignored or its header cannot be found.
        """
        if self.is_ignored(class_info):
            return None, f"Class {class_info.path_name} is ignored"

        head_file_path = self.resolver.resolve_header_path(class_info.cpp_name)
        if not head_file_path:
            return None, f"Cannot find the header file of class {class_info.cpp_name} ({class_info.path_name})"

        descriptor = ClassDescriptor(
            origin_name=class_info.name,
            generated_name=self._resolve_generated_name(class_info, increment_if_same_name),
            package_path=class_info.path_name,
            cpp_name=class_info.cpp_name,
            module=self.resolver.get_module_info(class_info.cpp_name),
            head_file_path=head_file_path,
            include_path=self.resolver.get_include_path(class_info.cpp_name),
            proto_package_name=proto_package_name,
            go_package_import_path=go_package_import_path,
            replicator_prefix=self.replicator_prefix,
            source=class_info,
        )
        if init_properties_and_rpcs:
            self.init_properties_and_rpcs(descriptor)
        return descriptor, ""

    def init_properties_and_rpcs(self, descriptor: ClassDescriptor) -> None:
        """Extract replicated fields and RPCs from the source class metadata."""
        class_info = descriptor.source
        descriptor.fields = decorate_properties(class_info.properties, class_info.cpp_name)
        descriptor.rpcs = []
        for rpc in class_info.rpcs:
            rpc_descriptor = self._decorate_rpc(descriptor.generated_name, rpc, class_info.cpp_name)
            if rpc_descriptor is not None:
                descriptor.rpcs.append(rpc_descriptor)
        descriptor.properties_initialized = True

    def _decorate_rpc(self, generated_name: str, rpc: RpcInfo, owner: str) -> RpcDescriptor | None:
        if not rpc.replicated:
            return None
        params = decorate_properties(rpc.params, f"{owner}::{rpc.name}")
        if len(params) != len(rpc.params):
            logger.debug("Skipping RPC %s::%s: it has a parameter that cannot be replicated", owner, rpc.name)
            return None
        return RpcDescriptor(
            name=rpc.name,
            kind=rpc.kind,
            reliable=rpc.reliable,
            params=params,
            params_message_name=f"{generated_name}_{rpc.name}Params",
            params_struct_name=f"F{generated_name}_{rpc.name}Params",
        )

    def _resolve_generated_name(self, class_info: ClassInfo, increment_if_same_name: bool) -> str:
        base_name = to_code_safe_name(class_info.name)
        if not base_name:
            base_name = f"{ILLEGAL_CLASS_NAME_PREFIX}{self._illegal_class_name_index}"
            self._illegal_class_name_index += 1

        count = self._same_name_counter.get(base_name, 0) + 1
        self._same_name_counter[base_name] = count
        generated_name = base_name
        if increment_if_same_name:
            if count > 1:
                generated_name = f"{base_name}_{count}"
            # A class may be literally named like an earlier suffixed duplicate, in either order
            while generated_name in self._used_names:
                count += 1
                self._same_name_counter[base_name] = count
                generated_name = f"{base_name}_{count}"
        self._used_names.add(generated_name)
        return generated_name
