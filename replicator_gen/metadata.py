"""
Class metadata consumed by the generator.

The generator never talks to a host reflection system directly. A host
integration implements ``MetadataProvider`` and hands out ``ClassInfo``
records; ``StaticMetadataProvider`` serves records loaded from a JSON
metadata dump.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class StructInfo:
    """A user struct whose members are replicated field by field."""

    name: str = ""  # C++ name, e.g. "FWeaponInfo"
    properties: list[PropertyInfo] = field(default_factory=list)


@dataclass
class PropertyInfo:
    """A declared property (or RPC parameter) of a class."""

    name: str = ""
    cpp_type: str = ""  # e.g. "float", "TArray<int32>", "APawn*"
    replicated: bool = True
    is_enum: bool = False
    # Set when cpp_type (or its array element) names a user struct
    struct: StructInfo | None = None


@dataclass
class RpcInfo:
    """A remote procedure call declared on a class."""

    name: str = ""
    params: list[PropertyInfo] = field(default_factory=list)
    kind: str = "Server"  # "Server", "Client" or "NetMulticast"
    reliable: bool = True
    replicated: bool = True


@dataclass(eq=False)
class ClassInfo:
    """Reflective metadata of one class.

    Compared by identity: two records with the same name are still two
    distinct classes.
    """

    name: str = ""  # Without the C++ prefix, e.g. "Pawn"
    prefix: str = "A"
    path_name: str = ""  # e.g. "/Script/Engine.Pawn"
    module_name: str = ""
    super_path_name: str | None = None
    properties: list[PropertyInfo] = field(default_factory=list)
    rpcs: list[RpcInfo] = field(default_factory=list)

    @property
    def cpp_name(self) -> str:
        return f"{self.prefix}{self.name}"


class MetadataProvider(ABC):
    """Source of class metadata for one generation run."""

    @abstractmethod
    def get_class(self, path_name: str) -> ClassInfo | None:
        """Return the class registered under path_name, or None."""

    def list_classes(self) -> list[ClassInfo]:
        """Return every class the provider knows, in a stable order."""
        return []


class StaticMetadataProvider(MetadataProvider):
    """Metadata provider over a fixed, ordered list of classes."""

    def __init__(self, classes: list[ClassInfo] | None = None):
        self._classes: list[ClassInfo] = list(classes or [])
        self._by_path: dict[str, ClassInfo] = {}
        for class_info in self._classes:
            # First registration wins for lookups by path
            self._by_path.setdefault(class_info.path_name, class_info)

    def get_class(self, path_name: str) -> ClassInfo | None:
        return self._by_path.get(path_name)

    def list_classes(self) -> list[ClassInfo]:
        return list(self._classes)

    @staticmethod
    def from_dict(d: dict) -> StaticMetadataProvider:
        """Build a provider from a metadata dump.

        The dump holds an optional ``structs`` mapping (struct name to
        ``{"properties": [...]}``) and an ordered ``classes`` list.
        """
        struct_data = d.get("structs", {}) or {}
        structs: dict[str, StructInfo] = {name: StructInfo(name=name) for name in struct_data}
        for name, body in struct_data.items():
            structs[name].properties = [_property_from_dict(p, structs) for p in body.get("properties", [])]

        classes = []
        for c in d.get("classes", []):
            name = c["name"]
            classes.append(
                ClassInfo(
                    name=name,
                    prefix=c.get("prefix", "A"),
                    path_name=c.get("path", f"/Script/{c.get('module', '')}.{name}"),
                    module_name=c.get("module", ""),
                    super_path_name=c.get("super"),
                    properties=[_property_from_dict(p, structs) for p in c.get("properties", [])],
                    rpcs=[
                        RpcInfo(
                            name=r["name"],
                            params=[_property_from_dict(p, structs) for p in r.get("params", [])],
                            kind=r.get("kind", "Server"),
                            reliable=r.get("reliable", True),
                            replicated=r.get("replicated", True),
                        )
                        for r in c.get("rpcs", [])
                    ],
                )
            )
        return StaticMetadataProvider(classes)

    @staticmethod
    def from_file(path: str | Path) -> StaticMetadataProvider:
        with open(path, encoding="utf-8") as f:
            return StaticMetadataProvider.from_dict(json.load(f))


def _property_from_dict(d: dict, structs: dict[str, StructInfo]) -> PropertyInfo:
    cpp_type = d["type"]
    return PropertyInfo(
        name=d["name"],
        cpp_type=cpp_type,
        replicated=d.get("replicated", True),
        is_enum=d.get("enum", False),
        struct=structs.get(_element_type_name(cpp_type)),
    )


def _element_type_name(cpp_type: str) -> str:
    cpp_type = cpp_type.strip()
    if cpp_type.startswith("TArray<") and cpp_type.endswith(">"):
        return cpp_type[len("TArray<") : -1].strip()
    return cpp_type


def iter_super_chain(class_info: ClassInfo, provider: MetadataProvider) -> Iterator[ClassInfo]:
    """Yield the ancestors of class_info, nearest first.

    Stops at the first super class the provider does not know, or when
    the chain loops back on itself.
    """
    seen = {class_info.path_name}
    super_path = class_info.super_path_name
    while super_path and super_path not in seen:
        seen.add(super_path)
        parent = provider.get_class(super_path)
        if parent is None:
            return
        yield parent
        super_path = parent.super_path_name
