"""
Resolution of class names to their declaring module and header file.

The host build writes a module manifest (``.uhtmanifest``) listing every
module with its base directory and header files. Headers are scanned for
reflected class declarations to build a class-name index.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

from .logging import get_logger

logger = get_logger("module_info")

# Header lists of one module entry in the module manifest
HEADER_LIST_KEYS = ("ClassesHeaders", "PublicHeaders", "InternalHeaders", "PrivateHeaders")

# UCLASS(...) / USTRUCT(...) followed by the declaration, allowing one level of nested
# parentheses in the specifiers and an optional MODULE_API export macro
_REFLECTED_TYPE_RE = re.compile(
    r"\b(?:UCLASS|USTRUCT|UINTERFACE)\s*\((?:[^()]|\([^()]*\))*\)\s*"
    r"(?:class|struct)\s+(?:[A-Z0-9_]+_API\s+)?([A-Za-z_]\w*)"
)

_INCLUDE_ROOTS = ("Public", "Classes", "Private")


@dataclass
class ModuleInfo:
    """A host module and the headers that belong to it."""

    name: str = ""
    base_directory: str = ""
    include_base: str = ""
    header_files: set[str] = field(default_factory=set)


@dataclass
class CppClassInfo:
    """Where a reflected class is declared."""

    head_file_path: str = ""
    module_info: ModuleInfo | None = None


class TypeMetadataResolver:
    """Maps class names (with their C++ prefix) to declaring modules and headers.

    ``refresh_module_info`` must succeed at least once before lookups
    return anything; there is no automatic invalidation.
    """

    def __init__(self, module_manifest_path: str | Path | None = None):
        self.module_manifest_path = Path(module_manifest_path) if module_manifest_path else None
        self._module_info_by_class_name: dict[str, ModuleInfo] = {}
        self._cpp_class_info_map: dict[str, CppClassInfo] = {}
        self._refreshed = False

    @property
    def is_refreshed(self) -> bool:
        return self._refreshed

    def refresh_module_info(self, module_manifest_path: str | Path | None = None) -> bool:
        """Rebuild the class index from the module manifest.

        Returns:
            True on success. On failure the previous index is kept.
        """
        if module_manifest_path is not None:
            self.module_manifest_path = Path(module_manifest_path)
        if self.module_manifest_path is None:
            logger.warning("No module manifest configured, class headers cannot be resolved")
            return False

        try:
            with open(self.module_manifest_path, encoding="utf-8") as f:
                manifest = json.load(f)
        except OSError as e:
            logger.warning("Unable to read module manifest %s: %s", self.module_manifest_path, e)
            return False
        except json.JSONDecodeError as e:
            logger.warning("Module manifest %s is malformed: %s", self.module_manifest_path, e)
            return False

        modules = manifest.get("Modules") if isinstance(manifest, dict) else None
        if not isinstance(modules, list):
            logger.warning("Module manifest %s has no 'Modules' list", self.module_manifest_path)
            return False

        for index, manifest_module in enumerate(modules):
            if not isinstance(manifest_module, dict):
                logger.warning("Module manifest %s: module #%d is not an object", self.module_manifest_path, index)
                return False
            for key in HEADER_LIST_KEYS:
                files = manifest_module.get(key) or []
                if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
                    logger.warning("Module manifest %s: '%s' of module #%d is not a list of paths", self.module_manifest_path, key, index)
                    return False

        module_info_by_class_name: dict[str, ModuleInfo] = {}
        cpp_class_info_map: dict[str, CppClassInfo] = {}
        for manifest_module in modules:
            module_info = ModuleInfo(
                name=manifest_module.get("Name", ""),
                base_directory=manifest_module.get("BaseDirectory", ""),
                include_base=manifest_module.get("IncludeBase", ""),
            )
            for key in HEADER_LIST_KEYS:
                files = manifest_module.get(key) or []
                module_info.header_files.update(files)
                self._process_header_files(files, module_info, module_info_by_class_name, cpp_class_info_map)

        self._module_info_by_class_name = module_info_by_class_name
        self._cpp_class_info_map = cpp_class_info_map
        self._refreshed = True
        logger.debug("Indexed %d classes from %d modules", len(cpp_class_info_map), len(modules))
        return True

    def _process_header_files(
        self,
        files: list[str],
        module_info: ModuleInfo,
        module_info_by_class_name: dict[str, ModuleInfo],
        cpp_class_info_map: dict[str, CppClassInfo],
    ) -> None:
        for header_file in files:
            try:
                code = Path(header_file).read_text(encoding="utf-8", errors="ignore")
            except OSError as e:
                logger.warning("Skipping unreadable header %s: %s", header_file, e)
                continue
            for match in _REFLECTED_TYPE_RE.finditer(code):
                class_name = match.group(1)
                # First declaration wins
                if class_name in cpp_class_info_map:
                    continue
                module_info_by_class_name[class_name] = module_info
                cpp_class_info_map[class_name] = CppClassInfo(head_file_path=str(Path(header_file).absolute()), module_info=module_info)

    def resolve_header_path(self, class_name: str) -> str:
        """Get the absolute header path of a class.

        Args:
            class_name: Class name with its C++ prefix, e.g. "APawn"

        Returns:
            The absolute header path, or an empty string when the class is unknown
        """
        class_info = self._cpp_class_info_map.get(class_name)
        return class_info.head_file_path if class_info else ""

    def get_module_info(self, class_name: str) -> ModuleInfo | None:
        return self._module_info_by_class_name.get(class_name)

    def get_include_path(self, class_name: str) -> str:
        """Get the path used in an #include line for the class header."""
        head_file_path = self.resolve_header_path(class_name)
        if not head_file_path:
            return ""
        header = Path(head_file_path)
        module_info = self._module_info_by_class_name[class_name]

        roots = []
        if module_info.include_base:
            roots.append(Path(module_info.include_base))
        if module_info.base_directory:
            base = Path(module_info.base_directory)
            roots.extend(base / sub for sub in _INCLUDE_ROOTS)
            roots.append(base)
        for root in roots:
            try:
                return header.relative_to(root.absolute()).as_posix()
            except ValueError:
                continue
        return header.name
