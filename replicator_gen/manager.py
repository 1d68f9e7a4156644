"""
Generation manager: drives the code generator and owns every file-system
side effect of a run.

A manager is constructed explicitly by its caller (the CLI, a build step
or a test) and is not safe to share between concurrent runs.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

from .codegen import CodeGenerator, GeneratedCodeBundle, SkippedClass
from .config import GeneratorConfig
from .definitions import (
    CHANNEL_DATA_FILE_PREFIX,
    CPP_FILE_EXTENSION,
    GENERATED_CODE_DIR,
    GLOBAL_STRUCT_HEAD_FILE,
    GLOBAL_STRUCT_PROTO_FILE,
    HEAD_FILE_EXTENSION,
    PROTO_FILE_EXTENSION,
    PROTO_PB_CPP_EXTENSION,
    PROTO_PB_HEAD_EXTENSION,
    REGISTRY_FILE,
    REP_REGISTRATION_HEAD_FILE,
    REPLICATOR_SUFFIX,
    TYPE_DEFINITIONS_CPP_FILE,
    TYPE_DEFINITIONS_HEAD_FILE,
)
from .logging import get_logger
from .manifest import GeneratedManifest
from .metadata import ClassInfo, MetadataProvider
from .module_info import TypeMetadataResolver
from .writer import ArtifactWriter, ArtifactWriteError

logger = get_logger("manager")


@dataclass
class GenerationReport:
    """Outcome of one ``generate_all`` call."""

    target_count: int = 0
    generated_class_names: list[str] = field(default_factory=list)
    skipped: list[SkippedClass] = field(default_factory=list)
    written_files: list[str] = field(default_factory=list)
    failed_files: dict[str, str] = field(default_factory=dict)
    manifest_saved: bool = False
    message: str = ""

    @property
    def success(self) -> bool:
        return not self.failed_files and self.manifest_saved


class GenerationManager:
    """Top-level entry point for generating, listing and removing replicators."""

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        metadata_provider: MetadataProvider | None = None,
        resolver: TypeMetadataResolver | None = None,
        writer: ArtifactWriter | None = None,
    ):
        self.config = config or GeneratorConfig()
        self.metadata_provider = metadata_provider
        self.resolver = resolver or TypeMetadataResolver(self.config.module_manifest_path or None)
        self.ignore_classes: list[ClassInfo] = []
        self.code_generator = CodeGenerator(
            self.resolver,
            self.config,
            metadata_provider=metadata_provider,
            ignore_classes=self.ignore_classes,
        )
        self.writer = writer or ArtifactWriter()
        self.latest_manifest: GeneratedManifest | None = None
        self.last_report: GenerationReport | None = None
        self._default_module_dir: Path | None = None
        self._storage_dir: Path | None = None

    # Paths and names

    def get_default_module_dir(self) -> Path:
        if self._default_module_dir is None:
            if self.config.default_module_dir:
                self._default_module_dir = Path(self.config.default_module_dir)
            else:
                self._default_module_dir = find_default_module_dir(Path(self.config.project_dir))
        return self._default_module_dir

    def get_storage_dir(self) -> Path:
        if self._storage_dir is None:
            if self.config.storage_dir:
                self._storage_dir = Path(self.config.storage_dir)
            else:
                self._storage_dir = self.get_default_module_dir() / GENERATED_CODE_DIR
        return self._storage_dir

    def get_default_module_name(self) -> str:
        return self.get_default_module_dir().name

    def get_default_package_name(self) -> str:
        return self.config.proto_package_name

    def get_manifest_path(self) -> Path:
        return self.config.resolve_intermediate_dir() / self.config.manifest_file_name

    # Target checks

    def ignore_class(self, class_info: ClassInfo) -> None:
        """Exclude a class (by reference) from every following run."""
        if not any(c is class_info for c in self.ignore_classes):
            self.ignore_classes.append(class_info)
            self.code_generator.decorator.ignore_classes.append(class_info)

    def is_ignored_class(self, class_info: ClassInfo) -> bool:
        return self.code_generator.decorator.is_ignored(class_info)

    def header_files_can_be_found(self, class_info: ClassInfo) -> bool:
        return bool(self.code_generator.get_class_head_file_path(class_info.cpp_name))

    # Generation

    def start_generation(self) -> bool:
        """Refresh the module index. Call again whenever the class set may have changed."""
        return self.code_generator.refresh_module_info()

    def stop_generation(self) -> None:
        self.code_generator.decorator.reset()

    def generate_all(self, target_classes: list[ClassInfo], go_package_import_path_prefix: str | None = None) -> bool:
        """Generate and write replicators for the target classes, then save the manifest.

        Every artifact write is attempted even if an earlier one failed. The
        manifest is only saved when all of them succeeded, so it always
        describes a completed run.

        Returns:
            True when every artifact and the manifest were written
        """
        logger.info("Start generating %d replicators", len(target_classes))
        report = GenerationReport(target_count=len(target_classes))
        self.last_report = report

        if go_package_import_path_prefix is None:
            go_package_import_path_prefix = self.config.go_package_import_path_prefix
        proto_package_name = self.get_default_package_name()
        bundle = self.code_generator.generate(
            target_classes,
            self.get_default_module_dir(),
            proto_package_name,
            go_package_import_path_prefix + proto_package_name,
        )
        report.skipped = list(bundle.skipped)
        report.generated_class_names = [code.descriptor.generated_name for code in bundle.replicator_codes]

        for path, content in self._bundle_artifacts(bundle):
            ok, message = self.write_code_file(path, content)
            if ok:
                report.written_files.append(path.name)
            else:
                report.failed_files[path.name] = message
        if not bundle.channel_data_processor_head_code:
            # The channel data pair of an earlier run must not outlive its replicators
            for path in self._channel_data_paths():
                _delete_file(path)

        for code in bundle.replicator_codes:
            descriptor = code.descriptor
            logger.debug(
                "The replicator for the target class [%s] was generated.\n    Package path: %s\n    Head file: %s\n    CPP file: %s\n    Proto file: %s",
                descriptor.origin_name,
                descriptor.package_path,
                code.head_file_name,
                code.cpp_file_name,
                code.proto_file_name,
            )

        ok, message = self._save_registry(report.generated_class_names)
        if not ok:
            report.failed_files[REGISTRY_FILE] = message

        logger.info(
            "The generation of replicators is completed, %d replicators need to be generated, a total of %d replicators are generated",
            len(target_classes),
            len(bundle.replicator_codes),
        )

        if report.failed_files:
            report.message = f"{len(report.failed_files)} artifact(s) could not be written, the manifest was not saved"
            logger.error(report.message)
            return False

        ok, message = self.save_manifest(GeneratedManifest.now(proto_package_name))
        if not ok:
            report.message = message
            logger.error("Failed to save the generated manifest file, error message: %s", message)
            return False
        report.manifest_saved = True
        return True

    def _bundle_artifacts(self, bundle: GeneratedCodeBundle) -> list[tuple[Path, str]]:
        storage_dir = self.get_storage_dir()
        artifacts = [
            (storage_dir / TYPE_DEFINITIONS_HEAD_FILE, bundle.type_definitions_head_code),
            (storage_dir / TYPE_DEFINITIONS_CPP_FILE, bundle.type_definitions_cpp_code),
        ]
        for code in bundle.replicator_codes:
            artifacts.append((storage_dir / code.head_file_name, code.head_code))
            artifacts.append((storage_dir / code.cpp_file_name, code.cpp_code))
            artifacts.append((storage_dir / code.proto_file_name, code.proto_definitions))
        artifacts.append((storage_dir / REP_REGISTRATION_HEAD_FILE, bundle.replicator_registration_head_code))
        artifacts.append((storage_dir / GLOBAL_STRUCT_HEAD_FILE, bundle.global_struct_codes))
        artifacts.append((storage_dir / GLOBAL_STRUCT_PROTO_FILE, bundle.global_struct_proto_definitions))
        if bundle.channel_data_processor_head_code:
            head_path, proto_path = self._channel_data_paths()
            artifacts.append((head_path, bundle.channel_data_processor_head_code))
            artifacts.append((proto_path, bundle.channel_data_proto_defs_file))
        return artifacts

    def _channel_data_paths(self) -> tuple[Path, Path]:
        base_name = CHANNEL_DATA_FILE_PREFIX + self.get_default_module_name()
        storage_dir = self.get_storage_dir()
        return storage_dir / (base_name + HEAD_FILE_EXTENSION), storage_dir / (base_name + PROTO_FILE_EXTENSION)

    def write_code_file(self, file_path: Path, code: str) -> tuple[bool, str]:
        try:
            self.writer.write(file_path, code)
        except (OSError, ArtifactWriteError) as e:
            message = f"Failed to write {file_path}: {e}"
            logger.error(message)
            return False, message
        return True, ""

    # Generated artifacts

    def _head_file_pattern(self) -> re.Pattern:
        prefix = re.escape(self.config.replicator_prefix)
        return re.compile(rf"^{prefix}(\w+){REPLICATOR_SUFFIX}{re.escape(HEAD_FILE_EXTENSION)}$")

    def artifact_file_names(self, class_name: str) -> list[str]:
        """Every artifact file name derived from a generated class name."""
        replicator_base = f"{self.config.replicator_prefix}{class_name}{REPLICATOR_SUFFIX}"
        return [
            replicator_base + HEAD_FILE_EXTENSION,
            replicator_base + CPP_FILE_EXTENSION,
            class_name + PROTO_FILE_EXTENSION,
            class_name + PROTO_PB_HEAD_EXTENSION,
            class_name + PROTO_PB_CPP_EXTENSION,
        ]

    def list_generated_class_names(self) -> list[str]:
        """Names of the previously generated classes.

        Read from the registry written next to the artifacts; when it is
        missing or unreadable, recovered from the replicator head file names.
        """
        names = self._load_registry()
        if names is not None:
            return names
        return self.scan_generated_class_names()

    def scan_generated_class_names(self) -> list[str]:
        storage_dir = self.get_storage_dir()
        if not storage_dir.is_dir():
            return []
        pattern = self._head_file_pattern()
        result = []
        for head_file in sorted(p.name for p in storage_dir.glob(f"*{HEAD_FILE_EXTENSION}") if p.is_file()):
            match = pattern.match(head_file)
            if match:
                result.append(match.group(1))
        return result

    def list_generated_schema_files(self) -> list[str]:
        storage_dir = self.get_storage_dir()
        if not storage_dir.is_dir():
            return []
        return sorted(p.name for p in storage_dir.glob(f"*{PROTO_FILE_EXTENSION}") if p.is_file())

    def remove_generated(self, class_name: str) -> None:
        """Delete the artifacts of one generated class. Missing files are ignored."""
        self.remove_generated_many([class_name])

    def remove_generated_many(self, class_names: list[str]) -> None:
        storage_dir = self.get_storage_dir()
        for class_name in class_names:
            for file_name in self.artifact_file_names(class_name):
                _delete_file(storage_dir / file_name)

        names = self._load_registry()
        if names is not None:
            removed = set(class_names)
            self._write_registry([name for name in names if name not in removed])

    def purge_storage_directory(self) -> None:
        """Delete every file directly under the storage directory."""
        storage_dir = self.get_storage_dir()
        if not storage_dir.is_dir():
            return
        for path in storage_dir.iterdir():
            if path.is_file():
                _delete_file(path)

    # Registry

    def _registry_path(self) -> Path:
        return self.get_storage_dir() / REGISTRY_FILE

    def _load_registry(self) -> list[str] | None:
        path = self._registry_path()
        if not path.is_file():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Generated class registry %s is unreadable, scanning file names instead: %s", path, e)
            return None
        names = data.get("GeneratedClasses") if isinstance(data, dict) else None
        if not isinstance(names, list) or not all(isinstance(name, str) for name in names):
            logger.warning("Generated class registry %s is malformed, scanning file names instead", path)
            return None
        return names

    def _save_registry(self, generated_class_names: list[str]) -> tuple[bool, str]:
        """Record this run's classes, keeping earlier ones whose artifacts are still on disk."""
        storage_dir = self.get_storage_dir()
        previous = self._load_registry()
        if previous is None:
            previous = self.scan_generated_class_names()
        names = []
        for name in previous:
            head_file = storage_dir / self.artifact_file_names(name)[0]
            if name not in generated_class_names and name not in names and head_file.is_file():
                names.append(name)
        for name in generated_class_names:
            if name not in names:
                names.append(name)
        return self._write_registry(names)

    def _write_registry(self, names: list[str]) -> tuple[bool, str]:
        content = json.dumps({"GeneratedClasses": names}, indent=2) + "\n"
        try:
            self.writer.write(self._registry_path(), content, validate=False)
        except OSError as e:
            message = f"Failed to write {self._registry_path()}: {e}"
            logger.error(message)
            return False, message
        return True, ""

    # Manifest

    def ensure_intermediate_dir(self) -> None:
        self.config.resolve_intermediate_dir().mkdir(parents=True, exist_ok=True)

    def load_manifest(self, filename: str | Path | None = None) -> tuple[GeneratedManifest | None, str]:
        """Load a manifest, by default the one of the latest run.

        Returns:
            (manifest, "") on success, (None, reason) if the file is
            unreadable or malformed. ``latest_manifest`` is only replaced
            on success.
        """
        path = Path(filename) if filename is not None else self.get_manifest_path()
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except OSError:
            return None, f"Unable to load GeneratedManifest: {path}"

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return None, f"GeneratedManifest is malformed: {path}"
        if not isinstance(data, dict):
            return None, f"GeneratedManifest is malformed: {path}"

        manifest = GeneratedManifest.from_dict(data)
        self.latest_manifest = manifest
        return manifest, ""

    def save_manifest(self, manifest: GeneratedManifest, filename: str | Path | None = None) -> tuple[bool, str]:
        """Save a manifest, by default as the one of the latest run.

        The default location's directory is created when missing; an
        explicit filename must point into an existing directory.
        """
        if filename is None:
            self.ensure_intermediate_dir()
            path = self.get_manifest_path()
        else:
            path = Path(filename)

        if not path.parent.is_dir():
            return False, f"Unable to find the directory of GeneratedManifest: {path}"

        try:
            self.writer.write(path, json.dumps(manifest.to_dict(), indent=2) + "\n", validate=False)
        except OSError as e:
            return False, f"Unable to save GeneratedManifest: {path} ({e})"
        self.latest_manifest = manifest
        return True, ""


def find_default_module_dir(project_dir: Path) -> Path:
    """The first module directory under <project_dir>/Source that has a build rules file."""
    source_dir = project_dir / "Source"
    if source_dir.is_dir():
        for module_dir in sorted(p for p in source_dir.iterdir() if p.is_dir()):
            if any(module_dir.glob("*.Build.cs")):
                return module_dir
    return source_dir


def _delete_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error("Failed to delete %s: %s", path, e)
