import json
import logging
import shutil
from pathlib import Path

import pytest

from replicator_gen.config import GeneratorConfig
from replicator_gen.manager import GenerationManager
from replicator_gen.metadata import StaticMetadataProvider
from replicator_gen.module_info import TypeMetadataResolver

TEST_DATA_DIR = Path(__file__).parent / "test_data"
SAMPLE_PROJECT_DIR = TEST_DATA_DIR / "sample_project"
SAMPLE_METADATA_FILE = SAMPLE_PROJECT_DIR / "metadata.json"


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Let caplog see package logs, even after a CLI test configured logging."""
    package_logger = logging.getLogger("replicator_gen")
    package_logger.propagate = True
    yield
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


def write_module_manifest(project_dir: Path) -> Path:
    """Write a host module manifest listing the sample module headers."""
    module_dir = project_dir / "Source" / "Game"
    headers = sorted(str(p) for p in (module_dir / "Public").glob("*.h"))
    manifest_path = project_dir / "Intermediate" / "Build" / "Game.uhtmanifest"
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "Modules": [
            {
                "Name": "Game",
                "BaseDirectory": str(module_dir),
                "IncludeBase": str(module_dir / "Public"),
                "PublicHeaders": headers,
                "PrivateHeaders": [],
            }
        ]
    }
    manifest_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    return manifest_path


@pytest.fixture
def project_dir(tmp_path):
    """A copy of the sample project with its module manifest."""
    project = tmp_path / "project"
    shutil.copytree(SAMPLE_PROJECT_DIR / "Source", project / "Source")
    write_module_manifest(project)
    return project


@pytest.fixture
def module_manifest_path(project_dir):
    return project_dir / "Intermediate" / "Build" / "Game.uhtmanifest"


@pytest.fixture
def metadata_provider():
    return StaticMetadataProvider.from_file(SAMPLE_METADATA_FILE)


@pytest.fixture
def resolver(module_manifest_path):
    resolver = TypeMetadataResolver(module_manifest_path)
    assert resolver.refresh_module_info()
    return resolver


@pytest.fixture
def config(project_dir, module_manifest_path):
    return GeneratorConfig(project_dir=str(project_dir), module_manifest_path=str(module_manifest_path))


@pytest.fixture
def manager(config, metadata_provider):
    manager = GenerationManager(config, metadata_provider=metadata_provider)
    assert manager.start_generation()
    return manager
