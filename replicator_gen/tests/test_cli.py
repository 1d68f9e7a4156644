import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from replicator_gen.cli import replicator_gen

SAMPLE_METADATA_FILE = Path(__file__).parent / "test_data" / "sample_project" / "metadata.json"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, project_dir):
    def _invoke(*args, input=None):
        return runner.invoke(replicator_gen, ["--project-dir", str(project_dir), *args], input=input)

    return _invoke


@pytest.fixture
def generate_args(module_manifest_path):
    return ["generate", str(SAMPLE_METADATA_FILE), "--module-manifest", str(module_manifest_path)]


def storage_dir(project_dir):
    return project_dir / "Source" / "Game" / "ChanneldGenerated"


class TestGenerate:
    def test_generate_every_class(self, invoke, generate_args, project_dir):
        result = invoke(*generate_args)

        assert result.exit_code == 0, result.output
        assert "Generated 5 replicator(s)" in result.output
        assert "Skipped /Script/Game.Orphan" in result.output
        assert (storage_dir(project_dir) / "ChanneldPawn_2Replicator.h").is_file()
        assert (project_dir / "Intermediate" / "ReplicatorGenerator" / "GeneratedManifest.json").is_file()

    def test_generate_selected_classes(self, invoke, generate_args, project_dir):
        result = invoke(*generate_args, "--class", "/Script/Game.Ghost", "--class", "/Script/Game.Pawn")

        assert result.exit_code == 0, result.output
        heads = sorted(p.name for p in storage_dir(project_dir).glob("Channeld*Replicator.h"))
        assert heads == ["ChanneldGhostReplicator.h", "ChanneldPawnReplicator.h"]

    def test_unknown_class(self, invoke, generate_args):
        result = invoke(*generate_args, "--class", "/Script/Game.Nothing")
        assert result.exit_code == 2
        assert "/Script/Game.Nothing" in result.output

    def test_missing_module_manifest(self, invoke):
        result = invoke("generate", str(SAMPLE_METADATA_FILE))
        assert result.exit_code == 1
        assert "module manifest" in result.output

    def test_package_option_overrides_config(self, invoke, generate_args, project_dir, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"proto_package_name": "fromconfigpb", "go_package_import_path_prefix": "example.com/game/"}))

        result = invoke("--config", str(config_file), *generate_args, "--class", "/Script/Game.Ghost")
        assert result.exit_code == 0, result.output
        assert "package fromconfigpb;" in (storage_dir(project_dir) / "Ghost.proto").read_text()

        result = invoke("--config", str(config_file), *generate_args, "--class", "/Script/Game.Ghost", "--package", "clipb")
        assert result.exit_code == 0, result.output
        proto = (storage_dir(project_dir) / "Ghost.proto").read_text()
        assert "package clipb;" in proto
        assert 'option go_package = "example.com/game/clipb";' in proto

    def test_command_line_in_generation_comment(self, invoke, generate_args, project_dir):
        result = invoke(*generate_args, "--class", "/Script/Game.Ghost")
        assert result.exit_code == 0, result.output

        head = (storage_dir(project_dir) / "ChanneldGhostReplicator.h").read_text()
        assert "// Command: replicator_gen generate metadata.json --class /Script/Game.Ghost" in head

    def test_log_file(self, invoke, generate_args, tmp_path):
        log_file = tmp_path / "replicator_gen.log"
        result = invoke("--verbose", "--log-file", str(log_file), *generate_args)

        assert result.exit_code == 0, result.output
        log = log_file.read_text()
        assert "Start generating 6 replicators" in log
        assert "DEBUG" in log


class TestArtifactCommands:
    @pytest.fixture(autouse=True)
    def generated(self, invoke, generate_args):
        result = invoke(*generate_args)
        assert result.exit_code == 0, result.output

    def test_list(self, invoke):
        result = invoke("list")
        assert result.exit_code == 0
        assert result.output.split() == ["GameCharacter", "GameHero", "Pawn", "Pawn_2", "Ghost"]

    def test_list_schemas(self, invoke):
        result = invoke("list-schemas")
        assert result.exit_code == 0
        assert "Ghost.proto" in result.output.split()
        assert "ChannelData_Game.proto" in result.output.split()

    def test_remove(self, invoke):
        result = invoke("remove", "Pawn_2", "Ghost")
        assert result.exit_code == 0, result.output
        assert invoke("list").output.split() == ["GameCharacter", "GameHero", "Pawn"]

    def test_purge(self, invoke, project_dir):
        result = invoke("purge", "--yes")
        assert result.exit_code == 0, result.output
        assert list(storage_dir(project_dir).iterdir()) == []

    def test_purge_asks_for_confirmation(self, invoke, project_dir):
        result = invoke("purge", input="n\n")
        assert result.exit_code == 1
        assert (storage_dir(project_dir) / "ChanneldGhostReplicator.h").exists()

    def test_manifest(self, invoke):
        result = invoke("manifest")
        assert result.exit_code == 0, result.output
        manifest = json.loads(result.output)
        assert manifest["ProtoPackageName"] == "channeldgenpb"
        assert isinstance(manifest["GeneratedTime"], int)

    def test_manifest_missing(self, invoke, tmp_path):
        result = invoke("manifest", "--path", str(tmp_path / "missing.json"))
        assert result.exit_code == 1
        assert "Unable to load GeneratedManifest" in result.output
