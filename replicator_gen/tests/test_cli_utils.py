import click
from click.testing import CliRunner

from replicator_gen.cli import generate
from replicator_gen.cli_utils import reconstruct_command_line


class TestCliUtils:
    def test_reconstruct_command_line_without_context(self):
        assert reconstruct_command_line(generate) == "replicator_gen"

    def test_reconstruct_command_line_in_context(self):
        @click.command("build")
        @click.argument("source")
        @click.option("--tag", "tags", multiple=True)
        @click.option("--package", default="channeldgenpb")
        @click.option("--force", is_flag=True, default=False)
        def build(source, tags, package, force):
            click.echo(reconstruct_command_line(build))

        result = CliRunner().invoke(build, ["in.json", "--tag", "a", "--tag", "b", "--force"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "replicator_gen build in.json --tag a --tag b --force"
