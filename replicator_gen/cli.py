import json
from pathlib import Path

import click

from .cli_utils import reconstruct_command_line
from .config import GeneratorConfig
from .logging import configure_logging, get_logger
from .manager import GenerationManager
from .metadata import MetadataProvider, StaticMetadataProvider

logger = get_logger("cli")


def _build_manager(ctx: click.Context, metadata_provider: MetadataProvider | None = None) -> GenerationManager:
    return GenerationManager(ctx.obj["config"], metadata_provider=metadata_provider)


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug messages")
@click.option("--log-file", default=None, type=click.Path(dir_okay=False, resolve_path=True), help="Also write the log to this file")
@click.option("--config", "-c", default=None, type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("--project-dir", default=None, type=click.Path(file_okay=False, resolve_path=True))
@click.option("--module-dir", default=None, type=click.Path(file_okay=False, resolve_path=True), help="Module receiving the generated code")
@click.pass_context
def replicator_gen(ctx, verbose, log_file, config, project_dir, module_dir):
    """Generate channeld replicators, schemas and channel data processors."""
    configure_logging(verbose=verbose, log_file=Path(log_file) if log_file else None)

    if config is not None:
        with open(config) as f:
            generator_config = GeneratorConfig.from_dict(json.load(f))
    else:
        generator_config = GeneratorConfig()

    # Command line flags override the config file
    if project_dir is not None:
        generator_config.project_dir = project_dir
    if module_dir is not None:
        generator_config.default_module_dir = module_dir

    ctx.ensure_object(dict)
    ctx.obj["config"] = generator_config


@replicator_gen.command()
@click.argument("metadata_json", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("--class", "class_paths", multiple=True, help="Path name of a class to generate (repeatable, default: every class)")
@click.option("--module-manifest", default=None, type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("--go-import-prefix", default=None, type=str)
@click.option("--package", default=None, type=str, help="Protobuf package of the generated schemas")
@click.pass_context
def generate(ctx, metadata_json, class_paths, module_manifest, go_import_prefix, package):
    """Generate replicators for the classes described in METADATA_JSON."""
    config: GeneratorConfig = ctx.obj["config"]
    if module_manifest is not None:
        config.module_manifest_path = module_manifest
    if package is not None:
        config.proto_package_name = package
    if go_import_prefix is not None:
        config.go_package_import_path_prefix = go_import_prefix

    try:
        provider = StaticMetadataProvider.from_file(metadata_json)
    except (OSError, ValueError, KeyError) as e:
        raise click.ClickException(f"Unable to load class metadata from {metadata_json}: {e}") from e

    if class_paths:
        target_classes = []
        for path_name in class_paths:
            class_info = provider.get_class(path_name)
            if class_info is None:
                raise click.BadParameter(f"Unknown class {path_name}", param_hint="--class")
            target_classes.append(class_info)
    else:
        target_classes = provider.list_classes()

    manager = _build_manager(ctx, provider)
    manager.code_generator.command_line = reconstruct_command_line(generate)

    if not manager.start_generation():
        raise click.ClickException(f"Unable to load the module manifest: {config.module_manifest_path or '(not set)'}")
    try:
        ok = manager.generate_all(target_classes)
    finally:
        manager.stop_generation()

    report = manager.last_report
    for skipped in report.skipped:
        click.echo(f"Skipped {skipped.path_name}: {skipped.reason}", err=True)
    click.echo(f"Generated {len(report.generated_class_names)} replicator(s) in {manager.get_storage_dir()}")
    if not ok:
        raise click.ClickException(report.message or "Generation failed")


@replicator_gen.command("list")
@click.pass_context
def list_classes(ctx):
    """List the generated class names."""
    for name in _build_manager(ctx).list_generated_class_names():
        click.echo(name)


@replicator_gen.command("list-schemas")
@click.pass_context
def list_schemas(ctx):
    """List the generated schema files."""
    for file_name in _build_manager(ctx).list_generated_schema_files():
        click.echo(file_name)


@replicator_gen.command()
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def remove(ctx, names):
    """Remove the artifacts of the given generated classes."""
    _build_manager(ctx).remove_generated_many(list(names))


@replicator_gen.command()
@click.confirmation_option(prompt="Delete every file in the storage directory?")
@click.pass_context
def purge(ctx):
    """Delete every file in the storage directory."""
    manager = _build_manager(ctx)
    manager.purge_storage_directory()
    click.echo(f"Purged {manager.get_storage_dir()}")


@replicator_gen.command()
@click.option("--path", "manifest_path", default=None, type=click.Path(dir_okay=False, resolve_path=True))
@click.pass_context
def manifest(ctx, manifest_path):
    """Show the manifest of the latest generation run."""
    generated_manifest, message = _build_manager(ctx).load_manifest(manifest_path)
    if generated_manifest is None:
        raise click.ClickException(message)
    click.echo(json.dumps(generated_manifest.to_dict(), indent=2))
