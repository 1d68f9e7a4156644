"""
Code generation from decorated classes.

Turns ClassDescriptors into text artifacts: one replicator (header,
source, schema) per class, the shared type definitions, the replicator
registration header, the global struct helpers and the channel data
processor that merges the state of every generated class.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import jinja2

from . import __version__
from .config import GeneratorConfig
from .decorator import ClassDecorator, ClassDescriptor, FieldDescriptor, FieldKind, decorate_properties, unique_field_name
from .definitions import (
    CHANNEL_DATA_FILE_PREFIX,
    GENERATED_LOG_CATEGORY,
    GLOBAL_STRUCT_HEAD_FILE,
    GLOBAL_STRUCT_PROTO_FILE,
    PROTO_PB_HEAD_EXTENSION,
    TYPE_DEFINITIONS_HEAD_FILE,
    UNREAL_COMMON_PROTO_FILE,
    UNREAL_PROTO_PACKAGE,
)
from .logging import get_logger
from .metadata import ClassInfo, MetadataProvider, StructInfo, iter_super_chain
from .module_info import TypeMetadataResolver

CURRENT_DIR = Path(__file__).parent.resolve().absolute()

logger = get_logger("codegen")


@dataclass(frozen=True)
class FieldCodec:
    """C++ snippets converting one kind of value to and from its protobuf field.

    Placeholders: {msg} message object, {acc} protobuf accessor name,
    {value} C++ or protobuf value, {type} C++ element type,
    {object_class} pointed-to class, {world} UWorld expression.
    """

    assign: str
    append: str
    read: str


FIELD_CODECS = {
    FieldKind.SCALAR: FieldCodec(
        assign="{msg}.set_{acc}({value});",
        append="{msg}.add_{acc}({value});",
        read="{value}",
    ),
    FieldKind.ENUM: FieldCodec(
        assign="{msg}.set_{acc}(static_cast<uint32>({value}));",
        append="{msg}.add_{acc}(static_cast<uint32>({value}));",
        read="static_cast<{type}>({value})",
    ),
    FieldKind.STRING: FieldCodec(
        assign="{msg}.set_{acc}(TCHAR_TO_UTF8(*{value}));",
        append="{msg}.add_{acc}(TCHAR_TO_UTF8(*{value}));",
        read="FString(UTF8_TO_TCHAR({value}.c_str()))",
    ),
    FieldKind.NAME: FieldCodec(
        assign="{msg}.set_{acc}(TCHAR_TO_UTF8(*{value}.ToString()));",
        append="{msg}.add_{acc}(TCHAR_TO_UTF8(*{value}.ToString()));",
        read="FName(UTF8_TO_TCHAR({value}.c_str()))",
    ),
    FieldKind.TEXT: FieldCodec(
        assign="{msg}.set_{acc}(TCHAR_TO_UTF8(*{value}.ToString()));",
        append="{msg}.add_{acc}(TCHAR_TO_UTF8(*{value}.ToString()));",
        read="FText::FromString(UTF8_TO_TCHAR({value}.c_str()))",
    ),
    FieldKind.VECTOR: FieldCodec(
        assign="ChanneldUtils::SetVectorToPB({msg}.mutable_{acc}(), {value});",
        append="ChanneldUtils::SetVectorToPB({msg}.add_{acc}(), {value});",
        read="ChanneldUtils::GetVector({value})",
    ),
    FieldKind.ROTATOR: FieldCodec(
        assign="ChanneldUtils::SetRotatorToPB({msg}.mutable_{acc}(), {value});",
        append="ChanneldUtils::SetRotatorToPB({msg}.add_{acc}(), {value});",
        read="ChanneldUtils::GetRotator({value})",
    ),
    FieldKind.OBJECT: FieldCodec(
        assign="{msg}.mutable_{acc}()->CopyFrom(*ChanneldUtils::GetRefOfObject({value}));",
        append="{msg}.add_{acc}()->CopyFrom(*ChanneldUtils::GetRefOfObject({value}));",
        read="Cast<{object_class}>(ChanneldUtils::GetObjectByRef(&{value}, {world}))",
    ),
    FieldKind.STRUCT: FieldCodec(
        assign="ChanneldGlobalStruct::ToProto({value}, *{msg}.mutable_{acc}());",
        append="ChanneldGlobalStruct::ToProto({value}, *{msg}.add_{acc}());",
        read="ChanneldGlobalStruct::FromProto({value}, {world})",
    ),
}

INCLUDE_CODE_TEMPLATE = '#include "{{ d.head_file_name }}"'

REGISTER_CODE_TEMPLATE = 'REGISTER_REPLICATOR({{ d.replicator_class_name }}, TEXT("{{ d.package_path }}"));'

PATH_FNAME_DECL_TEMPLATE = 'const FName {{ d.path_fname_var }} = FName(TEXT("{{ d.package_path }}"));'

MERGE_CODE_TEMPLATE = """\
if (Src{{ d.entry_var }}.has_state())
{
	Dst{{ d.entry_var }}->mutable_state()->MergeFrom(Src{{ d.entry_var }}.state());
}"""

GET_STATE_CODE_TEMPLATE = """\
if (TargetClassPathFName == {{ d.path_fname_var }})
{
	bIsRemoved = {{ d.entry_var }}->removed();
	return {{ d.entry_var }}->mutable_state();
}"""

SET_STATE_CODE_TEMPLATE = """\
if (TargetClassPathFName == {{ d.path_fname_var }})
{
	if (State == nullptr)
	{
		{{ d.entry_var }}->set_removed(true);
		return;
	}
	{{ d.entry_var }}->mutable_state()->MergeFrom(*static_cast<const {{ d.full_state_type }}*>(State));
	return;
}"""


@dataclass
class ReplicatorCode:
    """Generated artifacts of one class plus the fragments spliced into shared artifacts."""

    descriptor: ClassDescriptor

    head_file_name: str = ""
    head_code: str = ""

    cpp_file_name: str = ""
    cpp_code: str = ""

    proto_file_name: str = ""
    proto_definitions: str = ""

    include_code: str = ""
    register_code: str = ""

    path_fname_decl: str = ""
    merge_code: str = ""
    get_state_code: str = ""
    set_state_code: str = ""


@dataclass
class SkippedClass:
    """A target class that produced no replicator, and why."""

    class_name: str
    path_name: str
    reason: str


@dataclass
class GeneratedCodeBundle:
    """Everything one generation run produced."""

    type_definitions_head_code: str = ""
    type_definitions_cpp_code: str = ""

    replicator_registration_head_code: str = ""

    replicator_codes: list[ReplicatorCode] = field(default_factory=list)

    global_struct_codes: str = ""
    global_struct_proto_definitions: str = ""

    channel_data_processor_head_code: str = ""
    channel_data_proto_defs_file: str = ""

    skipped: list[SkippedClass] = field(default_factory=list)


@dataclass
class GlobalStruct:
    name: str
    fields: list[FieldDescriptor]


class CodeGenerator:
    """Generates replicator code for a list of target classes.

    The generator is stateless between runs except for the module index
    held by its resolver; ``generate`` resets the naming counters.
    """

    def __init__(
        self,
        resolver: TypeMetadataResolver,
        config: GeneratorConfig | None = None,
        metadata_provider: MetadataProvider | None = None,
        ignore_classes: list[ClassInfo] | None = None,
    ):
        self.config = config or GeneratorConfig()
        self.resolver = resolver
        self.metadata_provider = metadata_provider
        self.decorator = ClassDecorator(
            resolver,
            replicator_prefix=self.config.replicator_prefix,
            ignore_classes=ignore_classes,
            ignore_class_paths=self.config.ignore_class_paths,
        )
        # Reconstructed command line, set by the CLI for the generation comment
        self.command_line: str | None = None
        self._setup_templates()

    def _setup_templates(self) -> None:
        """Set up Jinja2 templates."""
        self.jinja_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(CURRENT_DIR / "templates")),
            lstrip_blocks=True,
            trim_blocks=True,
            keep_trailing_newline=True,
            undefined=jinja2.StrictUndefined,
        )
        self.jinja_env.globals["write_field"] = write_field
        self.jinja_env.globals["apply_field"] = apply_field
        self.jinja_env.globals["field_label"] = field_label

        self.head_template = self.jinja_env.get_template("cpp/replicator.h.jinja2")
        self.cpp_template = self.jinja_env.get_template("cpp/replicator.cpp.jinja2")
        self.proto_template = self.jinja_env.get_template("proto/replicator.proto.jinja2")
        self.type_definitions_head_template = self.jinja_env.get_template("cpp/type_definitions.h.jinja2")
        self.type_definitions_cpp_template = self.jinja_env.get_template("cpp/type_definitions.cpp.jinja2")
        self.registration_template = self.jinja_env.get_template("cpp/registration.h.jinja2")
        self.global_struct_head_template = self.jinja_env.get_template("cpp/global_struct.h.jinja2")
        self.global_struct_proto_template = self.jinja_env.get_template("proto/global_struct.proto.jinja2")
        self.channel_data_processor_template = self.jinja_env.get_template("cpp/channel_data_processor.h.jinja2")
        self.channel_data_proto_template = self.jinja_env.get_template("proto/channel_data.proto.jinja2")

        self.include_code_template = self.jinja_env.from_string(INCLUDE_CODE_TEMPLATE)
        self.register_code_template = self.jinja_env.from_string(REGISTER_CODE_TEMPLATE)
        self.path_fname_decl_template = self.jinja_env.from_string(PATH_FNAME_DECL_TEMPLATE)
        self.merge_code_template = self.jinja_env.from_string(MERGE_CODE_TEMPLATE)
        self.get_state_code_template = self.jinja_env.from_string(GET_STATE_CODE_TEMPLATE)
        self.set_state_code_template = self.jinja_env.from_string(SET_STATE_CODE_TEMPLATE)

    def _generation_comment(self) -> list[str]:
        if not self.config.add_generation_comment:
            return []
        lines = [f"Generated by replicator_gen {__version__}. DO NOT EDIT."]
        if self.command_line:
            lines.append(f"Command: {self.command_line}")
        return lines

    def _render(self, template: jinja2.Template, **context) -> str:
        return template.render(
            generation_comment=self._generation_comment(),
            log_category=GENERATED_LOG_CATEGORY,
            type_definitions_head_file=TYPE_DEFINITIONS_HEAD_FILE,
            global_struct_head_file=GLOBAL_STRUCT_HEAD_FILE,
            global_struct_proto_file=GLOBAL_STRUCT_PROTO_FILE,
            unreal_common_proto_file=UNREAL_COMMON_PROTO_FILE,
            **context,
        )

    def refresh_module_info(self) -> bool:
        return self.resolver.refresh_module_info()

    def get_class_head_file_path(self, class_name: str) -> str:
        return self.resolver.resolve_header_path(class_name)

    def generate(
        self,
        target_classes: list[ClassInfo],
        default_module_dir: str | Path,
        proto_package_name: str,
        go_package_import_path: str,
    ) -> GeneratedCodeBundle:
        """Generate every artifact for the target classes.

        Target order is significant: it decides collision suffixes and the
        layout of the channel data message. A class that cannot be
        decorated is recorded in ``bundle.skipped`` and the rest carry on.
        """
        self.decorator.reset()
        bundle = GeneratedCodeBundle()

        for target_class in target_classes:
            replicator_code, message = self.generate_class_code(target_class, proto_package_name, go_package_import_path)
            if replicator_code is None:
                logger.warning("Skipping %s: %s", target_class.path_name, message)
                bundle.skipped.append(SkippedClass(target_class.name, target_class.path_name, message))
                continue
            bundle.replicator_codes.append(replicator_code)

        descriptors = [code.descriptor for code in bundle.replicator_codes]
        children = self.classify_children(descriptors)

        bundle.type_definitions_head_code, bundle.type_definitions_cpp_code = self.generate_type_definitions(descriptors)
        bundle.replicator_registration_head_code = self.generate_registration_code(bundle.replicator_codes)
        bundle.global_struct_codes, bundle.global_struct_proto_definitions = self.generate_global_struct_code(
            descriptors, proto_package_name, go_package_import_path
        )

        module_name = Path(default_module_dir).name
        processor_code, message = self.generate_channel_data_processor_code(
            descriptors,
            children,
            channel_data_message_name=self.config.channel_data_message_name,
            channel_data_processor_namespace=self.config.channel_data_processor_namespace or f"{module_name}ChannelDataProcessor",
            channel_data_processor_class_name=self.config.channel_data_processor_class_name or f"F{module_name}ChannelDataProcessor",
            channel_data_proto_head_file_name=f"{CHANNEL_DATA_FILE_PREFIX}{module_name}{PROTO_PB_HEAD_EXTENSION}",
            proto_package_name=proto_package_name,
            replicator_codes=bundle.replicator_codes,
        )
        proto_code, _ = self.generate_channel_data_proto_def_file(
            descriptors, self.config.channel_data_message_name, proto_package_name, go_package_import_path
        )
        if processor_code is None or proto_code is None:
            logger.info("No channel data processor generated: %s", message)
        else:
            bundle.channel_data_processor_head_code = processor_code
            bundle.channel_data_proto_defs_file = proto_code

        return bundle

    def generate_class_code(
        self,
        target_class: ClassInfo,
        proto_package_name: str,
        go_package_import_path: str,
    ) -> tuple[ReplicatorCode | None, str]:
        """Decorate one class and generate its replicator.

        Returns:
            (code, "") on success, (None, reason) otherwise
        """
        descriptor, message = self.decorator.decorate(
            target_class,
            proto_package_name,
            go_package_import_path,
            init_properties_and_rpcs=True,
            increment_if_same_name=self.config.increment_if_same_name,
        )
        if descriptor is None:
            return None, message
        return self.generate_replicator_code(descriptor), ""

    def generate_replicator_code(self, descriptor: ClassDescriptor) -> ReplicatorCode:
        """Render the replicator files and splice fragments of one decorated class."""
        code = self.generate_replicator_code_fragments(descriptor)
        code.head_file_name = descriptor.head_file_name
        code.head_code = self._render(self.head_template, d=descriptor)
        code.cpp_file_name = descriptor.cpp_file_name
        code.cpp_code = self._render(self.cpp_template, d=descriptor)
        code.proto_file_name = descriptor.proto_file_name
        code.proto_definitions = self._render(self.proto_template, d=descriptor)
        code.include_code = self.include_code_template.render(d=descriptor)
        code.register_code = self.register_code_template.render(d=descriptor)
        return code

    def generate_replicator_code_fragments(self, descriptor: ClassDescriptor) -> ReplicatorCode:
        """Render only the channel data splice fragments of one class."""
        return ReplicatorCode(
            descriptor=descriptor,
            path_fname_decl=self.path_fname_decl_template.render(d=descriptor),
            merge_code=self.merge_code_template.render(d=descriptor),
            get_state_code=self.get_state_code_template.render(d=descriptor),
            set_state_code=self.set_state_code_template.render(d=descriptor),
        )

    def generate_type_definitions(self, descriptors: list[ClassDescriptor]) -> tuple[str, str]:
        head_code = self._render(self.type_definitions_head_template, descriptors=descriptors)
        cpp_code = self._render(self.type_definitions_cpp_template)
        return head_code, cpp_code

    def generate_registration_code(self, replicator_codes: list[ReplicatorCode]) -> str:
        return self._render(self.registration_template, replicator_codes=replicator_codes)

    def generate_global_struct_code(
        self,
        descriptors: list[ClassDescriptor],
        proto_package_name: str,
        go_package_import_path: str,
    ) -> tuple[str, str]:
        """Generate the C++ helpers and schema of every struct used by the descriptors."""
        structs = collect_global_structs(descriptors)
        include_paths = []
        for descriptor in descriptors:
            if descriptor.uses_global_structs() and descriptor.include_path not in include_paths:
                include_paths.append(descriptor.include_path)

        head_code = self._render(
            self.global_struct_head_template,
            structs=structs,
            package=proto_package_name,
            include_paths=include_paths,
            global_struct_proto_head_file=GLOBAL_STRUCT_PROTO_FILE.replace(".proto", PROTO_PB_HEAD_EXTENSION),
        )
        proto_code = self._render(
            self.global_struct_proto_template,
            structs=structs,
            package=proto_package_name,
            go_package_import_path=go_package_import_path,
            uses_unreal_types=any(f.proto_type.startswith(f"{UNREAL_PROTO_PACKAGE}.") for s in structs for f in s.fields),
        )
        return head_code, proto_code

    def classify_children(self, descriptors: list[ClassDescriptor]) -> list[ClassDescriptor]:
        """Link each descriptor to its nearest ancestor generated in the same run.

        Sets ``parent_name`` on every child and returns the children in
        generation order.
        """
        if self.metadata_provider is None:
            return []
        first_by_path: dict[str, ClassDescriptor] = {}
        for descriptor in descriptors:
            first_by_path.setdefault(descriptor.package_path, descriptor)

        children = []
        for descriptor in descriptors:
            descriptor.parent_name = None
            for ancestor in iter_super_chain(descriptor.source, self.metadata_provider):
                parent = first_by_path.get(ancestor.path_name)
                if parent is not None and parent is not descriptor:
                    descriptor.parent_name = parent.generated_name
                    children.append(descriptor)
                    break
        return children

    def generate_channel_data_processor_code(
        self,
        target_actors: list[ClassDescriptor],
        children_of_actors: list[ClassDescriptor],
        channel_data_message_name: str,
        channel_data_processor_namespace: str,
        channel_data_processor_class_name: str,
        channel_data_proto_head_file_name: str,
        proto_package_name: str,
        replicator_codes: list[ReplicatorCode] | None = None,
    ) -> tuple[str | None, str]:
        """Generate the processor merging every class state into one channel data message.

        Children are folded into the block of their parent, found by
        generated name; everything else is emitted in target order. The
        splice fragments are taken from ``replicator_codes`` when given and
        rendered for the remaining classes.

        Returns:
            (code, "") on success, (None, reason) for an empty target list
        """
        if not target_actors:
            return None, "No target classes to generate a channel data processor for"

        tree = _ClassTree(target_actors, children_of_actors)
        codes = {id(code.descriptor): code for code in replicator_codes or []}
        for descriptor in target_actors:
            if id(descriptor) not in codes:
                codes[id(descriptor)] = self.generate_replicator_code_fragments(descriptor)

        merge_blocks = [_indent(self._merge_block(root, tree, codes), 3) for root in tree.roots]
        get_state_blocks = [_indent(self._get_state_block(root, tree, codes), 3) for root in tree.roots]
        set_state_blocks = [_indent(self._set_state_block(root, tree, codes), 3) for root in tree.roots]

        code = self._render(
            self.channel_data_processor_template,
            namespace=channel_data_processor_namespace,
            class_name=channel_data_processor_class_name,
            channel_data_proto_head_file=channel_data_proto_head_file_name,
            message_type=f"{proto_package_name}::{channel_data_message_name}",
            merge_blocks=merge_blocks,
            get_state_blocks=get_state_blocks,
            set_state_blocks=set_state_blocks,
            path_fname_decls=[codes[id(d)].path_fname_decl for d in target_actors],
        )
        return code, ""

    def _merge_block(self, root: ClassDescriptor, tree: _ClassTree, codes: dict[int, ReplicatorCode]) -> str:
        lines = [
            f"for (auto& Pair : Src->{root.entries_field_name}())",
            "{",
            f"\tauto* DstEntries = Dst->mutable_{root.entries_field_name}();",
            "\tif (Pair.second.removed())",
            "\t{",
            "\t\tDstEntries->erase(Pair.first);",
            "\t\tcontinue;",
            "\t}",
            f"\tconst auto& Src{root.entry_var} = Pair.second;",
            f"\tauto* Dst{root.entry_var} = &(*DstEntries)[Pair.first];",
            _indent(self._merge_body(root, tree, codes), 1),
            "}",
        ]
        return "\n".join(lines)

    def _merge_body(self, descriptor: ClassDescriptor, tree: _ClassTree, codes: dict[int, ReplicatorCode]) -> str:
        parts = [codes[id(descriptor)].merge_code]
        for child in tree.children_of(descriptor):
            field_name = child.entry_field_name
            parts.append(
                "\n".join(
                    [
                        f"if (Src{descriptor.entry_var}.has_{field_name}())",
                        "{",
                        f"\tconst auto& Src{child.entry_var} = Src{descriptor.entry_var}.{field_name}();",
                        f"\tif (Src{child.entry_var}.removed())",
                        "\t{",
                        f"\t\tDst{descriptor.entry_var}->clear_{field_name}();",
                        "\t}",
                        "\telse",
                        "\t{",
                        f"\t\tauto* Dst{child.entry_var} = Dst{descriptor.entry_var}->mutable_{field_name}();",
                        _indent(self._merge_body(child, tree, codes), 2),
                        "\t}",
                        "}",
                    ]
                )
            )
        return "\n".join(parts)

    def _get_state_block(self, root: ClassDescriptor, tree: _ClassTree, codes: dict[int, ReplicatorCode]) -> str:
        lines = [
            "{",
            f"\tauto* Entries = TypedChannelData->mutable_{root.entries_field_name}();",
            "\tauto EntryIt = Entries->find(NetGUID);",
            "\tif (EntryIt != Entries->end())",
            "\t{",
            f"\t\tauto* {root.entry_var} = &EntryIt->second;",
            _indent(self._get_state_body(root, tree, codes), 2),
            "\t}",
            "}",
        ]
        return "\n".join(lines)

    def _get_state_body(self, descriptor: ClassDescriptor, tree: _ClassTree, codes: dict[int, ReplicatorCode]) -> str:
        parts = [codes[id(descriptor)].get_state_code]
        for child in tree.children_of(descriptor):
            parts.append(
                "\n".join(
                    [
                        f"if ({descriptor.entry_var}->has_{child.entry_field_name}())",
                        "{",
                        f"\tauto* {child.entry_var} = {descriptor.entry_var}->mutable_{child.entry_field_name}();",
                        _indent(self._get_state_body(child, tree, codes), 1),
                        "}",
                    ]
                )
            )
        return "\n".join(parts)

    def _set_state_block(self, root: ClassDescriptor, tree: _ClassTree, codes: dict[int, ReplicatorCode]) -> str:
        lines = [
            f"if ({_path_condition(tree.subtree(root))})",
            "{",
            f"\tauto* {root.entry_var} = &(*TypedChannelData->mutable_{root.entries_field_name}())[NetGUID];",
            _indent(self._set_state_body(root, tree, codes), 1),
            "}",
        ]
        return "\n".join(lines)

    def _set_state_body(self, descriptor: ClassDescriptor, tree: _ClassTree, codes: dict[int, ReplicatorCode]) -> str:
        parts = [codes[id(descriptor)].set_state_code]
        for child in tree.children_of(descriptor):
            parts.append(
                "\n".join(
                    [
                        f"if ({_path_condition(tree.subtree(child))})",
                        "{",
                        f"\tauto* {child.entry_var} = {descriptor.entry_var}->mutable_{child.entry_field_name}();",
                        _indent(self._set_state_body(child, tree, codes), 1),
                        "}",
                    ]
                )
            )
        return "\n".join(parts)

    def generate_channel_data_proto_def_file(
        self,
        target_actors: list[ClassDescriptor],
        channel_data_message_name: str,
        proto_package_name: str,
        go_package_import_path: str,
    ) -> tuple[str | None, str]:
        """Generate the channel data schema: one map field per top-level class.

        Returns:
            (schema, "") on success, (None, reason) for an empty target list
        """
        if not target_actors:
            return None, "No target classes to generate channel data schema for"

        tree = _ClassTree(target_actors, [d for d in target_actors if d.parent_name])
        imports = []
        for descriptor in target_actors:
            if descriptor.proto_file_name not in imports:
                imports.append(descriptor.proto_file_name)

        code = self._render(
            self.channel_data_proto_template,
            package=proto_package_name,
            go_package_import_path=go_package_import_path,
            message_name=channel_data_message_name,
            imports=imports,
            entry_messages=[_indent(_entry_message(root, tree), 1, "    ") for root in tree.roots],
            roots=tree.roots,
        )
        return code, ""


class _ClassTree:
    """Parent/child view over the generated classes, in generation order.

    Also assigns every descriptor its channel data field name. Distinct
    generated names may share a snake_case form ("GameHero", "Game_Hero"),
    so later ones get a numeric suffix. The assignment only depends on the
    descriptor order, so the processor and the schema agree.
    """

    def __init__(self, descriptors: list[ClassDescriptor], children: list[ClassDescriptor]):
        by_name = {}
        used_field_names: set[str] = set()
        for descriptor in descriptors:
            by_name.setdefault(descriptor.generated_name, descriptor)
            descriptor.channel_data_field_name = unique_field_name(descriptor.snake_name, used_field_names)
        child_ids = set()
        self._children: dict[int, list[ClassDescriptor]] = {}
        for child in children:
            parent = by_name.get(child.parent_name) if child.parent_name else None
            if parent is None or parent is child:
                continue
            self._children.setdefault(id(parent), []).append(child)
            child_ids.add(id(child))
        self.roots = [d for d in descriptors if id(d) not in child_ids]

    def children_of(self, descriptor: ClassDescriptor) -> list[ClassDescriptor]:
        return self._children.get(id(descriptor), [])

    def subtree(self, descriptor: ClassDescriptor) -> list[ClassDescriptor]:
        result = [descriptor]
        for child in self.children_of(descriptor):
            result.extend(self.subtree(child))
        return result


def _entry_message(descriptor: ClassDescriptor, tree: _ClassTree) -> str:
    lines = [f"message {descriptor.entry_message_name} {{"]
    children = tree.children_of(descriptor)
    for child in children:
        lines.append(_indent(_entry_message(child, tree), 1, "    "))
        lines.append("")
    lines.append("    bool removed = 1;")
    lines.append(f"    {descriptor.state_message_name} state = 2;")
    for index, child in enumerate(children, start=3):
        lines.append(f"    {child.entry_message_name} {child.entry_field_name} = {index};")
    lines.append("}")
    return "\n".join(lines)


def _path_condition(descriptors: list[ClassDescriptor]) -> str:
    return " || ".join(f"TargetClassPathFName == {d.path_fname_var}" for d in descriptors)


def _indent(text: str, depth: int, unit: str = "\t") -> str:
    prefix = unit * depth
    return "\n".join(prefix + line if line else line for line in text.split("\n"))


def collect_global_structs(descriptors: list[ClassDescriptor]) -> list[GlobalStruct]:
    """Collect every struct reachable from the descriptors' fields and RPC parameters.

    Nested structs come before the structs that contain them; each struct
    appears once, in first-seen order.
    """
    result: list[GlobalStruct] = []
    seen: set[str] = set()

    def visit(struct_info: StructInfo) -> None:
        if struct_info.name in seen:
            return
        seen.add(struct_info.name)
        fields = decorate_properties(struct_info.properties, struct_info.name)
        for f in fields:
            if f.kind == FieldKind.STRUCT:
                visit(f.struct)
        result.append(GlobalStruct(name=struct_info.name, fields=fields))

    for descriptor in descriptors:
        for f in descriptor.all_fields():
            if f.kind == FieldKind.STRUCT:
                visit(f.struct)
    return result


def _format_codec(template: str, f: FieldDescriptor, msg: str = "", value: str = "", world: str = "") -> str:
    return template.format(
        msg=msg,
        acc=f.proto_field_name,
        value=value,
        type=f.element_cpp_type,
        object_class=f.object_class,
        world=world,
    )


def write_field(f: FieldDescriptor, msg: str, value: str, indent: str = "") -> str:
    """C++ statements copying a C++ value into the field of a protobuf message object."""
    codec = FIELD_CODECS[f.kind]
    if not f.is_repeated:
        return _format_codec(codec.assign, f, msg=msg, value=value)
    lines = [
        f"for (const auto& Element : {value})",
        "{",
        "\t" + _format_codec(codec.append, f, msg=msg, value="Element"),
        "}",
    ]
    return ("\n" + indent).join(lines)


def apply_field(f: FieldDescriptor, target: str, proto_value: str, world: str, indent: str = "") -> str:
    """C++ statements assigning a protobuf field value to a C++ target."""
    codec = FIELD_CODECS[f.kind]
    if not f.is_repeated:
        return f"{target} = {_format_codec(codec.read, f, value=proto_value, world=world)};"
    lines = [
        f"{target}.Reset();",
        f"for (const auto& Element : {proto_value})",
        "{",
        f"\t{target}.Add({_format_codec(codec.read, f, value='Element', world=world)});",
        "}",
    ]
    return ("\n" + indent).join(lines)


def field_label(f: FieldDescriptor, track_presence: bool) -> str:
    """Protobuf label prefix: repeated, optional (for presence tracking) or none."""
    if f.is_repeated:
        return "repeated "
    if track_presence and not f.is_message:
        return "optional "
    return ""
