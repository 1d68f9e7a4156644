import pytest

from replicator_gen.decorator import ClassDecorator, FieldKind, map_cpp_type
from replicator_gen.metadata import ClassInfo, PropertyInfo, StructInfo


def decorate(decorator, class_info, **kwargs):
    return decorator.decorate(class_info, "channeldgenpb", "example.com/game/channeldgenpb", **kwargs)


class TestMapCppType:
    @pytest.mark.parametrize(
        "cpp_type,kind,proto_type",
        [
            ("bool", FieldKind.SCALAR, "bool"),
            ("int16", FieldKind.SCALAR, "int32"),
            ("uint8", FieldKind.SCALAR, "uint32"),
            ("int64", FieldKind.SCALAR, "int64"),
            ("double", FieldKind.SCALAR, "double"),
            ("TEnumAsByte<EMovementMode>", FieldKind.ENUM, "uint32"),
            ("FString", FieldKind.STRING, "string"),
            ("FName", FieldKind.NAME, "string"),
            ("FText", FieldKind.TEXT, "string"),
            ("FVector", FieldKind.VECTOR, "unrealpb.FVector"),
            ("FRotator", FieldKind.ROTATOR, "unrealpb.FRotator"),
            ("AActor*", FieldKind.OBJECT, "unrealpb.UnrealObjectRef"),
            ("TObjectPtr<APawn>", FieldKind.OBJECT, "unrealpb.UnrealObjectRef"),
            ("TWeakObjectPtr<AController>", FieldKind.OBJECT, "unrealpb.UnrealObjectRef"),
        ],
    )
    def test_supported_types(self, cpp_type, kind, proto_type):
        descriptor = map_cpp_type(PropertyInfo(name="Value", cpp_type=cpp_type))
        assert descriptor.kind == kind
        assert descriptor.proto_type == proto_type
        assert not descriptor.is_repeated

    def test_flagged_enum(self):
        descriptor = map_cpp_type(PropertyInfo(name="Team", cpp_type="uint8", is_enum=True))
        assert descriptor.kind == FieldKind.ENUM

    def test_object_class(self):
        assert map_cpp_type(PropertyInfo(name="Owner", cpp_type="TObjectPtr<APawn>")).object_class == "APawn"
        assert map_cpp_type(PropertyInfo(name="Owner", cpp_type="AActor*")).object_class == "AActor"

    def test_array(self):
        descriptor = map_cpp_type(PropertyInfo(name="Ids", cpp_type="TArray<int32>"))
        assert descriptor.is_repeated
        assert descriptor.element_cpp_type == "int32"
        assert descriptor.proto_type == "int32"

    def test_struct(self):
        item = StructInfo(name="FItem")
        descriptor = map_cpp_type(PropertyInfo(name="Items", cpp_type="TArray<FItem>", struct=item))
        assert descriptor.kind == FieldKind.STRUCT
        assert descriptor.proto_type == "FItem"
        assert descriptor.struct is item

    @pytest.mark.parametrize("cpp_type", ["TMap<int32, int32>", "TArray<TArray<int32>>", "FUnknownStruct", "TSet<FName>"])
    def test_unsupported_types(self, cpp_type):
        assert map_cpp_type(PropertyInfo(name="Value", cpp_type=cpp_type)) is None


class TestClassDecorator:
    def test_decorate(self, resolver, metadata_provider):
        decorator = ClassDecorator(resolver)
        character = metadata_provider.get_class("/Script/Game.GameCharacter")
        descriptor, message = decorate(decorator, character)

        assert message == ""
        assert descriptor.origin_name == "GameCharacter"
        assert descriptor.generated_name == "GameCharacter"
        assert descriptor.package_path == "/Script/Game.GameCharacter"
        assert descriptor.module.name == "Game"
        assert descriptor.include_path == "GameCharacter.h"
        assert descriptor.source is character
        assert descriptor.properties_initialized

    def test_fields_keep_declaration_order(self, resolver, metadata_provider):
        descriptor, _ = decorate(ClassDecorator(resolver), metadata_provider.get_class("/Script/Game.GameCharacter"))

        # Secret is not replicated and Scores has an unsupported type
        assert [(f.name, f.proto_field_name, f.field_number) for f in descriptor.fields] == [
            ("Health", "health", 1),
            ("bIsCrouched", "b_is_crouched", 2),
            ("DisplayName", "display_name", 3),
            ("Loadout", "loadout", 4),
            ("Target", "target", 5),
            ("Mode", "mode", 6),
            ("Destination", "destination", 7),
        ]
        assert descriptor.uses_unreal_types()
        assert descriptor.uses_global_structs()

    def test_rpc_with_unsupported_param_is_skipped(self, resolver, metadata_provider):
        descriptor, _ = decorate(ClassDecorator(resolver), metadata_provider.get_class("/Script/Game.GameCharacter"))

        assert [rpc.name for rpc in descriptor.rpcs] == ["ServerFire"]
        rpc = descriptor.rpcs[0]
        assert rpc.params_message_name == "GameCharacter_ServerFireParams"
        assert rpc.params_struct_name == "FGameCharacter_ServerFireParams"
        assert [(p.proto_field_name, p.field_number) for p in rpc.params] == [("origin", 1), ("power", 2)]

    def test_lazy_properties(self, resolver, metadata_provider):
        descriptor, _ = decorate(
            ClassDecorator(resolver), metadata_provider.get_class("/Script/Game.Ghost"), init_properties_and_rpcs=False
        )
        assert descriptor.fields == []
        assert not descriptor.properties_initialized

    def test_derived_names(self, resolver, metadata_provider):
        descriptor, _ = decorate(ClassDecorator(resolver), metadata_provider.get_class("/Script/Game.GameHero"))

        assert descriptor.state_message_name == "GameHeroState"
        assert descriptor.full_state_type == "channeldgenpb::GameHeroState"
        assert descriptor.replicator_class_name == "FChanneldGameHeroReplicator"
        assert descriptor.head_file_name == "ChanneldGameHeroReplicator.h"
        assert descriptor.cpp_file_name == "ChanneldGameHeroReplicator.cpp"
        assert descriptor.proto_file_name == "GameHero.proto"
        assert descriptor.proto_head_file_name == "GameHero.pb.h"
        assert descriptor.entries_field_name == "game_hero_entries"

    def test_same_name_gets_suffix(self, resolver, metadata_provider):
        decorator = ClassDecorator(resolver)
        game_pawn = metadata_provider.get_class("/Script/Game.Pawn")
        extras_pawn = metadata_provider.get_class("/Script/GameExtras.Pawn")

        first, _ = decorate(decorator, game_pawn)
        second, _ = decorate(decorator, extras_pawn)
        third, _ = decorate(decorator, game_pawn)
        assert [first.generated_name, second.generated_name, third.generated_name] == ["Pawn", "Pawn_2", "Pawn_3"]

        decorator.reset()
        again, _ = decorate(decorator, extras_pawn)
        assert again.generated_name == "Pawn"

    def test_same_name_without_increment(self, resolver, metadata_provider):
        decorator = ClassDecorator(resolver)
        first, _ = decorate(decorator, metadata_provider.get_class("/Script/Game.Pawn"), increment_if_same_name=False)
        second, _ = decorate(decorator, metadata_provider.get_class("/Script/GameExtras.Pawn"), increment_if_same_name=False)
        assert first.generated_name == second.generated_name == "Pawn"

    def test_suffix_skips_names_already_taken(self, resolver):
        decorator = ClassDecorator(resolver)
        pawn_2 = ClassInfo(name="Pawn_2", path_name="/Script/Game.Pawn_2")
        pawn_a = ClassInfo(name="Pawn", path_name="/Script/Game.Pawn")
        pawn_b = ClassInfo(name="Pawn", path_name="/Script/GameExtras.Pawn")

        names = [decorator._resolve_generated_name(c, True) for c in (pawn_2, pawn_a, pawn_b)]
        assert names == ["Pawn_2", "Pawn", "Pawn_3"]

    def test_bare_name_skips_names_already_taken(self, resolver):
        decorator = ClassDecorator(resolver)
        pawn_a = ClassInfo(name="Pawn", path_name="/Script/A.Pawn")
        pawn_b = ClassInfo(name="Pawn", path_name="/Script/B.Pawn")
        pawn_2 = ClassInfo(name="Pawn_2", path_name="/Script/C.Pawn_2")

        names = [decorator._resolve_generated_name(c, True) for c in (pawn_a, pawn_b, pawn_2)]
        assert names == ["Pawn", "Pawn_2", "Pawn_2_2"]
        assert len(set(names)) == len(names)

    def test_illegal_class_name(self, resolver):
        decorator = ClassDecorator(resolver)
        first = ClassInfo(name="3DWidget", path_name="/Game/UI.3DWidget")
        second = ClassInfo(name="???", path_name="/Game/UI.Unknown")
        names = [decorator._resolve_generated_name(c, True) for c in (first, second)]
        assert names == ["IllegalClassName_0", "IllegalClassName_1"]

    def test_ignored_by_path(self, resolver, metadata_provider):
        decorator = ClassDecorator(resolver, ignore_class_paths=["/Script/Game.Ghost"])
        descriptor, message = decorate(decorator, metadata_provider.get_class("/Script/Game.Ghost"))
        assert descriptor is None
        assert "ignored" in message

    def test_ignored_by_reference(self, resolver, metadata_provider):
        game_pawn = metadata_provider.get_class("/Script/Game.Pawn")
        extras_pawn = metadata_provider.get_class("/Script/GameExtras.Pawn")
        decorator = ClassDecorator(resolver, ignore_classes=[game_pawn])

        assert decorate(decorator, game_pawn)[0] is None
        assert decorate(decorator, extras_pawn)[0].generated_name == "Pawn"

    def test_missing_header(self, resolver, metadata_provider):
        descriptor, message = decorate(ClassDecorator(resolver), metadata_provider.get_class("/Script/Game.Orphan"))
        assert descriptor is None
        assert "AOrphan" in message
