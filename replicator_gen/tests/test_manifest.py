import logging
from datetime import datetime, timezone

from replicator_gen.manifest import GeneratedManifest


class TestGeneratedManifest:
    def test_to_dict(self):
        manifest = GeneratedManifest(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc), "gamepb")
        assert manifest.to_dict() == {"GeneratedTime": 1714564800, "ProtoPackageName": "gamepb"}

    def test_from_dict(self):
        manifest = GeneratedManifest.from_dict({"GeneratedTime": 1714564800, "ProtoPackageName": "gamepb"})
        assert manifest.generated_time == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert manifest.proto_package_name == "gamepb"

    def test_missing_fields_keep_defaults_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="replicator_gen"):
            manifest = GeneratedManifest.from_dict({"ProtoPackageName": "gamepb"})

        assert manifest.generated_time == datetime.fromtimestamp(0, tz=timezone.utc)
        assert manifest.proto_package_name == "gamepb"
        assert "GeneratedTime" in caplog.text

    def test_mistyped_field_keeps_default(self, caplog):
        with caplog.at_level(logging.WARNING, logger="replicator_gen"):
            manifest = GeneratedManifest.from_dict({"GeneratedTime": "yesterday", "ProtoPackageName": 3})

        assert manifest == GeneratedManifest()
        assert "ProtoPackageName" in caplog.text

    def test_now_has_second_precision(self):
        manifest = GeneratedManifest.now("gamepb")
        assert manifest.generated_time.microsecond == 0
        assert manifest.generated_time.tzinfo is timezone.utc
