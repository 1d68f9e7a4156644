import pytest

from replicator_gen.writer import ArtifactWriteError, ArtifactWriter


class TestArtifactWriter:
    def test_write_creates_parent_directories(self, tmp_path):
        path = tmp_path / "a" / "b" / "Test.h"
        ArtifactWriter().write(path, "struct A {};\n")
        assert path.read_text() == "struct A {};\n"

    def test_unbalanced_cpp_is_rejected_and_target_kept(self, tmp_path):
        path = tmp_path / "Test.cpp"
        path.write_text("// previous\n")

        with pytest.raises(ArtifactWriteError, match="unbalanced braces"):
            ArtifactWriter().write(path, "void F() {\n")

        assert path.read_text() == "// previous\n"
        assert list(tmp_path.iterdir()) == [path]

    def test_proto_requires_syntax_line(self, tmp_path):
        with pytest.raises(ArtifactWriteError, match="syntax"):
            ArtifactWriter().write(tmp_path / "Test.proto", "message A {}\n")

        ArtifactWriter().write(tmp_path / "Test.proto", 'syntax = "proto3";\nmessage A {}\n')
        assert (tmp_path / "Test.proto").exists()

    def test_validation_can_be_skipped(self, tmp_path):
        ArtifactWriter().write(tmp_path / "Broken.h", "{", validate=False)
        assert (tmp_path / "Broken.h").read_text() == "{"

    def test_custom_validator(self, tmp_path):
        def reject(content):
            raise ArtifactWriteError("rejected")

        with pytest.raises(ArtifactWriteError, match="rejected"):
            ArtifactWriter(validate_cpp=reject).write(tmp_path / "Test.h", "")
        assert not (tmp_path / "Test.h").exists()
