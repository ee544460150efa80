"""
Tests for input discovery: files, directories, globs and archives.
"""

import zipfile

from javastyle.console import RichLogger
from javastyle.input_sources import detect_text_encoding, expand_inputs, is_likely_binary, is_source_name


def names(items):
    return [item.display_name.rsplit("/", 1)[-1] for item in items]


class TestExpandInputs:
    """Test expanding command-line inputs into items."""

    def test_directory_recursive(self, java_file, tmp_path):
        """Directories are walked recursively for .java files only."""
        java_file("src/a/First.java", "class First {}")
        java_file("src/b/c/Second.java", "class Second {}")
        java_file("src/README.md", "# docs")
        items, missing = expand_inputs([str(tmp_path / "src")], RichLogger(quiet=True))
        assert missing == []
        assert names(items) == ["First.java", "Second.java"]
        assert not any(item.is_zip_member for item in items)

    def test_recursive_glob(self, java_file, tmp_path):
        """** globs match nested files."""
        java_file("src/a/First.java", "class First {}")
        java_file("src/b/Second.java", "class Second {}")
        java_file("src/b/notes.txt", "text")
        items, missing = expand_inputs([f"{tmp_path.as_posix()}/src/**/*.java"], RichLogger(quiet=True))
        assert missing == []
        assert names(items) == ["First.java", "Second.java"]

    def test_missing_input(self, tmp_path):
        """Inputs that do not exist or match nothing are returned as missing."""
        missing_file = str(tmp_path / "Nope.java")
        empty_glob = f"{tmp_path.as_posix()}/*.java"
        items, missing = expand_inputs([missing_file, empty_glob], RichLogger(quiet=True))
        assert items == []
        assert missing == [missing_file, empty_glob]

    def test_duplicates_collapsed(self, java_file, tmp_path):
        """A file named twice is linted once."""
        path = java_file("Only.java", "class Only {}")
        items, _ = expand_inputs([str(path), str(path), str(tmp_path)], RichLogger(quiet=True))
        assert names(items) == ["Only.java"]

    def test_archive_members(self, tmp_path):
        """Only .java members of an archive are included."""
        archive = tmp_path / "lib.jar"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("pkg/Api.java", "interface Api {}")
            zf.writestr("pkg/Api.class", b"\xca\xfe\xba\xbe")
            zf.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
        items, _ = expand_inputs([str(archive)], RichLogger(quiet=True))
        assert len(items) == 1
        assert items[0].is_zip_member
        assert items[0].zip_member == "pkg/Api.java"
        with items[0].open_binary() as handle:
            assert handle.read() == b"interface Api {}"

    def test_broken_archive_warns(self, tmp_path):
        """A corrupt archive is skipped with a warning."""
        archive = tmp_path / "broken.zip"
        archive.write_bytes(b"not a zip")
        logger = RichLogger(quiet=True)
        items, missing = expand_inputs([str(archive)], logger)
        assert items == [] and missing == []
        assert logger.warnings == 1


class TestContentSniffing:
    """Test encoding and binary detection."""

    def test_source_names(self):
        """Only .java names are sources."""
        assert is_source_name("Foo.java")
        assert is_source_name("FOO.JAVA")
        assert not is_source_name("Foo.class")

    def test_bom_detection(self):
        """Byte order marks pick the decoder."""
        assert detect_text_encoding(b"\xef\xbb\xbfclass") == "utf-8-sig"
        assert detect_text_encoding(b"\xff\xfec\x00") == "utf-16"
        assert detect_text_encoding(b"class") == "utf-8"

    def test_binary_detection(self):
        """NUL bytes mark binary content, plain text is not binary."""
        assert is_likely_binary(b"\xca\xfe\x00\x00")
        assert not is_likely_binary(b"class A {}\n")
        assert not is_likely_binary(b"")
