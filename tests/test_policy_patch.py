"""Tests for patch envelope path extraction."""

import pytest

from agentbox.policy import (
    PatchAction,
    PatchEntry,
    PatchParseError,
    parse_file_paths,
    parse_patch,
    strip_heredoc,
)


def make_patch(*lines: str) -> str:
    return "\n".join(["*** Begin Patch", *lines, "*** End Patch"])


class TestEnvelope:
    """Tests for the Begin/End markers."""

    def test_add_file(self):
        """Test a single added file is reported."""
        text = "*** Begin Patch\n*** Add File: a.txt\ncontent\n*** End Patch"
        assert parse_file_paths(text) == ["a.txt"]

    def test_missing_end_marker(self):
        """Test a patch without End Patch is rejected."""
        with pytest.raises(PatchParseError):
            parse_file_paths("*** Begin Patch\n*** Add File: a.txt\ncontent")

    def test_missing_begin_marker(self):
        """Test a patch without Begin Patch is rejected."""
        with pytest.raises(PatchParseError):
            parse_file_paths("*** Add File: a.txt\ncontent\n*** End Patch")

    def test_inverted_markers(self):
        """Test End Patch before Begin Patch is rejected."""
        with pytest.raises(PatchParseError, match="Begin/End"):
            parse_file_paths("*** End Patch\n*** Add File: a.txt\n*** Begin Patch")

    def test_parse_error_is_value_error(self):
        """Test PatchParseError can be caught as ValueError."""
        with pytest.raises(ValueError):
            parse_file_paths("")

    def test_markers_tolerate_surrounding_whitespace(self):
        """Test marker lines are compared after stripping."""
        text = "  *** Begin Patch  \n*** Delete File: x\n*** End Patch \n"
        assert parse_file_paths(text) == ["x"]

    def test_empty_envelope(self):
        """Test an envelope without records yields no paths."""
        assert parse_file_paths(make_patch()) == []

    def test_content_after_end_ignored(self):
        """Test records after End Patch are not reported."""
        text = make_patch("*** Add File: in.txt", "+x") + "\n*** Add File: out.txt"
        assert parse_file_paths(text) == ["in.txt"]


class TestRecords:
    """Tests for Add/Delete/Update records."""

    def test_delete_file(self):
        """Test deleted files are reported."""
        assert parse_file_paths(make_patch("*** Delete File: old/x.py")) == ["old/x.py"]

    def test_update_file_with_hunks(self):
        """Test updated files are reported once with their hunks counted."""
        entries = parse_patch(
            make_patch(
                "*** Update File: src/app.py",
                "@@ def main():",
                "-    pass",
                "+    run()",
                "@@ class App:",
                " context",
                "+    x = 1",
            )
        )
        assert entries == [PatchEntry(PatchAction.UPDATE, "src/app.py", None, 2)]

    def test_update_with_move(self):
        """Test a move directive yields the original then the target path."""
        text = make_patch(
            "*** Update File: src/old.py",
            "*** Move to: src/new.py",
            "@@",
            "-a",
            "+b",
        )
        assert parse_file_paths(text) == ["src/old.py", "src/new.py"]

    def test_end_of_file_sentinel(self):
        """Test End of File closes a hunk without ending the record list."""
        text = make_patch(
            "*** Update File: a.py",
            "@@",
            "+tail",
            "*** End of File",
            "*** Add File: b.py",
            "+new",
        )
        entries = parse_patch(text)
        assert [e.file_path for e in entries] == ["a.py", "b.py"]
        assert entries[0].hunks == 1

    def test_mixed_records_in_order(self):
        """Test paths come back in record order."""
        text = make_patch(
            "*** Add File: docs/new.md",
            "+hello",
            "+world",
            "*** Update File: src/app.py",
            "*** Move to: src/main.py",
            "@@",
            "-x",
            "+y",
            "*** Delete File: old.txt",
        )
        assert parse_file_paths(text) == ["docs/new.md", "src/app.py", "src/main.py", "old.txt"]

    def test_duplicates_kept(self):
        """Test repeated paths are not deduplicated."""
        text = make_patch(
            "*** Add File: a.txt",
            "+x",
            "*** Update File: a.txt",
            "@@",
            "+y",
        )
        assert parse_file_paths(text) == ["a.txt", "a.txt"]

    def test_path_with_colon(self):
        """Test everything after the header colon is the path."""
        assert parse_file_paths(make_patch("*** Delete File: C:/tmp/x.txt")) == ["C:/tmp/x.txt"]

    def test_absolute_path_preserved(self):
        """Test absolute paths are reported verbatim."""
        assert parse_file_paths(make_patch("*** Add File: /etc/cron.d/job", "+x")) == ["/etc/cron.d/job"]

    def test_empty_header_path_skipped(self):
        """Test a header without a path is skipped."""
        text = make_patch("*** Add File:   ", "*** Delete File: real.txt")
        assert parse_file_paths(text) == ["real.txt"]

    def test_unrecognized_lines_skipped(self):
        """Test stray lines between records are tolerated."""
        text = make_patch("garbage", "*** Unknown: x", "*** Delete File: a")
        assert parse_file_paths(text) == ["a"]

    def test_empty_move_target_ignored(self):
        """Test an empty Move to directive adds no path."""
        text = make_patch("*** Update File: a.py", "*** Move to:", "@@", "+x")
        assert parse_file_paths(text) == ["a.py"]

    def test_crlf_line_endings(self):
        """Test CRLF patches yield clean paths."""
        text = "*** Begin Patch\r\n*** Add File: a.txt\r\n+x\r\n*** End Patch\r\n"
        assert parse_file_paths(text) == ["a.txt"]

    def test_entry_paths_property(self):
        """Test PatchEntry.paths includes the move target."""
        entry = PatchEntry(PatchAction.UPDATE, "a", "b")
        assert entry.paths == ["a", "b"]
        assert PatchEntry(PatchAction.DELETE, "c").paths == ["c"]


class TestHeredoc:
    """Tests for heredoc unwrapping."""

    def test_quoted_tag_with_cat(self):
        """Test cat <<'EOF' wrapping is removed."""
        inner = make_patch("*** Add File: a.txt", "+x")
        text = f"cat <<'EOF'\n{inner}\nEOF"
        assert strip_heredoc(text) == inner
        assert parse_file_paths(text) == ["a.txt"]

    def test_command_word_and_double_quotes(self):
        """Test apply_patch <<"PATCH" wrapping is removed."""
        inner = make_patch("*** Delete File: b.txt")
        text = f'apply_patch <<"PATCH"\n{inner}\nPATCH\n'
        assert parse_file_paths(text) == ["b.txt"]

    def test_unquoted_tag(self):
        """Test <<EOF without a command is removed."""
        inner = make_patch("*** Delete File: c.txt")
        assert parse_file_paths(f"<<EOF\n{inner}\nEOF") == ["c.txt"]

    def test_mismatched_tag_not_unwrapped(self):
        """Test text is left alone when the closing tag differs."""
        text = "<<'EOF'\n*** Begin Patch\n*** End Patch\nEND"
        assert strip_heredoc(text) == text

    def test_plain_text_untouched(self):
        """Test text without a heredoc is returned unchanged."""
        text = make_patch()
        assert strip_heredoc(text) == text
