"""Tests for unified diff computation."""

from __future__ import annotations

from renderdiff.diff import compute_diff, count_stats


class TestComputeDiff:
    def test_identical_inputs_have_no_diff(self):
        text, added, removed = compute_diff(b"a: 1\nb: 2\n", b"a: 1\nb: 2\n", "c")

        assert text == ""
        assert added == 0
        assert removed == 0

    def test_both_empty_have_no_diff(self):
        assert compute_diff(b"", b"", "c") == ("", 0, 0)

    def test_none_and_empty_are_equivalent(self):
        assert compute_diff(None, b"", "c") == ("", 0, 0)
        assert compute_diff(None, None, "c") == ("", 0, 0)

    def test_changed_line(self):
        text, added, removed = compute_diff(b"a: 2\n", b"a: 1\n", "components/foo")

        assert added == 1
        assert removed == 1
        lines = text.splitlines()
        assert "-a: 2" in lines
        assert "+a: 1" in lines

    def test_file_headers_use_component_label(self):
        text, _added, _removed = compute_diff(b"a: 2\n", b"a: 1\n", "components/foo")

        lines = text.splitlines()
        assert lines[0].startswith("--- components/foo (base)")
        assert lines[1].startswith("+++ components/foo (head)")
        assert lines[2].startswith("@@")

    def test_new_component_is_entirely_added(self):
        text, added, removed = compute_diff(None, b"x: y\nz: w\n", "components/bar")

        assert added == 2
        assert removed == 0
        assert "+x: y" in text.splitlines()

    def test_removed_component_is_entirely_removed(self):
        text, added, removed = compute_diff(b"x: y\n", None, "components/bar")

        assert added == 0
        assert removed == 1
        assert "-x: y" in text.splitlines()

    def test_three_lines_of_context(self):
        base = "".join(f"line{i}: {i}\n" for i in range(20)).encode()
        head = base.replace(b"line10: 10", b"line10: changed")

        text, added, removed = compute_diff(base, head, "c")

        assert (added, removed) == (1, 1)
        lines = text.splitlines()
        assert " line7: 7" in lines
        assert " line13: 13" in lines
        assert " line6: 6" not in lines
        assert " line14: 14" not in lines

    def test_missing_trailing_newline_keeps_lines_separate(self):
        text, added, removed = compute_diff(b"a: 1", b"a: 2", "c")

        assert (added, removed) == (1, 1)
        assert text.endswith("\n")
        assert "-a: 1" in text.splitlines()
        assert "+a: 2" in text.splitlines()

    def test_document_separator_lines_are_not_counted_as_headers(self):
        base = b"kind: A\n---\nkind: B\n"
        head = b"kind: A\n"

        _text, added, removed = compute_diff(base, head, "c")

        # "----" starts with the header marker and is excluded from the count
        assert added == 0
        assert removed == 1

    def test_form_feed_stays_inside_its_line(self):
        text, added, removed = compute_diff(b"k: a\x0cb\n", b"k: a\x0cc\n", "c")

        assert (added, removed) == (1, 1)
        lines = text.split("\n")
        assert "-k: a\x0cb" in lines
        assert "+k: a\x0cc" in lines

    def test_carriage_return_stays_inside_its_line(self):
        text, added, removed = compute_diff(b"k: |\n  x\ry\n", b"k: |\n  x\rz\n", "c")

        assert (added, removed) == (1, 1)
        lines = text.split("\n")
        assert "-  x\ry" in lines
        assert "+  x\rz" in lines

    def test_invalid_utf8_diffs_with_replacement_chars(self):
        text, added, removed = compute_diff(
            b"a: 1\n", b"\xff\xfe\x00\n", "components/bin"
        )

        assert (added, removed) == (1, 1)
        lines = text.split("\n")
        assert "-a: 1" in lines
        assert "+\ufffd\ufffd\x00" in lines
        text.encode("utf-8")

    def test_differing_invalid_bytes_are_not_equal(self):
        _text, added, removed = compute_diff(b"v: \xff\n", b"v: \xfe\n", "c")

        assert (added, removed) == (1, 1)


class TestCountStats:
    def test_counts_ignore_headers(self):
        diff = "--- a (base)\n+++ a (head)\n@@ -1,2 +1,2 @@\n-x\n+y\n+z\n same\n"

        assert count_stats(diff) == (2, 1)

    def test_empty_diff(self):
        assert count_stats("") == (0, 0)

    def test_counts_are_non_negative(self):
        added, removed = count_stats("\n\n@@ -0,0 +0,0 @@\n")

        assert added >= 0
        assert removed >= 0
