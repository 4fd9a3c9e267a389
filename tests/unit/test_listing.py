"""
Unit tests for directory listing.
"""

import html

import pytest

from staticserver.pipeline.listing import (
    DirectoryEntry,
    build_entries,
    human_size,
    listing_footer,
    permission_string,
    render_listing,
)


class TestPermissionString:
    @pytest.mark.parametrize("mode, expected", [
        (0o40755, "drwxr-xr-x"),
        (0o100644, "-rw-r--r--"),
        (0o100600, "-rw-------"),
        (0o100777, "-rwxrwxrwx"),
        (0o40500, "dr-x------"),
    ])
    def test_modes(self, mode, expected):
        assert permission_string(mode) == expected


class TestHumanSize:
    @pytest.mark.parametrize("size, expected", [
        (0, ""),
        (1, "1.00 B"),
        (1023, "1023.00 B"),
        (1024, "1.00 KB"),
        (1536, "1.50 KB"),
        (5 * 1024 ** 2, "5.00 MB"),
        (3 * 1024 ** 3, "3.00 GB"),
        (2048 * 1024 ** 3, "2048.00 GB"),
    ])
    def test_sizes(self, size, expected):
        assert human_size(size) == expected


class TestBuildEntries:
    def test_sorted_entries(self, site):
        entries = build_entries(str(site / "files"), "/files")

        assert [e.name for e in entries] == ["a.txt", "b b.txt", "sub"]

    def test_entry_fields(self, site):
        a, b, sub = build_entries(str(site / "files"), "/files/")

        assert a.is_file
        assert a.human_size == "2.00 KB"
        assert a.permission_string.startswith("-")
        assert a.relative_href == "/files/a.txt"
        assert b.relative_href == "/files/b%20b.txt"
        assert not sub.is_file
        assert sub.human_size == ""
        assert sub.permission_string.startswith("d")

    def test_empty_directory(self, site):
        assert build_entries(str(site / "empty"), "/empty") == []

    def test_dangling_symlink_listed(self, site):
        (site / "empty" / "broken").symlink_to(site / "gone")

        entries = build_entries(str(site / "empty"), "/empty")

        assert [e.name for e in entries] == ["broken"]
        assert not entries[0].is_file

    def test_missing_directory(self, site):
        with pytest.raises(OSError):
            build_entries(str(site / "nope"), "/nope")


class TestRenderListing:
    def entry(self, name, href):
        return DirectoryEntry(
            name=name,
            relative_href=href,
            is_file=True,
            permission_string="-rw-r--r--",
            human_size="1.00 B",
            formatted_mod_time="2026-01-15 12:30:45",
        )

    def test_rows_and_footer(self):
        page = render_listing(
            [self.entry("a.txt", "/a.txt")],
            listing_footer("localhost", 3000),
            title="/files/",
        )

        assert "<title>Index of /files/</title>" in page
        assert '<a href="/a.txt">a.txt</a>' in page
        assert "-rw-r--r--" in page
        assert "2026-01-15 12:30:45" in page
        assert "static server running @ localhost:3000" in page

    def test_names_escaped(self):
        page = render_listing([self.entry("<script>.txt", "/%3Cscript%3E.txt")], "footer")

        assert "<script>.txt" not in page
        assert html.escape("<script>.txt") in page

    def test_empty_table(self):
        page = render_listing([], "footer")

        assert "<tbody>" in page
        assert "<tr class=" not in page


class TestListingFooter:
    def test_format(self):
        footer = listing_footer("127.0.0.1", 8080)

        assert footer.startswith("Python ")
        assert footer.endswith("/ static server running @ 127.0.0.1:8080")
