"""
=============================================================================
DIRECTORY LISTING
=============================================================================

Rendered when a directory has no index file.

    build_entries()    one stat per child → DirectoryEntry
    render_listing()   entries + footer → HTML (pure, no I/O)

    ┌────────────────────────────────────────────────────────────────────┐
    │ Index of /docs/                                                    │
    ├───────────────┬────────────┬───────────┬───────────────────────────┤
    │ Name          │ Permission │ Size      │ Modified                  │
    ├───────────────┼────────────┼───────────┼───────────────────────────┤
    │ images        │ drwxr-xr-x │           │ 2026-01-15 12:30:45       │
    │ guide.html    │ -rw-r--r-- │ 4.12 KB   │ 2026-01-14 09:02:11       │
    └───────────────┴────────────┴───────────┴───────────────────────────┘
      Python 3.12.1/ static server running @ localhost:3000

Names and hrefs are HTML-escaped, hrefs also percent-encoded, so a file
called "<script>.txt" or "a b#c" lists and links correctly.

=============================================================================
"""

import html
import logging
import os
import platform
import posixpath
import stat
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List
from urllib.parse import quote

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("B", "KB", "MB", "GB")


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    relative_href: str
    is_file: bool
    permission_string: str
    human_size: str
    formatted_mod_time: str


def permission_string(mode: int) -> str:
    """
    ls-style type flag and rwx triplets.

        >>> permission_string(0o40755)
        'drwxr-xr-x'
        >>> permission_string(0o100644)
        '-rw-r--r--'
    """
    flags = "d" if stat.S_ISDIR(mode) else "-"
    for shift in (6, 3, 0):
        bits = (mode >> shift) & 0o7
        flags += ("r" if bits & 4 else "-") + ("w" if bits & 2 else "-") + ("x" if bits & 1 else "-")
    return flags


def human_size(size: int) -> str:
    """
    Two-decimal size in B/KB/MB/GB; zero bytes render as "".

        >>> human_size(1536)
        '1.50 KB'
        >>> human_size(0)
        ''
    """
    if size <= 0:
        return ""
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.2f} {_SIZE_UNITS[unit]}"


def format_mod_time(timestamp: float) -> str:
    """Local time, "YYYY-MM-DD HH:MM:SS"."""
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def build_entries(directory: str, url_path: str) -> List[DirectoryEntry]:
    """
    Stat every child of ``directory``, sorted by name.

    Dangling symlinks are described by lstat(); children that vanish
    between scandir() and stat() are skipped.

    Raises:
        OSError: If the directory itself cannot be read.
    """
    entries = []
    with os.scandir(directory) as it:
        children = sorted(it, key=lambda e: e.name)

    for child in children:
        try:
            st = os.stat(child.path)
        except FileNotFoundError:
            try:
                st = os.lstat(child.path)
            except OSError:
                continue
        except OSError as e:
            logger.debug(f"Skipping unreadable entry {child.path}: {e}")
            continue

        is_file = stat.S_ISREG(st.st_mode)
        entries.append(DirectoryEntry(
            name=child.name,
            relative_href=quote(posixpath.join(url_path, child.name)),
            is_file=is_file,
            permission_string=permission_string(st.st_mode),
            human_size=human_size(st.st_size) if is_file else "",
            formatted_mod_time=format_mod_time(st.st_mtime),
        ))
    return entries


def listing_footer(host: str, port: int) -> str:
    return f"Python {platform.python_version()}/ static server running @ {host}:{port}"


def render_listing(
    entries: Iterable[DirectoryEntry],
    footer: str,
    title: str = "/",
) -> str:
    """Render entries as an HTML page. An empty iterable gives an empty table."""
    rows = []
    for entry in entries:
        css = "file" if entry.is_file else "dir"
        rows.append(
            f'<tr class="{css}">'
            f'<td><a href="{html.escape(entry.relative_href)}">{html.escape(entry.name)}</a></td>'
            f"<td>{entry.permission_string}</td>"
            f"<td>{html.escape(entry.human_size)}</td>"
            f"<td>{entry.formatted_mod_time}</td>"
            f"</tr>"
        )

    safe_title = html.escape(title)
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Index of {safe_title}</title>
    <style>
        body {{ font-family: monospace; padding: 20px; }}
        h1 {{ border-bottom: 1px solid #ccc; padding-bottom: 10px; }}
        table {{ border-collapse: collapse; }}
        th, td {{ padding: 4px 16px 4px 0; text-align: left; }}
        a {{ text-decoration: none; color: #0066cc; }}
        a:hover {{ text-decoration: underline; }}
        tr.dir a {{ font-weight: bold; }}
        footer {{ margin-top: 20px; color: #666; }}
    </style>
</head>
<body>
    <h1>Index of {safe_title}</h1>
    <table>
        <thead><tr><th>Name</th><th>Permission</th><th>Size</th><th>Modified</th></tr></thead>
        <tbody>
        {''.join(rows)}
        </tbody>
    </table>
    <footer>{html.escape(footer)}</footer>
</body>
</html>
"""
