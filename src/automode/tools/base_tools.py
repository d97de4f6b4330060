"""File operation tools backed by a FileService."""

from __future__ import annotations

import difflib
import fnmatch
import re
from pathlib import Path

from automode.errors import ToolRuntimeError
from automode.services.file_service import FileService
from automode.tools import Param, ParamType, Tool, ToolSpec

MAX_GREP_MATCHES = 200
MAX_FIND_RESULTS = 500
SKIP_DIRS = {".git", "__pycache__", ".venv", "venv", "node_modules", ".tox"}


def create_base_tools(service: FileService) -> list[Tool]:
    def create_folder(args: dict) -> str:
        service.make_directory(args["path"])
        return f"Folder created: {args['path']}"

    def create_file(args: dict) -> str:
        path = args["path"]
        if service.file_exists(path) and not args.get("overwrite", False):
            raise ToolRuntimeError(f"{path} already exists; use edit_file or set overwrite=true")
        service.write_file(path, args.get("content", ""))
        return f"File created: {path}"

    def read_file(args: dict) -> str:
        path = args["path"]
        offset = args.get("offset") or 0
        limit = args.get("limit")
        if offset < 0 or (limit is not None and limit < 0):
            raise ToolRuntimeError("offset and limit must not be negative")
        lines = service.read_file(path).splitlines()
        if offset or limit:
            end = offset + limit if limit else len(lines)
            lines = lines[offset:end]
        numbered = [f"{i + offset + 1:>4} | {line}" for i, line in enumerate(lines)]
        return f"File: {path}\n" + "\n".join(numbered)

    def read_multiple_files(args: dict) -> str:
        parts: list[str] = []
        for path in args["paths"]:
            try:
                parts.append(f'<file path="{path}">\n{service.read_file(path)}\n</file>')
            except (ToolRuntimeError, OSError) as e:
                parts.append(f'<file path="{path}" error="{e}" />')
        return "\n".join(parts)

    def list_files(args: dict) -> str:
        entries = service.list_directory(args.get("path", "."))
        return "\n".join(entries) if entries else "(empty directory)"

    def search_file(args: dict) -> str:
        path = args["path"]
        regex = _compile(args["search_pattern"])
        hits = [
            f"{i}: {line.rstrip()}"
            for i, line in enumerate(service.read_file(path).splitlines(), 1)
            if regex.search(line)
        ]
        if not hits:
            return f"No matches for '{args['search_pattern']}' in {path}"
        return f"{len(hits)} match(es) in {path}:\n" + "\n".join(hits)

    def grep(args: dict) -> str:
        pattern = args["pattern"]
        regex = _compile(pattern)
        root = service.resolve(args.get("path", "."))
        matches: list[str] = []
        for fpath in _walk_files(root, args.get("include")):
            try:
                text = fpath.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            rel = fpath.relative_to(service.work_dir).as_posix()
            for i, line in enumerate(text.splitlines(), 1):
                if regex.search(line):
                    matches.append(f"{rel}:{i}: {line.rstrip()}")
                    if len(matches) >= MAX_GREP_MATCHES:
                        matches.append(f"... (truncated at {MAX_GREP_MATCHES} matches)")
                        return "\n".join(matches)
        if not matches:
            return f"No matches for '{pattern}'"
        return "\n".join(matches)

    def find_files(args: dict) -> str:
        pattern = args["pattern"]
        root = service.resolve(args.get("path", "."))
        results: list[str] = []
        for fpath in _walk_files(root, pattern):
            results.append(fpath.relative_to(service.work_dir).as_posix())
            if len(results) >= MAX_FIND_RESULTS:
                results.append(f"... (truncated at {MAX_FIND_RESULTS} results)")
                break
        if not results:
            return f"No files matching '{pattern}'"
        return "\n".join(results)

    def edit_file(args: dict) -> str:
        path = args["path"]
        original = service.read_file(path)
        updated = replace_block(
            original, args["old_text"], args["new_text"], args.get("replace_all", False)
        )
        if updated == original:
            return f"No changes needed for {path}"
        service.write_file(path, updated)
        return summarize_diff(path, original, updated)

    return [
        Tool(
            ToolSpec(
                name="create_folder",
                description="Create a new folder (and any missing parents) at the given path.",
                parameters={"path": Param(ParamType.STRING, "Folder path to create")},
            ),
            create_folder,
        ),
        Tool(
            ToolSpec(
                name="create_file",
                description=(
                    "Create a new file with the given content. "
                    "Fails if the file exists unless overwrite=true."
                ),
                parameters={
                    "path": Param(ParamType.STRING, "File path to create"),
                    "content": Param(ParamType.STRING, "File content"),
                    "overwrite": Param(
                        ParamType.BOOLEAN, "Replace an existing file (default: false)", required=False
                    ),
                },
            ),
            create_file,
        ),
        Tool(
            ToolSpec(
                name="read_file",
                description="Read the contents of a file with line numbers. Use offset/limit for large files.",
                parameters={
                    "path": Param(ParamType.STRING, "File path to read"),
                    "offset": Param(ParamType.INTEGER, "Starting line (0-based)", required=False),
                    "limit": Param(ParamType.INTEGER, "Max lines to return", required=False),
                },
                read_only=True,
            ),
            read_file,
        ),
        Tool(
            ToolSpec(
                name="read_multiple_files",
                description=(
                    "Read several files at once. Files that cannot be read are reported "
                    "individually instead of failing the whole call."
                ),
                parameters={
                    "paths": Param(ParamType.ARRAY, "File paths to read", items=ParamType.STRING),
                },
                read_only=True,
            ),
            read_multiple_files,
        ),
        Tool(
            ToolSpec(
                name="list_files",
                description="List files and directories in the given path. Directories end with '/'.",
                parameters={
                    "path": Param(ParamType.STRING, "Directory path (default: '.')", required=False),
                },
                read_only=True,
            ),
            list_files,
        ),
        Tool(
            ToolSpec(
                name="search_file",
                description="Search one file for a pattern (regex or literal) and return matching line numbers.",
                parameters={
                    "path": Param(ParamType.STRING, "File to search"),
                    "search_pattern": Param(ParamType.STRING, "Regex or literal string to find"),
                },
                read_only=True,
            ),
            search_file,
        ),
        Tool(
            ToolSpec(
                name="grep",
                description=(
                    "Search file contents for a pattern (regex or literal). "
                    "Returns matching lines as file:line:text. "
                    "Use include to filter by glob (e.g. '*.py')."
                ),
                parameters={
                    "pattern": Param(ParamType.STRING, "Regex or literal string to search for"),
                    "path": Param(
                        ParamType.STRING, "Directory or file to search in (default: '.')", required=False
                    ),
                    "include": Param(
                        ParamType.STRING, "Glob to filter file names, e.g. '*.py'", required=False
                    ),
                },
                read_only=True,
            ),
            grep,
        ),
        Tool(
            ToolSpec(
                name="find_files",
                description="Find files by name glob, recursively from the given path.",
                parameters={
                    "pattern": Param(ParamType.STRING, "Glob for file names, e.g. 'test_*.py'"),
                    "path": Param(ParamType.STRING, "Directory to search in (default: '.')", required=False),
                },
                read_only=True,
            ),
            find_files,
        ),
        Tool(
            ToolSpec(
                name="edit_file",
                description=(
                    "Replace a snippet of a file with new text. old_text must match the file; "
                    "if it does not match exactly, a match ignoring whitespace differences "
                    "within lines is tried. Set replace_all=true to replace every exact occurrence."
                ),
                parameters={
                    "path": Param(ParamType.STRING, "File path to edit"),
                    "old_text": Param(ParamType.STRING, "Text to find"),
                    "new_text": Param(ParamType.STRING, "Replacement text"),
                    "replace_all": Param(
                        ParamType.BOOLEAN,
                        "Replace all occurrences instead of just the first (default: false)",
                        required=False,
                    ),
                },
            ),
            edit_file,
        ),
    ]


def _compile(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error:
        return re.compile(re.escape(pattern))


def _walk_files(root: Path, include: str | None = None) -> list[Path]:
    """Recursively collect files under root, skipping VCS and virtualenv dirs."""
    if root.is_file():
        return [root]
    if not root.is_dir():
        raise ToolRuntimeError(f"path not found: {root}")
    files: list[Path] = []
    for fpath in sorted(root.rglob("*")):
        if SKIP_DIRS.intersection(fpath.relative_to(root).parts):
            continue
        if not fpath.is_file():
            continue
        if include and not fnmatch.fnmatch(fpath.name, include):
            continue
        files.append(fpath)
    return files


def _normalize(line: str) -> str:
    return " ".join(line.split())


def replace_block(content: str, old_text: str, new_text: str, replace_all: bool = False) -> str:
    """Replace old_text in content.

    Exact matches win. Otherwise the old_text lines are compared against every
    window of content lines with runs of whitespace collapsed, and the first
    matching window is replaced by new_text.
    """
    if not old_text:
        raise ToolRuntimeError("old_text must not be empty")
    if old_text in content:
        if replace_all:
            return content.replace(old_text, new_text)
        return content.replace(old_text, new_text, 1)

    lines = content.splitlines(keepends=True)
    wanted = [_normalize(line) for line in old_text.strip("\n").splitlines()]
    if not wanted:
        raise ToolRuntimeError("old_text not found in file")
    for start in range(len(lines) - len(wanted) + 1):
        window = lines[start : start + len(wanted)]
        if [_normalize(line) for line in window] == wanted:
            trailing = "\n" if window[-1].endswith("\n") else ""
            replacement = new_text.rstrip("\n") + trailing
            return "".join(lines[:start]) + replacement + "".join(lines[start + len(wanted) :])
    raise ToolRuntimeError("old_text not found in file")


def summarize_diff(path: str, before: str, after: str) -> str:
    diff = list(
        difflib.unified_diff(
            before.splitlines(), after.splitlines(), f"a/{path}", f"b/{path}", lineterm=""
        )
    )
    added = sum(1 for line in diff if line.startswith("+") and not line.startswith("+++"))
    removed = sum(1 for line in diff if line.startswith("-") and not line.startswith("---"))
    return (
        f"Changes applied to {path}:\n  Lines added: {added}\n  Lines removed: {removed}\n\n"
        + "\n".join(diff)
    )
