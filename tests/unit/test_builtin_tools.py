"""Tests for the builtin LangChain tools and workspace isolation."""

import asyncio
import sys

import pytest

from codingAgent.tools.base import LangChainTool, ToolKind
from codingAgent.tools.builtin import (
    LANGCHAIN_TOOLS,
    edit_file,
    find_files,
    list_directory,
    read_file,
    run_shell_command,
    search_file,
    think,
    web_fetch,
    write_file,
)
from codingAgent.tools.builtin.workspace import WorkspaceAccessError, resolve_in_workspace
from codingAgent.utils.error_handler import ExecutionError


@pytest.fixture
def project(workspace):
    (workspace / "src").mkdir()
    (workspace / "src" / "app.py").write_text("import os\ndef route():\n    return 'fast'\n")
    (workspace / "src" / "util.py").write_text("def helper():\n    pass\n")
    (workspace / "README.md").write_text("# Demo\n")
    (workspace / ".git").mkdir()
    (workspace / ".git" / "config").write_text("def route(): hidden")
    return workspace


class TestWorkspaceIsolation:
    def test_relative_path_resolves_inside(self, workspace):
        assert resolve_in_workspace("src/a.py") == workspace / "src" / "a.py"

    @pytest.mark.parametrize("path", ["../outside.txt", "/etc/passwd", "src/../../x"])
    def test_escape_is_rejected(self, workspace, path):
        with pytest.raises(WorkspaceAccessError):
            resolve_in_workspace(path)

    def test_tools_report_escape_as_error(self, workspace):
        assert read_file.invoke({"path": "../secret.txt"}).startswith("Error: Access denied")
        assert write_file.invoke({"path": "/tmp/x.txt", "content": "x"}).startswith("Error: Access denied")


class TestFileTools:
    def test_read_file_with_header(self, project):
        result = read_file.invoke({"path": "src/app.py"})

        assert result.startswith("=== src/app.py ===\n")
        assert "def route():" in result

    def test_read_file_window(self, project):
        result = read_file.invoke({"path": "src/app.py", "offset": 1, "limit": 1})

        assert result.splitlines()[0] == "=== src/app.py (lines 2-2 of 3) ==="
        assert result.splitlines()[1] == "def route():"

    def test_read_missing_file(self, project):
        assert read_file.invoke({"path": "nope.py"}) == "Error: File not found: nope.py"

    def test_write_file_creates_parents(self, workspace):
        result = write_file.invoke({"path": "docs/notes/a.md", "content": "hello"})

        assert result == "Success: File written to docs/notes/a.md (5 bytes)"
        assert (workspace / "docs" / "notes" / "a.md").read_text() == "hello"

    def test_list_directory_skips_ignored(self, project):
        result = list_directory.invoke({"path": "."})

        assert "[DIR]  src/" in result
        assert "[FILE] README.md" in result
        assert ".git" not in result

    def test_edit_file_single_and_all(self, project):
        path = "src/util.py"

        assert edit_file.invoke({"path": path, "old_string": "pass", "new_string": "return 1"}) == (
            "Success: Replaced 1 occurrence(s) in src/util.py"
        )
        (project / "src" / "dup.py").write_text("x = 1\nx = 1\n")
        ambiguous = edit_file.invoke({"path": "src/dup.py", "old_string": "x = 1", "new_string": "x = 2"})
        replaced = edit_file.invoke(
            {"path": "src/dup.py", "old_string": "x = 1", "new_string": "x = 2", "replace_all": True}
        )

        assert "return 1" in (project / "src" / "util.py").read_text()
        assert ambiguous.startswith("Error: Found 2 occurrences")
        assert replaced == "Success: Replaced 2 occurrence(s) in src/dup.py"
        assert (project / "src" / "dup.py").read_text() == "x = 2\nx = 2\n"

    def test_edit_file_missing_string(self, project):
        result = edit_file.invoke({"path": "src/app.py", "old_string": "nothing here", "new_string": "x"})

        assert result.startswith("Error: String not found")


class TestSearchTools:
    def test_find_files(self, project):
        result = find_files.invoke({"pattern": "**/*.py"})

        assert result.startswith("Found 2 file(s) matching '**/*.py':")
        assert "src/app.py" in result and "src/util.py" in result

    def test_find_files_no_match(self, project):
        assert find_files.invoke({"pattern": "*.rs"}) == "No files found matching pattern: *.rs"

    def test_search_file_skips_ignored_dirs(self, project):
        result = search_file.invoke({"pattern": r"def route\("})

        assert "src/app.py:2: def route():" in result
        assert ".git" not in result

    def test_search_file_include_filter(self, project):
        result = search_file.invoke({"pattern": "demo", "include": "*.md"})

        assert "README.md:1: # Demo" in result

    def test_search_file_invalid_regex(self, project):
        assert search_file.invoke({"pattern": "("}).startswith("Error: Invalid regular expression")


def test_think_records_thought():
    assert think.invoke({"thought": "check the router first"}) == 'Thought recorded: "check the router first"'


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")
class TestShellCommand:
    @pytest.mark.asyncio
    async def test_runs_in_workspace(self, workspace):
        result = await run_shell_command.ainvoke({"command": "pwd"})

        assert result.strip() == str(workspace)

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, workspace):
        result = await run_shell_command.ainvoke({"command": "echo oops >&2; exit 3"})

        assert result.startswith("Command failed (exit code 3)")
        assert "[stderr]\noops" in result

    @pytest.mark.asyncio
    async def test_timeout(self, workspace):
        result = await run_shell_command.ainvoke({"command": "sleep 5", "timeout": 1})

        assert result == "Error: Command timeout (1s)"


@pytest.mark.asyncio
async def test_web_fetch_rejects_non_http_scheme():
    result = await web_fetch.ainvoke({"url": "file:///etc/passwd"})

    assert result.startswith("Error: Only http(s) URLs are supported")


class TestLangChainAdapter:
    def test_kinds(self):
        kinds = {tool.name: kind for tool, kind in LANGCHAIN_TOOLS}

        assert kinds["write_file"] == ToolKind.EDIT
        assert kinds["run_shell_command"] == ToolKind.EXECUTE
        assert kinds["read_file"] == ToolKind.READ

    def test_declaration_from_tool_schema(self):
        declaration = LangChainTool(edit_file, ToolKind.EDIT).declaration

        assert declaration.name == "edit_file"
        assert set(declaration.parameters["required"]) == {"path", "old_string", "new_string"}

    @pytest.mark.asyncio
    async def test_error_string_becomes_execution_error(self, workspace):
        tool = LangChainTool(read_file, ToolKind.READ)

        with pytest.raises(ExecutionError, match="File not found"):
            await tool.execute(tool.validate({"path": "missing.txt"}), asyncio.Event())

    @pytest.mark.asyncio
    async def test_success_passes_through(self, project):
        tool = LangChainTool(read_file, ToolKind.READ)

        result = await tool.execute(tool.validate({"path": "README.md"}), asyncio.Event())

        assert result.ok
        assert result.llm_content == "=== README.md ===\n# Demo\n"
