"""Tool schema definitions for the conduit tool servers.

Each tool is a ``ToolDef`` built from reusable ``ParameterDef`` descriptors.
The same descriptors drive both the advertised JSON Schema and request
validation, so the two never drift apart.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from mcp.types import Tool

PARAMETER_TYPES = frozenset({"string", "url", "integer", "number", "boolean", "array"})


@dataclass(frozen=True)
class ParameterDef:
    """Definition for a single tool parameter."""

    type: str  # one of PARAMETER_TYPES
    description: str
    default: Any = None
    enum: tuple[str, ...] | None = None
    minimum: int | None = None
    maximum: int | None = None
    items: str | None = None  # element type for arrays
    non_empty: bool = False
    no_option: bool = False  # reject values a command line would parse as an option

    def __post_init__(self) -> None:
        if self.type not in PARAMETER_TYPES:
            raise ValueError(f"Unsupported parameter type: {self.type}")
        if self.type == "array" and self.items is None:
            raise ValueError("Array parameters must declare an item type")


@dataclass(frozen=True)
class ToolDef:
    """Definition for a tool (name, description, ordered parameters)."""

    name: str
    description: str
    parameters: tuple[tuple[str, ParameterDef], ...] = ()  # Ordered (name, param) pairs
    required: tuple[str, ...] = ()
    requires_auth: bool = False

    def __post_init__(self) -> None:
        names = {name for name, _param in self.parameters}
        unknown = [name for name in self.required if name not in names]
        if unknown:
            raise ValueError(f"{self.name}: required parameters not declared: {unknown}")


# =============================================================================
# Reusable parameter definitions
# =============================================================================

REPO_PATH_PARAM = ParameterDef(
    type="string",
    description="Path to the git repository",
    non_empty=True,
)

BRANCH_NAME_PARAM = ParameterDef(
    type="string",
    description="Name of the branch",
    non_empty=True,
    no_option=True,
)

REMOTE_PARAM = ParameterDef(
    type="string",
    description="Remote name",
    default="origin",
    no_option=True,
)

OPTIONAL_BRANCH_PARAM = ParameterDef(
    type="string",
    description="Branch to use (defaults to the current branch)",
    no_option=True,
)

MAX_RESULTS_PARAM = ParameterDef(
    type="integer",
    description="Maximum number of entries to return (1-1000)",
    default=10,
    minimum=1,
    maximum=1000,
)

FILE_ID_PARAM = ParameterDef(
    type="string",
    description="ID of the Google Drive file",
    non_empty=True,
)


# =============================================================================
# Git tool definitions
# =============================================================================

GIT_TOOLS: tuple[ToolDef, ...] = (
    ToolDef(
        name="git_status",
        description="Get the current status of a git repository",
        parameters=(("repoPath", REPO_PATH_PARAM),),
        required=("repoPath",),
    ),
    ToolDef(
        name="git_log",
        description="Get commit history of a git repository",
        parameters=(
            ("repoPath", REPO_PATH_PARAM),
            (
                "maxCount",
                ParameterDef(
                    type="integer",
                    description="Maximum number of commits to retrieve",
                    default=10,
                    minimum=1,
                    maximum=1000,
                ),
            ),
        ),
        required=("repoPath",),
    ),
    ToolDef(
        name="git_branches",
        description="List all branches in the repository",
        parameters=(("repoPath", REPO_PATH_PARAM),),
        required=("repoPath",),
    ),
    ToolDef(
        name="git_create_branch",
        description="Create a new branch",
        parameters=(("repoPath", REPO_PATH_PARAM), ("branchName", BRANCH_NAME_PARAM)),
        required=("repoPath", "branchName"),
    ),
    ToolDef(
        name="git_checkout",
        description="Switch to a different branch",
        parameters=(("repoPath", REPO_PATH_PARAM), ("branchName", BRANCH_NAME_PARAM)),
        required=("repoPath", "branchName"),
    ),
    ToolDef(
        name="git_add",
        description="Add files to staging area",
        parameters=(
            ("repoPath", REPO_PATH_PARAM),
            (
                "files",
                ParameterDef(
                    type="array",
                    items="string",
                    description='List of file paths to add (use "." for all files)',
                    non_empty=True,
                ),
            ),
        ),
        required=("repoPath", "files"),
    ),
    ToolDef(
        name="git_commit",
        description="Commit staged changes",
        parameters=(
            ("repoPath", REPO_PATH_PARAM),
            ("message", ParameterDef(type="string", description="Commit message", non_empty=True)),
            (
                "files",
                ParameterDef(
                    type="array",
                    items="string",
                    description="Optional: specific files to stage before committing",
                ),
            ),
        ),
        required=("repoPath", "message"),
    ),
    ToolDef(
        name="git_push",
        description="Push changes to remote repository",
        parameters=(
            ("repoPath", REPO_PATH_PARAM),
            ("remote", REMOTE_PARAM),
            ("branch", OPTIONAL_BRANCH_PARAM),
        ),
        required=("repoPath",),
    ),
    ToolDef(
        name="git_pull",
        description="Pull changes from remote repository",
        parameters=(
            ("repoPath", REPO_PATH_PARAM),
            ("remote", REMOTE_PARAM),
            ("branch", OPTIONAL_BRANCH_PARAM),
        ),
        required=("repoPath",),
    ),
    ToolDef(
        name="git_clone",
        description="Clone a remote repository",
        parameters=(
            ("repoUrl", ParameterDef(type="url", description="URL of the repository to clone")),
            (
                "targetPath",
                ParameterDef(
                    type="string",
                    description="Local path where to clone the repository",
                    non_empty=True,
                ),
            ),
            (
                "branch",
                ParameterDef(
                    type="string", description="Specific branch to clone", no_option=True
                ),
            ),
        ),
        required=("repoUrl", "targetPath"),
    ),
    ToolDef(
        name="git_diff",
        description="Show differences in the repository",
        parameters=(
            ("repoPath", REPO_PATH_PARAM),
            ("file", ParameterDef(type="string", description="Specific file to show diff for")),
            (
                "staged",
                ParameterDef(type="boolean", description="Show staged changes", default=False),
            ),
        ),
        required=("repoPath",),
    ),
    ToolDef(
        name="git_init",
        description="Initialize a new git repository",
        parameters=(
            (
                "repoPath",
                ParameterDef(
                    type="string",
                    description="Path where to initialize the repository",
                    non_empty=True,
                ),
            ),
        ),
        required=("repoPath",),
    ),
)


# =============================================================================
# Google Drive tool definitions
# =============================================================================

DRIVE_TOOLS: tuple[ToolDef, ...] = (
    ToolDef(
        name="drive_authenticate",
        description="Initiate Google Drive OAuth2 authentication flow",
    ),
    ToolDef(
        name="drive_is_authenticated",
        description="Check if Google Drive is authenticated",
    ),
    ToolDef(
        name="drive_list_files",
        description="List files and folders in Google Drive",
        parameters=(
            (
                "folderId",
                ParameterDef(type="string", description="ID of the folder to list files from"),
            ),
            ("query", ParameterDef(type="string", description="Search query to filter files")),
            ("maxResults", MAX_RESULTS_PARAM),
        ),
        requires_auth=True,
    ),
    ToolDef(
        name="drive_get_file",
        description="Get details of a specific file",
        parameters=(("fileId", FILE_ID_PARAM),),
        required=("fileId",),
        requires_auth=True,
    ),
    ToolDef(
        name="drive_download_file",
        description="Download content of a file",
        parameters=(("fileId", FILE_ID_PARAM),),
        required=("fileId",),
        requires_auth=True,
    ),
    ToolDef(
        name="drive_create_folder",
        description="Create a new folder in Google Drive",
        parameters=(
            (
                "name",
                ParameterDef(
                    type="string", description="Name of the folder to create", non_empty=True
                ),
            ),
            ("parentId", ParameterDef(type="string", description="ID of the parent folder")),
        ),
        required=("name",),
        requires_auth=True,
    ),
    ToolDef(
        name="drive_upload_file",
        description="Upload a new file to Google Drive",
        parameters=(
            (
                "name",
                ParameterDef(
                    type="string", description="Name of the file to upload", non_empty=True
                ),
            ),
            ("content", ParameterDef(type="string", description="Content of the file")),
            ("mimeType", ParameterDef(type="string", description="MIME type of the file")),
            ("folderId", ParameterDef(type="string", description="ID of the folder to upload to")),
        ),
        required=("name", "content"),
        requires_auth=True,
    ),
    ToolDef(
        name="drive_delete_file",
        description="Delete a file from Google Drive",
        parameters=(("fileId", FILE_ID_PARAM),),
        required=("fileId",),
        requires_auth=True,
    ),
)


# =============================================================================
# Schema generation
# =============================================================================


def _param_to_schema(param: ParameterDef) -> dict[str, Any]:
    """Convert a ParameterDef to a JSON Schema dict."""
    if param.type == "url":
        schema: dict[str, Any] = {"type": "string", "format": "uri"}
    else:
        schema = {"type": param.type}

    if param.description:
        schema["description"] = param.description
    if param.default is not None:
        schema["default"] = param.default
    if param.enum is not None:
        schema["enum"] = list(param.enum)
    if param.minimum is not None:
        schema["minimum"] = param.minimum
    if param.maximum is not None:
        schema["maximum"] = param.maximum
    if param.items is not None:
        schema["items"] = {"type": param.items}
    if param.non_empty:
        if param.type == "array":
            schema["minItems"] = 1
        else:
            schema["minLength"] = 1
    if param.no_option:
        schema["pattern"] = "^(?!-)"

    return schema


def build_input_schema(tool: ToolDef) -> dict[str, Any]:
    """Convert ToolDef to the protocol ``inputSchema`` dict."""
    properties = {name: _param_to_schema(param) for name, param in tool.parameters}
    return {
        "type": "object",
        "properties": properties,
        "required": list(tool.required),
    }


class CapabilityRegistry:
    """Ordered, immutable table of tool definitions keyed by name."""

    def __init__(self, tools: Iterable[ToolDef]) -> None:
        self._tools: dict[str, ToolDef] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def list(self) -> list[ToolDef]:
        """Return tools in registration order."""
        return list(self._tools.values())

    def lookup(self, name: str) -> ToolDef | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDef]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


def build_tools(registry: CapabilityRegistry) -> list[Tool]:
    """Build protocol Tool objects for every registered definition."""
    return [
        Tool(name=tool.name, description=tool.description, inputSchema=build_input_schema(tool))
        for tool in registry.list()
    ]


__all__ = [
    "DRIVE_TOOLS",
    "GIT_TOOLS",
    "CapabilityRegistry",
    "ParameterDef",
    "ToolDef",
    "build_input_schema",
    "build_tools",
]
