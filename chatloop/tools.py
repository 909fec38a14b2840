"""Tool schemas offered to the model.

The tools run outside this package; only their names, descriptions and
argument shapes live here so the chat model can be bound to them.
"""

from __future__ import annotations

from typing import Any, Type

from pydantic import BaseModel, Field


class ShellInput(BaseModel):
    command: str = Field(description="The shell command to execute")


class ReadFileInput(BaseModel):
    path: str = Field(description="The path to the file")


class WriteFileInput(BaseModel):
    path: str = Field(description="The path to the file")
    content: str = Field(description="The full content to write")


class PatchFileInput(BaseModel):
    patch_content: str = Field(
        description=(
            "The patch content, including // FILE:, // EDIT:, // END_EDIT, "
            "ADD:, and DEL: markers."
        ),
    )


class ListDirectoryInput(BaseModel):
    path: str = Field(description="The path to the directory")


TOOL_DEFINITIONS: dict[str, tuple[str, Type[BaseModel]]] = {
    "shell": ("Execute a shell command", ShellInput),
    "read_file": ("Read the contents of a file", ReadFileInput),
    "write_file": (
        "Write content to a file, replacing existing content or creating a new "
        "file. Use patch_file for modifying existing files.",
        WriteFileInput,
    ),
    "patch_file": (
        "Modify an existing file by applying a patch in a specific format. "
        "Preferred for edits over write_file.",
        PatchFileInput,
    ),
    "list_directory": ("List the contents of a directory", ListDirectoryInput),
}

TOOL_NAMES = tuple(TOOL_DEFINITIONS)


def _parameters(schema: Type[BaseModel]) -> dict[str, Any]:
    params = schema.model_json_schema()
    params.pop("title", None)
    for prop in params.get("properties", {}).values():
        prop.pop("title", None)
    return params


def tool_schemas(names: tuple[str, ...] | list[str] | None = None) -> list[dict[str, Any]]:
    """Return OpenAI function-format schemas for *names* (all tools by default).

    Raises:
        ValueError: If a requested tool name is unknown.
    """
    selected = list(names) if names is not None else list(TOOL_NAMES)
    schemas: list[dict[str, Any]] = []
    for name in selected:
        if name not in TOOL_DEFINITIONS:
            raise ValueError(f"Unknown tool: {name!r}. Known: {', '.join(TOOL_NAMES)}")
        description, schema = TOOL_DEFINITIONS[name]
        schemas.append({
            "type": "function",
            "function": {
                "name": name,
                "description": description,
                "parameters": _parameters(schema),
            },
        })
    return schemas
