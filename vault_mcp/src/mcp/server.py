"""MCP protocol metadata: server identity, capabilities and tool schemas."""

from __future__ import annotations

import copy
from typing import Any, Dict, List

SERVER_NAME = "vault-mcp"
SERVER_VERSION = "1.0.0"
PROTOCOL_VERSION = "2024-11-05"

TOOLS: List[Dict[str, Any]] = [
    {
        "name": "list_files_in_vault",
        "description": "List all files in the vault",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "list_files_in_dir",
        "description": "List files in a specific directory",
        "inputSchema": {
            "type": "object",
            "properties": {
                "dirpath": {"type": "string", "description": "Directory path"},
            },
            "required": ["dirpath"],
        },
    },
    {
        "name": "get_file_contents",
        "description": "Get the contents of a file",
        "inputSchema": {
            "type": "object",
            "properties": {
                "filepath": {"type": "string", "description": "File path"},
            },
            "required": ["filepath"],
        },
    },
    {
        "name": "append_content",
        "description": "Append content to a file, creating it (and its folders) if missing",
        "inputSchema": {
            "type": "object",
            "properties": {
                "filepath": {"type": "string", "description": "File path"},
                "content": {"type": "string", "description": "Content to append"},
            },
            "required": ["filepath", "content"],
        },
    },
    {
        "name": "simple_search",
        "description": "Case-insensitive text search across all notes",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "context_length": {
                    "type": "number",
                    "description": "Characters of context on each side of a match",
                    "default": 100,
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "patch_content",
        "description": "Patch content at specific locations (headings, blocks, frontmatter)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "filepath": {"type": "string", "description": "File path"},
                "operation": {
                    "type": "string",
                    "enum": ["append", "prepend", "replace"],
                    "description": "Operation type",
                },
                "target_type": {
                    "type": "string",
                    "enum": ["heading", "block", "frontmatter"],
                    "description": "Target type",
                },
                "target": {
                    "type": "string",
                    "description": (
                        "Heading text (treated as a regular expression), block id, "
                        "or dot-separated frontmatter key"
                    ),
                },
                "content": {"type": "string", "description": "Content to patch"},
            },
            "required": ["filepath", "operation", "target_type", "target", "content"],
        },
    },
    {
        "name": "delete_file",
        "description": "Delete a file from the vault (requires confirmation)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "filepath": {"type": "string", "description": "File path to delete"},
                "confirm": {"type": "boolean", "description": "Confirmation flag"},
            },
            "required": ["filepath", "confirm"],
        },
    },
    {
        "name": "dataview_query",
        "description": "Execute a Dataview DQL query (LIST, TABLE or TASK)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Dataview DQL query"},
            },
            "required": ["query"],
        },
    },
    {
        "name": "validate_dataview_query",
        "description": "Validate a Dataview query and return results or errors",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Dataview query to validate"},
                "type": {
                    "type": "string",
                    "enum": ["DQL", "JS"],
                    "description": "Query type (default: DQL)",
                    "default": "DQL",
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "get_rendered_content",
        "description": "Get a note with its Dataview query blocks rendered as Markdown",
        "inputSchema": {
            "type": "object",
            "properties": {
                "filepath": {"type": "string", "description": "File path to render"},
            },
            "required": ["filepath"],
        },
    },
]

_TOOLS_BY_NAME = {tool["name"]: tool for tool in TOOLS}


def initialize_result() -> Dict[str, Any]:
    """Response to the MCP ``initialize`` handshake."""
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {"tools": {}, "resources": {}},
        "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
    }


def list_tools() -> Dict[str, Any]:
    """Response to ``tools/list``; a copy so callers cannot alter the registry."""
    return {"tools": copy.deepcopy(TOOLS)}


def tool_names() -> List[str]:
    return [tool["name"] for tool in TOOLS]


def required_arguments(name: str) -> List[str]:
    return list(_TOOLS_BY_NAME[name]["inputSchema"].get("required", []))


__all__ = [
    "SERVER_NAME",
    "SERVER_VERSION",
    "PROTOCOL_VERSION",
    "TOOLS",
    "initialize_result",
    "list_tools",
    "tool_names",
    "required_arguments",
]
