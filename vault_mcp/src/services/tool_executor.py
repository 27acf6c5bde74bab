"""Tool Executor - Dispatches JSON-RPC methods and MCP tool calls to services.

Every vault tool is reachable two ways: as a JSON-RPC method of the same
name, which returns the raw result, or through ``tools/call``, which wraps
the result in an MCP text-content envelope.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from ..mcp.server import initialize_result, list_tools, required_arguments, TOOLS
from ..models.dataview import QueryResult
from ..models.patch import PatchTargetType
from .config import AppConfig, get_config
from .dataview import QueryEngine
from .patcher import parse_operation, parse_target_type, patch_frontmatter, patch_text
from .search import DEFAULT_CONTEXT_LENGTH, SearchService
from .vault import VaultFile, VaultFolder, VaultService

logger = logging.getLogger(__name__)

DATAVIEW_BLOCK_PATTERN = re.compile(r"```dataview\r?\n(?P<query>.*?)```", re.DOTALL)
INLINE_QUERY_PATTERN = re.compile(r"`\$=\s*(?P<expr>.*?)`")
SUSPICIOUS_FIELD_PATTERN = re.compile(r"\b(INVALID_FIELD|nonexistent_field|undefined)\b", re.IGNORECASE)
WHERE_FIELD_PATTERN = re.compile(r"WHERE\s+(\w+)\s*[=!<>]")

TOOL_CONFIRMATIONS = {
    "append_content": "Content appended successfully",
    "patch_content": "Content patched successfully",
    "delete_file": "File deleted successfully",
}

_SCHEMA_TYPES = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
}


class ToolError(Exception):
    """A method or tool call that cannot be carried out as requested."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def _result_count(value: Any) -> int:
    if isinstance(value, dict) and isinstance(value.get("values"), list):
        return len(value["values"])
    if isinstance(value, list):
        return len(value)
    return 0


class ToolExecutor:
    """
    Executes JSON-RPC methods by routing to the vault, search, patch and query services.

    ``query_engine`` is optional: when it is None structured queries report
    that no engine is available.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        vault_service: Optional[VaultService] = None,
        search_service: Optional[SearchService] = None,
        query_engine: Optional[QueryEngine] = None,
    ) -> None:
        self.config = config or get_config()
        self.vault = vault_service or VaultService(self.config)
        self.search = search_service or SearchService(self.vault)
        self.query_engine = query_engine

        # Protocol methods take the raw params object.
        self._methods: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "initialize": lambda params: initialize_result(),
            "tools/list": lambda params: list_tools(),
            "tools/call": self._tools_call,
            "ping": lambda params: {},
        }

        # Tool registry mapping tool names to handler methods
        self._tools: Dict[str, Callable[..., Any]] = {
            "list_files_in_vault": self._list_files_in_vault,
            "list_files_in_dir": self._list_files_in_dir,
            "get_file_contents": self._get_file_contents,
            "append_content": self._append_content,
            "patch_content": self._patch_content,
            "simple_search": self._simple_search,
            "delete_file": self._delete_file,
            "dataview_query": self._dataview_query,
            "validate_dataview_query": self._validate_dataview_query,
            "get_rendered_content": self._get_rendered_content,
        }
        mismatched = {tool["name"] for tool in TOOLS} ^ set(self._tools)
        if mismatched:
            raise RuntimeError(f"Tool schemas and handlers disagree: {sorted(mismatched)}")

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    def execute(self, method: str, params: Any = None) -> Any:
        """
        Execute a JSON-RPC method and return its raw result.

        Raises:
            ToolError: unknown method or invalid arguments
            FileNotFoundError / IsADirectoryError / ValueError / PatchError:
                failures reported by the services
        """
        if params is None:
            params = {}
        if method in self._methods:
            if not isinstance(params, dict):
                raise ToolError("params must be an object")
            return self._methods[method](params)
        if method.startswith("notifications/"):
            logger.debug(f"Acknowledged notification: {method}")
            return None
        if method in self._tools:
            return self._run_tool(method, params)
        raise ToolError(f"Unknown method: {method}")

    def call_tool(self, name: Any, arguments: Any = None) -> Dict[str, Any]:
        """Run a tool and wrap its result as MCP text content."""
        if not isinstance(name, str) or name not in self._tools:
            raise ToolError(f"Unknown tool: {name}")
        result = self._run_tool(name, {} if arguments is None else arguments)

        if name in TOOL_CONFIRMATIONS:
            text = TOOL_CONFIRMATIONS[name]
        elif isinstance(result, str):
            text = result
        else:
            text = json.dumps(result, default=str)
        return {"content": [{"type": "text", "text": text}]}

    def _tools_call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if "name" not in params:
            raise ToolError("Missing required argument(s): name")
        return self.call_tool(params["name"], params.get("arguments"))

    def _run_tool(self, name: str, arguments: Any) -> Any:
        if not isinstance(arguments, dict):
            raise ToolError("Tool arguments must be an object")
        self._check_arguments(name, arguments)

        logger.info(
            f"Executing tool: {name}",
            extra={"tool": name, "args_keys": list(arguments.keys())},
        )
        return self._tools[name](**arguments)

    def _check_arguments(self, name: str, arguments: Dict[str, Any]) -> None:
        missing = [key for key in required_arguments(name) if arguments.get(key) is None]
        if missing:
            raise ToolError(f"Missing required argument(s): {', '.join(missing)}")

        schema = next(tool for tool in TOOLS if tool["name"] == name)["inputSchema"]
        for key, spec in schema.get("properties", {}).items():
            value = arguments.get(key)
            if value is None:
                continue
            expected = _SCHEMA_TYPES.get(spec.get("type", ""))
            if not expected:
                continue
            if (isinstance(value, bool) and bool not in expected) or not isinstance(value, expected):
                raise ToolError(f"Argument '{key}' must be a {spec['type']}")

    # =========================================================================
    # Vault Tool Implementations
    # =========================================================================

    def _list_files_in_vault(self, **kwargs: Any) -> List[str]:
        """List every file in the vault."""
        return self.vault.list_files()

    def _list_files_in_dir(self, dirpath: str, **kwargs: Any) -> List[str]:
        """List files below a folder."""
        return self.vault.list_under(dirpath)

    def _get_file_contents(self, filepath: str, **kwargs: Any) -> str:
        """Return a file's raw text."""
        return self.vault.read(filepath)

    def _append_content(self, filepath: str, content: str, **kwargs: Any) -> None:
        """Append to a file, creating it and its parent folders when missing."""
        entry = self.vault.get_entry(filepath)
        if isinstance(entry, VaultFolder):
            raise IsADirectoryError(f"Path is a directory: {filepath}")
        if entry is None:
            folder = filepath.strip("/").rpartition("/")[0]
            if folder and not isinstance(self.vault.get_entry(folder), VaultFolder):
                self.vault.ensure_folder(folder)
            self.vault.create(filepath, content)
            return None
        existing = self.vault.read(entry.path)
        self.vault.modify(entry.path, existing + content)
        return None

    def _patch_content(
        self,
        filepath: str,
        operation: str,
        target_type: str,
        target: str,
        content: str,
        **kwargs: Any,
    ) -> None:
        """Patch a heading section, a block reference or a frontmatter key."""
        parse_operation(operation)
        kind = parse_target_type(target_type)
        entry = self.vault.get_entry(filepath)
        if not isinstance(entry, VaultFile):
            raise FileNotFoundError(f"File not found: {filepath}")

        if kind is PatchTargetType.FRONTMATTER:
            self.vault.process_frontmatter(
                entry.path,
                lambda metadata: patch_frontmatter(metadata, operation, target, content),
            )
            return None

        text = self.vault.read(entry.path)
        self.vault.modify(entry.path, patch_text(text, operation, kind, target, content))
        return None

    def _simple_search(
        self,
        query: str,
        context_length: Any = DEFAULT_CONTEXT_LENGTH,
        **kwargs: Any,
    ) -> List[Dict[str, Any]]:
        """Case-insensitive substring search with context windows."""
        return self.search.search(query, context_length)

    def _delete_file(self, filepath: str, confirm: bool, **kwargs: Any) -> None:
        """Delete a file once the caller has confirmed."""
        if confirm is not True:
            raise ToolError("Deletion requires confirmation")
        self.vault.delete(filepath)
        return None

    # =========================================================================
    # Structured Query Implementations
    # =========================================================================

    def _require_query_engine(self) -> QueryEngine:
        if not self.config.enable_dataview_queries:
            raise ToolError("Dataview queries are disabled")
        if self.query_engine is None:
            raise ToolError("Dataview plugin is not installed or enabled")
        return self.query_engine

    def _dataview_query(self, query: str, **kwargs: Any) -> Any:
        """Run a DQL query and return its structured value."""
        engine = self._require_query_engine()
        result = engine.query(query)
        if not result.successful:
            raise ToolError(f"Dataview query failed: {result.error}")
        return result.value

    def _validate_dataview_query(
        self, query: str, type: str = "DQL", **kwargs: Any
    ) -> Dict[str, Any]:
        """Report whether a query parses and whether it returns anything. Never writes."""
        if not self.config.enable_dataview_queries:
            raise ToolError("Dataview queries are disabled")
        if self.query_engine is None:
            return {
                "valid": False,
                "syntaxValid": False,
                "error": "Dataview plugin is not installed or enabled",
            }

        query_type = (type or "DQL").upper()
        if query_type == "JS":
            return {
                "valid": False,
                "syntaxValid": False,
                "type": "JS",
                "error": "JavaScript queries are not supported",
            }
        if query_type != "DQL":
            raise ToolError(f"Invalid query type: {type}")

        result = self.query_engine.query(query)
        result_count = _result_count(result.value) if result.successful else 0
        has_results = result_count > 0

        warning: Optional[str] = None
        if result.successful and not has_results:
            where_match = WHERE_FIELD_PATTERN.search(query)
            if SUSPICIOUS_FIELD_PATTERN.search(query):
                warning = "Query contains potentially invalid field names"
            elif where_match:
                warning = (
                    f"Query returned no results. Field '{where_match.group(1)}' "
                    "might not exist or have no matching values"
                )
            else:
                warning = "Query returned no results"

        return {
            "valid": result.successful and (warning is None or has_results),
            "syntaxValid": result.successful,
            "type": "DQL",
            "successful": result.successful,
            "hasResults": has_results,
            "resultCount": result_count,
            "result": result.value if result.successful else None,
            "resultType": result.type,
            "error": None if result.successful else result.error,
            "warning": warning,
        }

    def _get_rendered_content(self, filepath: str, **kwargs: Any) -> Dict[str, Any]:
        """Return a note with its ```dataview blocks replaced by their Markdown results."""
        content = self.vault.read(filepath)
        statuses: Dict[str, Dict[str, Any]] = {}
        errors: List[str] = []
        rendered = content

        engine = self.query_engine if self.config.enable_dataview_queries else None
        if engine is not None:

            def render_block(match: "re.Match[str]") -> str:
                query = match.group("query").strip()
                try:
                    result = engine.query_markdown(query)
                except Exception as exc:
                    logger.exception(f"Query engine failed while rendering {filepath}")
                    result = QueryResult.fail(str(exc))

                if result.successful:
                    markdown = result.value or ""
                    statuses[query] = {
                        "success": True,
                        "resultCount": len([line for line in markdown.split("\n") if line.strip()]),
                        "type": "DQL",
                    }
                    return markdown or "*(No results)*"

                errors.append(query)
                statuses[query] = {"success": False, "error": result.error, "type": "DQL"}
                return f"{match.group(0)}\n> ⚠️ **Query Error**: {result.error}\n"

            rendered = DATAVIEW_BLOCK_PATTERN.sub(render_block, content)

            # Inline expressions are JavaScript; they are reported, never evaluated.
            for match in INLINE_QUERY_PATTERN.finditer(content):
                expression = match.group("expr").strip()
                errors.append(expression)
                statuses[f"inline: {expression}"] = {
                    "success": False,
                    "error": "Inline JavaScript queries are disabled",
                    "type": "inline",
                }

        return {
            "filepath": filepath,
            "rawContent": content,
            "renderedMarkdown": rendered,
            "queryStatuses": statuses,
            "hasErrors": bool(errors),
            "hasDataview": bool(statuses),
        }


__all__ = ["ToolExecutor", "ToolError", "TOOL_CONFIRMATIONS"]
