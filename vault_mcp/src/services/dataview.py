"""Structured (Dataview-style) queries over note frontmatter.

The gateway only talks to the ``QueryEngine`` interface. The bundled
``FrontmatterQueryEngine`` understands a small DQL subset::

    LIST [<field>] | TABLE <field> [AS "<label>"], ... | TASK
    [FROM "<folder>" | #<tag>]
    [WHERE <field> [<op> <literal>] [AND ...]]
    [SORT <field> [ASC|DESC]]
    [LIMIT <n>]

Fields are frontmatter key paths (``meta.author``) or ``file.name``,
``file.path``, ``file.folder`` and ``file.tags``. Task queries also expose
``text`` and ``completed``.
"""

from __future__ import annotations

import abc
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..models.dataview import QueryResult
from .vault import VaultService, split_frontmatter

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(
    r"""\s*(?:
        (?P<string>"(?:[^"\\]|\\.)*")
      | (?P<op>!=|<=|>=|=|<|>)
      | (?P<comma>,)
      | (?P<word>[^\s,"=!<>]+)
    )""",
    re.VERBOSE,
)
TASK_PATTERN = re.compile(r"^[ \t]*[-*+][ \t]+\[(?P<mark>[ xX])\][ \t]+(?P<text>.*?)[ \t]*\r?$")
INLINE_TAG_PATTERN = re.compile(r"(?<![\w#])#([\w/-]+)")
CLAUSE_KEYWORDS = {"FROM", "WHERE", "SORT", "LIMIT"}
QUERY_TYPES = {"LIST", "TABLE", "TASK"}


class DataviewSyntaxError(ValueError):
    """Raised when a query cannot be parsed."""


class QueryEngine(abc.ABC):
    """Interface of a structured-query backend."""

    @abc.abstractmethod
    def query(self, source: str) -> QueryResult:
        """Run ``source`` and return structured results."""

    @abc.abstractmethod
    def query_markdown(self, source: str) -> QueryResult:
        """Run ``source`` and return its results rendered as Markdown text."""


@dataclass
class Condition:
    field: str
    op: Optional[str] = None
    value: Any = None


@dataclass
class ParsedQuery:
    kind: str
    fields: List[Tuple[str, str]] = field(default_factory=list)
    source: Optional[Tuple[str, str]] = None
    conditions: List[Condition] = field(default_factory=list)
    sort: Optional[Tuple[str, bool]] = None
    limit: Optional[int] = None


def tokenize(source: str) -> List[Tuple[str, str]]:
    tokens: List[Tuple[str, str]] = []
    pos = 0
    while pos < len(source):
        if not source[pos:].strip():
            break
        match = TOKEN_PATTERN.match(source, pos)
        if not match or match.end() == pos:
            raise DataviewSyntaxError(f"Unexpected character at offset {pos}: {source[pos]!r}")
        kind = match.lastgroup or ""
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, source: str) -> None:
        self.tokens = tokenize(source)
        self.pos = 0

    def peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> Tuple[str, str]:
        token = self.peek()
        if token is None:
            raise DataviewSyntaxError("Unexpected end of query")
        self.pos += 1
        return token

    def at_keyword(self) -> bool:
        token = self.peek()
        return token is not None and token[0] == "word" and token[1].upper() in CLAUSE_KEYWORDS

    def expect_word(self, what: str) -> str:
        kind, value = self.take()
        if kind != "word":
            raise DataviewSyntaxError(f"Expected {what}, got {value!r}")
        return value

    def parse(self) -> ParsedQuery:
        if not self.tokens:
            raise DataviewSyntaxError("Empty query")
        kind = self.expect_word("query type").upper()
        if kind not in QUERY_TYPES:
            raise DataviewSyntaxError(f"Unknown query type: {kind}")
        query = ParsedQuery(kind=kind.lower())

        if kind == "TABLE":
            query.fields = self.parse_fields()
        elif kind == "LIST" and self.peek() is not None and not self.at_keyword():
            name = self.expect_word("field")
            query.fields = [(name, name)]

        while self.peek() is not None:
            keyword = self.expect_word("clause").upper()
            if keyword == "FROM":
                query.source = self.parse_source()
            elif keyword == "WHERE":
                query.conditions.extend(self.parse_conditions())
            elif keyword == "SORT":
                name = self.expect_word("sort field")
                descending = False
                token = self.peek()
                if token and token[0] == "word" and token[1].upper() in {"ASC", "DESC"}:
                    descending = self.take()[1].upper() == "DESC"
                query.sort = (name, descending)
            elif keyword == "LIMIT":
                raw = self.expect_word("limit")
                if not raw.isdigit():
                    raise DataviewSyntaxError(f"LIMIT expects a number, got {raw!r}")
                query.limit = int(raw)
            else:
                raise DataviewSyntaxError(f"Unexpected token: {keyword}")
        return query

    def parse_fields(self) -> List[Tuple[str, str]]:
        fields: List[Tuple[str, str]] = []
        while self.peek() is not None and not self.at_keyword():
            name = self.expect_word("field")
            label = name
            token = self.peek()
            if token and token[0] == "word" and token[1].upper() == "AS":
                self.take()
                kind, raw = self.take()
                label = _unquote(raw) if kind == "string" else raw
            fields.append((name, label))
            token = self.peek()
            if token and token[0] == "comma":
                self.take()
            elif token is not None and not self.at_keyword():
                raise DataviewSyntaxError(f"Expected ',' between fields, got {token[1]!r}")
        return fields

    def parse_source(self) -> Tuple[str, str]:
        kind, raw = self.take()
        if kind == "string":
            return ("folder", _unquote(raw).strip("/"))
        if kind == "word" and raw.startswith("#") and len(raw) > 1:
            return ("tag", raw[1:].lower())
        raise DataviewSyntaxError(f"FROM expects a \"folder\" or #tag, got {raw!r}")

    def parse_conditions(self) -> List[Condition]:
        conditions = [self.parse_condition()]
        token = self.peek()
        while token and token[0] == "word" and token[1].upper() == "AND":
            self.take()
            conditions.append(self.parse_condition())
            token = self.peek()
        return conditions

    def parse_condition(self) -> Condition:
        name = self.expect_word("field")
        token = self.peek()
        if not token or token[0] != "op":
            return Condition(field=name)
        op = self.take()[1]
        kind, raw = self.take()
        return Condition(field=name, op=op, value=_literal(kind, raw))


def _unquote(raw: str) -> str:
    return re.sub(r"\\(.)", r"\1", raw[1:-1])


def _literal(kind: str, raw: str) -> Any:
    if kind == "string":
        return _unquote(raw)
    if kind != "word":
        raise DataviewSyntaxError(f"Expected a value, got {raw!r}")
    lowered = raw.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered == "null":
        return None
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw


def parse_query(source: str) -> ParsedQuery:
    """Parse a DQL string, raising DataviewSyntaxError on invalid input."""
    return _Parser(source).parse()


def _normalize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize(item) for item in value]
    return value


def _note_tags(metadata: Dict[str, Any], body: str) -> List[str]:
    raw = metadata.get("tags") or metadata.get("tag") or []
    if isinstance(raw, str):
        raw = re.split(r"[,\s]+", raw)
    tags = {str(tag).lstrip("#").lower() for tag in raw if str(tag).strip()}
    tags.update(tag.lower() for tag in INLINE_TAG_PATTERN.findall(body))
    return sorted(tags)


@dataclass
class _Row:
    path: str
    metadata: Dict[str, Any]
    tags: List[str]
    extra: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str) -> Any:
        if name in self.extra:
            return self.extra[name]
        lowered = name.lower()
        if lowered == "file.path":
            return self.path
        if lowered == "file.name":
            return PurePosixPath(self.path).stem
        if lowered == "file.folder":
            parent = PurePosixPath(self.path).parent.as_posix()
            return "" if parent == "." else parent
        if lowered == "file.tags":
            return ["#" + tag for tag in self.tags]
        node: Any = self.metadata
        for key in name.split("."):
            if not isinstance(node, dict):
                return None
            if key in node:
                node = node[key]
                continue
            matches = [k for k in node if str(k).lower() == key.lower()]
            if not matches:
                return None
            node = node[matches[0]]
        return _normalize(node)


def _compare(actual: Any, op: str, expected: Any) -> bool:
    try:
        if op == "=":
            return actual == expected
        if op == "!=":
            return actual != expected
        if actual is None or expected is None:
            return False
        if op == "<":
            return actual < expected
        if op == "<=":
            return actual <= expected
        if op == ">":
            return actual > expected
        if op == ">=":
            return actual >= expected
    except TypeError:
        return False
    raise DataviewSyntaxError(f"Unknown operator: {op}")


def _matches(row: _Row, conditions: List[Condition]) -> bool:
    for condition in conditions:
        actual = row.get(condition.field)
        if condition.op is None:
            if not actual:
                return False
        elif not _compare(actual, condition.op, condition.value):
            return False
    return True


def _sort_key(value: Any) -> Tuple[int, Any]:
    if value is None:
        return (2, "")
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, str(value))


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, list):
        return ", ".join(_cell(item) for item in value)
    return str(value).replace("|", "\\|").replace("\n", " ")


class FrontmatterQueryEngine(QueryEngine):
    """Evaluates DQL-subset queries against the vault's notes."""

    def __init__(self, vault_service: Optional[VaultService] = None) -> None:
        self.vault = vault_service or VaultService()

    def query(self, source: str) -> QueryResult:
        try:
            parsed = parse_query(source)
            value = self._execute(parsed)
        except DataviewSyntaxError as exc:
            return QueryResult.fail(f"Parsing failed: {exc}")
        return QueryResult.ok(value, parsed.kind)

    def query_markdown(self, source: str) -> QueryResult:
        result = self.query(source)
        if not result.successful:
            return result
        return QueryResult.ok(self.render_markdown(result.value), result.type)

    @staticmethod
    def render_markdown(value: Dict[str, Any]) -> str:
        kind = value.get("type")
        if kind == "table":
            if not value["values"]:
                return ""
            header = "| " + " | ".join(value["headers"]) + " |"
            divider = "| " + " | ".join("---" for _ in value["headers"]) + " |"
            rows = ["| " + " | ".join(_cell(cell) for cell in row) + " |" for row in value["values"]]
            return "\n".join([header, divider, *rows]) + "\n"
        if kind == "task":
            return "".join(
                f"- [{'x' if task['completed'] else ' '}] {task['text']}\n"
                for task in value["values"]
            )
        lines = []
        for item in value.get("values", []):
            if isinstance(item, dict):
                lines.append(f"- {item['path']}: {_cell(item['value'])}\n")
            else:
                lines.append(f"- {item}\n")
        return "".join(lines)

    def _rows(self, parsed: ParsedQuery) -> Iterator[Tuple[_Row, str]]:
        for path in self.vault.list_markdown_files():
            if parsed.source and parsed.source[0] == "folder":
                folder = parsed.source[1]
                if folder and not (
                    path.startswith(folder + "/") or path in {folder, folder + ".md"}
                ):
                    continue
            try:
                text = self.vault.read(path)
            except (FileNotFoundError, UnicodeDecodeError, ValueError) as exc:
                logger.warning(f"Skipping unreadable note {path}: {exc}")
                continue
            try:
                metadata, body, _ = split_frontmatter(text)
            except ValueError as exc:
                logger.warning(f"Ignoring unreadable frontmatter in {path}: {exc}")
                metadata, body = {}, text
            row = _Row(path=path, metadata=metadata, tags=_note_tags(metadata, body))
            if parsed.source and parsed.source[0] == "tag":
                tag = parsed.source[1]
                if not any(t == tag or t.startswith(tag + "/") for t in row.tags):
                    continue
            yield row, text

    def _execute(self, parsed: ParsedQuery) -> Dict[str, Any]:
        rows: List[_Row] = []
        for page, text in self._rows(parsed):
            if parsed.kind != "task":
                rows.append(page)
                continue
            for number, line in enumerate(text.split("\n"), start=1):
                task = TASK_PATTERN.match(line)
                if task:
                    extra = {
                        "text": task.group("text"),
                        "completed": task.group("mark") != " ",
                        "line": number,
                    }
                    rows.append(_Row(page.path, page.metadata, page.tags, extra))

        rows = [row for row in rows if _matches(row, parsed.conditions)]
        if parsed.sort:
            name, descending = parsed.sort
            rows.sort(key=lambda row: _sort_key(row.get(name)), reverse=descending)
        if parsed.limit is not None:
            rows = rows[: parsed.limit]

        if parsed.kind == "table":
            return {
                "type": "table",
                "headers": ["File"] + [label for _, label in parsed.fields],
                "values": [[row.path] + [row.get(name) for name, _ in parsed.fields] for row in rows],
            }
        if parsed.kind == "task":
            return {
                "type": "task",
                "values": [
                    {
                        "path": row.path,
                        "line": row.extra["line"],
                        "text": row.extra["text"],
                        "completed": row.extra["completed"],
                    }
                    for row in rows
                ],
            }
        if parsed.fields:
            name = parsed.fields[0][0]
            return {
                "type": "list",
                "values": [{"path": row.path, "value": row.get(name)} for row in rows],
            }
        return {"type": "list", "values": [row.path for row in rows]}


__all__ = [
    "QueryEngine",
    "FrontmatterQueryEngine",
    "DataviewSyntaxError",
    "ParsedQuery",
    "parse_query",
]
