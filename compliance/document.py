"""Read-only view over a parsed API specification document.

The parsed tree is plain JSON-like data (dict / list / str / int / float / bool / None).
Every accessor here is total: a missing or wrongly-typed node comes back as a typed
"missing" outcome or an empty container, never as an exception.
"""

from typing import Any, NamedTuple

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
WRITE_METHODS = ("post", "put", "patch", "delete")


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def kind_of(value: Any) -> str:
    """Tag a JSON-like value: object, array, string, number, bool, null or missing."""
    if value is MISSING:
        return "missing"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    # YAML can yield dates and other scalars; treat them as strings for rule purposes
    return "string"


class Operation(NamedTuple):
    path: str
    method: str
    op: dict
    path_item: dict

    @property
    def location(self) -> str:
        return f"$.paths['{self.path}'].{self.method}"

    @property
    def identifier(self) -> str:
        return f"{self.method.upper()} {self.path}"


class SpecDocument:
    """Wraps the parsed tree. The engine only reads through this object."""

    def __init__(self, tree: Any):
        self._tree = tree

    @property
    def root(self) -> Any:
        return self._tree

    def get(self, *keys: str | int, default: Any = MISSING) -> Any:
        node = self._tree
        for key in keys:
            if isinstance(node, dict) and isinstance(key, str) and key in node:
                node = node[key]
            elif isinstance(node, list) and isinstance(key, int) and -len(node) <= key < len(node):
                node = node[key]
            else:
                return default
        return node

    def get_object(self, *keys: str | int) -> dict:
        node = self.get(*keys)
        return node if isinstance(node, dict) else {}

    def get_array(self, *keys: str | int) -> list:
        node = self.get(*keys)
        return node if isinstance(node, list) else []

    def get_str(self, *keys: str | int) -> str | None:
        node = self.get(*keys)
        return node if isinstance(node, str) else None

    def kind(self, *keys: str | int) -> str:
        return kind_of(self.get(*keys))

    def paths(self) -> list[tuple[str, dict]]:
        """(path, path_item) pairs in document order; non-object path items are skipped."""
        return [
            (str(path), item)
            for path, item in self.get_object("paths").items()
            if isinstance(item, dict)
        ]

    def operations(self, methods: tuple[str, ...] = HTTP_METHODS) -> list[Operation]:
        out = []
        for path, item in self.paths():
            for method in methods:
                op = item.get(method)
                if isinstance(op, dict):
                    out.append(Operation(path, method, op, item))
        return out

    def resolve_ref(self, node: Any, max_depth: int = 20) -> Any:
        """Follow local '#/...' $ref chains. Unresolvable refs return the node unchanged."""
        seen = 0
        while isinstance(node, dict) and isinstance(node.get("$ref"), str) and seen < max_depth:
            ref = node["$ref"]
            if not ref.startswith("#/"):
                return node
            keys = [part.replace("~1", "/").replace("~0", "~") for part in ref[2:].split("/")]
            target = self.get(*keys)
            if target is MISSING:
                return node
            node = target
            seen += 1
        return node

    def parameters_for(self, operation: Operation) -> list[dict]:
        """Operation parameters merged with path-level parameters, $refs resolved where possible."""
        raw = []
        for source in (operation.path_item.get("parameters"), operation.op.get("parameters")):
            if isinstance(source, list):
                raw.extend(p for p in source if isinstance(p, dict))
        # a ref may land on a scalar or list; only parameter objects survive
        return [r for r in (self.resolve_ref(p) for p in raw) if isinstance(r, dict)]

    def has_parameter(self, operation: Operation, name: str, location: str = "header") -> bool:
        wanted = name.lower() if location == "header" else name
        for param in self.parameters_for(operation):
            ref = param.get("$ref")
            if isinstance(ref, str):
                # unresolved ref: fall back to matching the component name
                if ref.endswith(f"/{name}"):
                    return True
                continue
            pname = param.get("name")
            if not isinstance(pname, str) or param.get("in") != location:
                continue
            if (pname.lower() if location == "header" else pname) == wanted:
                return True
        return False
