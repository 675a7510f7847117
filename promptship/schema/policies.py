"""Mutation-safety rules: what may and may not change in an existing artifact.

Each rule is a pure predicate over (old content, new content). The same table
is rendered into generator instructions by ``render_rules_text`` and enforced
by the validator, so the two can never drift apart.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from promptship.schema.layout import FileRole, ROLE_FILENAMES, is_version, parse_version


@dataclass(frozen=True)
class Violation:
    """A single forbidden change."""

    rule: str
    message: str


Checker = Callable[[str, str], list[Violation]]


@dataclass(frozen=True)
class MutationRule:
    role: FileRole
    name: str
    allowed: tuple[str, ...] = ()
    forbidden: tuple[str, ...] = ()
    check: Checker | None = field(default=None, compare=False)

    def evaluate(self, old: str, new: str) -> list[Violation]:
        if self.check is None:
            return []
        return self.check(old, new)


class _Unparseable(Exception):
    pass


def _load_json(text: str) -> object:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise _Unparseable(str(e)) from e


def _compare_json(
    name: str, old: str, new: str, compare: Callable[[object, object], list[Violation]]
) -> list[Violation]:
    try:
        old_doc = _load_json(old)
    except _Unparseable:
        # Nothing reliable to compare against.
        return []
    try:
        new_doc = _load_json(new)
    except _Unparseable as e:
        return [Violation(f"{name}.invalid-json", f"new content is not valid JSON: {e}")]
    return compare(old_doc, new_doc)


# -- main.ts -----------------------------------------------------------------

_ENTRY_RE = re.compile(
    r"export\s+default\s+(?:async\s+)?(?:function\s*\*?\s*[\w$]*\s*)?\(",
)
_OPENERS = {"(": ")", "{": "}", "[": "]", "<": ">"}
_CLOSERS = {v: k for k, v in _OPENERS.items()}


@dataclass(frozen=True)
class Signature:
    params: tuple[str, ...]
    returns: str


def _normalize(text: str) -> str:
    return re.sub(r"\s+", "", text).rstrip(",;")


def _top_level(text: str):
    """Yield (index, char) pairs for characters not nested in brackets or generics."""
    depth = 0
    for i, ch in enumerate(text):
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS and depth > 0 and not (ch == ">" and text[i - 1 : i] == "="):
            depth -= 1
        elif depth == 0:
            yield i, ch


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    start = 0
    for i, ch in _top_level(text):
        if ch == ",":
            parts.append(text[start:i])
            start = i + 1
    tail = text[start:]
    if tail.strip():
        parts.append(tail)
    return parts


def _strip_default(text: str) -> str:
    for i, ch in _top_level(text):
        if ch == "=" and text[i + 1 : i + 2] != ">":
            return text[:i]
    return text


def _param_shape(param: str) -> str:
    """Reduce a parameter to what callers depend on: its type, not its binding."""
    for i, ch in _top_level(param):
        if ch == ":":
            optional = param[:i].rstrip().endswith("?")
            return ("?" if optional else "") + _normalize(_strip_default(param[i + 1 :]))
    stripped = _strip_default(param).strip()
    if stripped.startswith("{"):
        return "{...}"
    if stripped.startswith("["):
        return "[...]"
    return "any"


def extract_signature(source: str) -> Signature | None:
    """Find the default-exported entry point and return its public signature."""
    m = _ENTRY_RE.search(source)
    if m is None:
        return None
    start = m.end()
    depth = 1
    i = start
    while i < len(source) and depth:
        ch = source[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        i += 1
    if depth:
        return None
    params_text = source[start : i - 1]
    rest = source[i:]
    returns = ""
    rm = re.match(r"\s*:\s*", rest)
    if rm:
        # Return annotation runs until the body opens ('{' or '=>') at depth 0.
        body = rest[rm.end() :]
        depth = 0
        seen = False
        for j, ch in enumerate(body):
            if depth == 0 and seen and (ch == "{" or body.startswith("=>", j)):
                returns = _normalize(body[:j])
                break
            if ch in _OPENERS:
                depth += 1
            elif ch in _CLOSERS and depth > 0 and not (ch == ">" and body[j - 1 : j] == "="):
                depth -= 1
            seen = seen or not ch.isspace()
    params = tuple(_param_shape(p) for p in _split_top_level(params_text))
    return Signature(params=params, returns=returns)


def check_main(old: str, new: str) -> list[Violation]:
    old_sig = extract_signature(old)
    if old_sig is None:
        return []
    new_sig = extract_signature(new)
    if new_sig is None:
        return [Violation("main.entry-removed", "default-exported entry point was removed")]
    violations: list[Violation] = []
    if old_sig.params != new_sig.params:
        violations.append(
            Violation(
                "main.signature-changed",
                f"function parameters changed from ({', '.join(old_sig.params)}) "
                f"to ({', '.join(new_sig.params)})",
            )
        )
    if old_sig.returns != new_sig.returns:
        violations.append(
            Violation(
                "main.return-type-changed",
                f"return type changed from {old_sig.returns or '<none>'!r} "
                f"to {new_sig.returns or '<none>'!r}",
            )
        )
    return violations


# -- inputs.json / output.json ----------------------------------------------


def _properties(doc: object) -> dict[str, dict]:
    if not isinstance(doc, dict):
        return {}
    props = doc.get("properties")
    if not isinstance(props, dict):
        return {}
    return {k: (v if isinstance(v, dict) else {}) for k, v in props.items()}


def _required(doc: object) -> set[str]:
    if not isinstance(doc, dict):
        return set()
    req = doc.get("required")
    if isinstance(req, list):
        return {r for r in req if isinstance(r, str)}
    # Per-property flag form: {"properties": {"x": {"required": true}}}
    return {k for k, v in _properties(doc).items() if v.get("required") is True}


def _compare_inputs(old: object, new: object) -> list[Violation]:
    violations: list[Violation] = []
    old_props, new_props = _properties(old), _properties(new)
    old_req, new_req = _required(old), _required(new)
    for key, spec in old_props.items():
        if key not in new_props:
            violations.append(
                Violation("inputs.removed", f"input {key!r} was removed or renamed")
            )
            continue
        old_type, new_type = spec.get("type"), new_props[key].get("type")
        if old_type is not None and old_type != new_type:
            violations.append(
                Violation(
                    "inputs.type-changed",
                    f"input {key!r} changed type from {old_type!r} to {new_type!r}",
                )
            )
        if key not in old_req and key in new_req:
            violations.append(
                Violation("inputs.made-required", f"optional input {key!r} became required")
            )
    for key in new_props.keys() - old_props.keys():
        if key in new_req:
            violations.append(
                Violation("inputs.new-required", f"new input {key!r} must be optional")
            )
    return violations


def check_inputs(old: str, new: str) -> list[Violation]:
    return _compare_json("inputs", old, new, _compare_inputs)


def _compare_outputs(old: object, new: object) -> list[Violation]:
    violations: list[Violation] = []
    if isinstance(old, dict) and isinstance(new, dict):
        old_type, new_type = old.get("type"), new.get("type")
        if old_type is not None and old_type != new_type:
            violations.append(
                Violation(
                    "outputs.type-changed",
                    f"output type changed from {old_type!r} to {new_type!r}",
                )
            )
    new_props = _properties(new)
    for key in _properties(old):
        if key not in new_props:
            violations.append(
                Violation("outputs.removed", f"output {key!r} was removed or renamed")
            )
    return violations


def check_outputs(old: str, new: str) -> list[Violation]:
    return _compare_json("outputs", old, new, _compare_outputs)


# -- nodes.json (workflow graph) --------------------------------------------

_REF_KEYS = ("node", "ref", "nodeId")


def _steps(doc: object) -> dict[str, dict]:
    if isinstance(doc, dict):
        doc = doc.get("nodes", doc.get("steps", []))
    if not isinstance(doc, list):
        return {}
    steps: dict[str, dict] = {}
    for item in doc:
        if isinstance(item, dict) and isinstance(item.get("id"), str):
            steps[item["id"]] = item
    return steps


def _reference(step: dict) -> tuple[str, str | None] | None:
    for key in _REF_KEYS:
        ref = step.get(key)
        if isinstance(ref, str) and ref:
            break
    else:
        return None
    # Accept "name@1.0.0" and "nodes/name/1.0.0".
    if "@" in ref:
        name, _, version = ref.rpartition("@")
        return name.lower(), version or None
    parts = ref.strip("/").split("/")
    if parts and parts[0] == "nodes":
        parts = parts[1:]
    if len(parts) >= 2 and is_version(parts[-1]):
        return "/".join(parts[:-1]).lower(), parts[-1]
    return "/".join(parts).lower(), None


def _compatible_bump(old: str | None, new: str | None) -> bool:
    if old is None or new is None:
        return old == new or new is not None
    if not (is_version(old) and is_version(new)):
        return old == new
    o, n = parse_version(old), parse_version(new)
    return n[0] == o[0] and n >= o


def _compare_graph(old: object, new: object) -> list[Violation]:
    violations: list[Violation] = []
    new_steps = _steps(new)
    for step_id, step in _steps(old).items():
        if step_id not in new_steps:
            violations.append(
                Violation("graph.step-removed", f"step {step_id!r} was removed or renamed")
            )
            continue
        old_ref, new_ref = _reference(step), _reference(new_steps[step_id])
        if old_ref is None:
            continue
        if new_ref is None or old_ref[0] != new_ref[0]:
            violations.append(
                Violation(
                    "graph.reference-changed",
                    f"step {step_id!r} no longer references {old_ref[0]!r}",
                )
            )
        elif not _compatible_bump(old_ref[1], new_ref[1]):
            violations.append(
                Violation(
                    "graph.incompatible-version",
                    f"step {step_id!r} moved {old_ref[0]!r} from {old_ref[1]} to {new_ref[1]}",
                )
            )
    return violations


def check_graph(old: str, new: str) -> list[Violation]:
    return _compare_json("graph", old, new, _compare_graph)


# -- triggers.json -----------------------------------------------------------


def _triggers(doc: object) -> dict[str, str]:
    if isinstance(doc, dict):
        doc = doc.get("triggers", [doc])
    if not isinstance(doc, list):
        return {}
    found: dict[str, str] = {}
    for i, item in enumerate(doc):
        if not isinstance(item, dict):
            continue
        kind = item.get("type") or item.get("kind")
        if isinstance(kind, str):
            found[str(item.get("id", i))] = kind
    return found


def _compare_triggers(old: object, new: object) -> list[Violation]:
    new_triggers = _triggers(new)
    return [
        Violation(
            "triggers.kind-changed",
            f"trigger {key!r} changed kind from {kind!r} to {new_triggers[key]!r}",
        )
        for key, kind in _triggers(old).items()
        if key in new_triggers and new_triggers[key] != kind
    ]


def check_triggers(old: str, new: str) -> list[Violation]:
    return _compare_json("triggers", old, new, _compare_triggers)


# -- the table ---------------------------------------------------------------

RULES: dict[FileRole, MutationRule] = {
    FileRole.MAIN: MutationRule(
        role=FileRole.MAIN,
        name="entry-point signature",
        allowed=("Changing internal function logic", "error handling", "adding imports"),
        forbidden=("Changing the function signature (arguments or return type)",),
        check=check_main,
    ),
    FileRole.INPUTS_SCHEMA: MutationRule(
        role=FileRole.INPUTS_SCHEMA,
        name="input compatibility",
        allowed=("Changing titles and descriptions", "adding NEW optional inputs"),
        forbidden=(
            "Renaming or removing keys",
            "changing data types",
            "making optional inputs required",
            "adding new required inputs",
        ),
        check=check_inputs,
    ),
    FileRole.OUTPUTS_SCHEMA: MutationRule(
        role=FileRole.OUTPUTS_SCHEMA,
        name="output compatibility",
        allowed=("Adding new properties",),
        forbidden=("Removing or renaming properties", "changing the output type"),
        check=check_outputs,
    ),
    FileRole.GRAPH: MutationRule(
        role=FileRole.GRAPH,
        name="workflow graph stability",
        allowed=("Changing step values", "compatible version bumps of referenced nodes"),
        forbidden=(
            "Changing or removing an existing step id",
            "pointing an existing step at a different node",
        ),
        check=check_graph,
    ),
    FileRole.TRIGGERS: MutationRule(
        role=FileRole.TRIGGERS,
        name="trigger kind",
        allowed=("Changing schedule expressions and paths",),
        forbidden=("Changing a trigger's kind (e.g. http to schedule)",),
        check=check_triggers,
    ),
    FileRole.META: MutationRule(role=FileRole.META, name="metadata"),
    FileRole.FULL_SCHEMA: MutationRule(role=FileRole.FULL_SCHEMA, name="full schema"),
    FileRole.CONFIG: MutationRule(role=FileRole.CONFIG, name="embedded config"),
}


def check_mutation(role: FileRole, old: str, new: str) -> list[Violation]:
    return RULES[role].evaluate(old, new)


def render_rules_text() -> str:
    """Phrase the rule table as generator instructions."""
    lines: list[str] = []
    for role, rule in RULES.items():
        if not rule.forbidden:
            continue
        lines.append(f"#### `{ROLE_FILENAMES[role]}`")
        lines.append(f"- ALLOWED: {', '.join(rule.allowed)}.")
        lines.append(f"- FORBIDDEN: {', '.join(rule.forbidden)}.")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"
