"""Tests for promptship.schema.policies: mutation-safety rule table."""

import json

import pytest

from promptship.schema.layout import FileRole
from promptship.schema.policies import (
    RULES,
    check_mutation,
    extract_signature,
    render_rules_text,
)


def _rules(violations):
    return [v.rule for v in violations]


# ── main.ts ─────────────────────────────────────────────────────────


class TestExtractSignature:
    def test_async_function_with_destructured_params(self):
        sig = extract_signature(
            "export default async function run({ a, b }: { a: string; b?: number }): Promise<string> {\n}"
        )
        assert sig.params == ("{a:string;b?:number}",)
        assert sig.returns == "Promise<string>"

    def test_arrow_function(self):
        sig = extract_signature("export default async (x: string, y = 2) => { return x; }")
        assert sig.params == ("string", "any")
        assert sig.returns == ""

    def test_object_literal_return_type(self):
        sig = extract_signature(
            "export default function f(): { ok: boolean } { return { ok: true }; }"
        )
        assert sig.returns == "{ok:boolean}"

    def test_default_value_does_not_hide_type(self):
        sig = extract_signature(
            "export default function f({ a }: { a: string } = { a: 'x' }) {}"
        )
        assert sig.params == ("{a:string}",)

    def test_no_entry_point(self):
        assert extract_signature("export function helper() {}") is None


class TestMainRule:
    OLD = "export default async function run(url: string): Promise<string> {\n  return url;\n}\n"

    def test_body_change_allowed(self):
        new = (
            "import axios from 'axios';\n"
            "export default async function run(url: string): Promise<string> {\n"
            "  try { return (await axios.get(url)).data; } catch (e) { throw e; }\n}\n"
        )
        assert check_mutation(FileRole.MAIN, self.OLD, new) == []

    def test_renaming_function_allowed(self):
        new = self.OLD.replace("function run", "function fetchUrl")
        assert check_mutation(FileRole.MAIN, self.OLD, new) == []

    def test_argument_change_forbidden(self):
        new = self.OLD.replace("url: string", "url: string, retries: number")
        assert _rules(check_mutation(FileRole.MAIN, self.OLD, new)) == ["main.signature-changed"]

    def test_return_type_change_forbidden(self):
        new = self.OLD.replace("Promise<string>", "Promise<number>")
        assert _rules(check_mutation(FileRole.MAIN, self.OLD, new)) == ["main.return-type-changed"]

    def test_entry_removed(self):
        assert _rules(check_mutation(FileRole.MAIN, self.OLD, "const x = 1;")) == [
            "main.entry-removed"
        ]

    def test_old_without_entry_is_not_checked(self):
        assert check_mutation(FileRole.MAIN, "// empty", "anything") == []


# ── inputs.json ─────────────────────────────────────────────────────


def _schema(props, required=()):
    return json.dumps({"type": "object", "properties": props, "required": list(required)})


class TestInputsRule:
    OLD = _schema({"name": {"type": "string"}, "count": {"type": "number"}}, ["name"])

    def test_new_optional_input_allowed(self):
        new = _schema(
            {"name": {"type": "string"}, "count": {"type": "number"}, "tag": {"type": "string"}},
            ["name"],
        )
        assert check_mutation(FileRole.INPUTS_SCHEMA, self.OLD, new) == []

    def test_title_and_description_changes_allowed(self):
        new = _schema(
            {
                "name": {"type": "string", "title": "Full name", "description": "Who"},
                "count": {"type": "number"},
            },
            ["name"],
        )
        assert check_mutation(FileRole.INPUTS_SCHEMA, self.OLD, new) == []

    def test_required_input_type_change_forbidden(self):
        new = _schema({"name": {"type": "number"}, "count": {"type": "number"}}, ["name"])
        assert _rules(check_mutation(FileRole.INPUTS_SCHEMA, self.OLD, new)) == [
            "inputs.type-changed"
        ]

    def test_optional_made_required_forbidden(self):
        new = _schema(
            {"name": {"type": "string"}, "count": {"type": "number"}}, ["name", "count"]
        )
        assert _rules(check_mutation(FileRole.INPUTS_SCHEMA, self.OLD, new)) == [
            "inputs.made-required"
        ]

    def test_removed_input_forbidden(self):
        new = _schema({"name": {"type": "string"}}, ["name"])
        assert _rules(check_mutation(FileRole.INPUTS_SCHEMA, self.OLD, new)) == ["inputs.removed"]

    def test_new_required_input_forbidden(self):
        new = _schema(
            {"name": {"type": "string"}, "count": {"type": "number"}, "tag": {"type": "string"}},
            ["name", "tag"],
        )
        assert _rules(check_mutation(FileRole.INPUTS_SCHEMA, self.OLD, new)) == [
            "inputs.new-required"
        ]

    def test_per_property_required_flag(self):
        old = json.dumps({"properties": {"a": {"type": "string"}}})
        new = json.dumps({"properties": {"a": {"type": "string", "required": True}}})
        assert _rules(check_mutation(FileRole.INPUTS_SCHEMA, old, new)) == ["inputs.made-required"]

    def test_invalid_new_json(self):
        assert _rules(check_mutation(FileRole.INPUTS_SCHEMA, self.OLD, "{not json")) == [
            "inputs.invalid-json"
        ]

    def test_invalid_old_json_skips_comparison(self):
        assert check_mutation(FileRole.INPUTS_SCHEMA, "{not json", self.OLD) == []


# ── output.json ─────────────────────────────────────────────────────


class TestOutputsRule:
    OLD = _schema({"a": {"type": "string"}, "b": {"type": "string"}})

    def test_dropping_property_rejected(self):
        new = _schema({"b": {"type": "string"}})
        assert _rules(check_mutation(FileRole.OUTPUTS_SCHEMA, self.OLD, new)) == [
            "outputs.removed"
        ]

    def test_adding_property_accepted(self):
        new = _schema({"a": {"type": "string"}, "b": {"type": "string"}, "c": {"type": "number"}})
        assert check_mutation(FileRole.OUTPUTS_SCHEMA, self.OLD, new) == []

    def test_type_change_rejected(self):
        new = json.dumps({"type": "array", "properties": json.loads(self.OLD)["properties"]})
        assert _rules(check_mutation(FileRole.OUTPUTS_SCHEMA, self.OLD, new)) == [
            "outputs.type-changed"
        ]


# ── nodes.json / triggers.json ──────────────────────────────────────


class TestGraphRule:
    OLD = json.dumps([{"id": "fetch", "node": "pdf-parser@1.0.2"}, {"id": "send", "node": "mailer"}])

    def test_compatible_bump_allowed(self):
        new = json.dumps(
            [
                {"id": "fetch", "node": "pdf-parser@1.0.3", "label": "Fetch"},
                {"id": "send", "node": "mailer"},
                {"id": "log", "node": "logger@1.0.0"},
            ]
        )
        assert check_mutation(FileRole.GRAPH, self.OLD, new) == []

    def test_step_removed(self):
        new = json.dumps([{"id": "fetch", "node": "pdf-parser@1.0.2"}])
        assert _rules(check_mutation(FileRole.GRAPH, self.OLD, new)) == ["graph.step-removed"]

    def test_reference_changed(self):
        new = json.dumps([{"id": "fetch", "node": "ocr@1.0.0"}, {"id": "send", "node": "mailer"}])
        assert _rules(check_mutation(FileRole.GRAPH, self.OLD, new)) == ["graph.reference-changed"]

    @pytest.mark.parametrize("version", ["2.0.0", "1.0.1"])
    def test_incompatible_version(self, version):
        new = json.dumps(
            [{"id": "fetch", "node": f"pdf-parser@{version}"}, {"id": "send", "node": "mailer"}]
        )
        assert _rules(check_mutation(FileRole.GRAPH, self.OLD, new)) == [
            "graph.incompatible-version"
        ]

    def test_folder_reference_form(self):
        old = json.dumps({"nodes": [{"id": "s", "ref": "nodes/pdf-parser/1.0.2"}]})
        new = json.dumps({"nodes": [{"id": "s", "ref": "pdf-parser@1.1.0"}]})
        assert check_mutation(FileRole.GRAPH, old, new) == []


class TestTriggersRule:
    def test_kind_change_forbidden(self):
        old = json.dumps([{"id": "t", "type": "http", "path": "/a"}])
        new = json.dumps([{"id": "t", "type": "schedule", "cron": "* * * * *"}])
        assert _rules(check_mutation(FileRole.TRIGGERS, old, new)) == ["triggers.kind-changed"]

    def test_path_change_allowed(self):
        old = json.dumps([{"id": "t", "type": "http", "path": "/a"}])
        new = json.dumps([{"id": "t", "type": "http", "path": "/b"}])
        assert check_mutation(FileRole.TRIGGERS, old, new) == []


# ── the table itself ────────────────────────────────────────────────


class TestRuleTable:
    def test_every_role_has_a_rule(self):
        assert set(RULES) == set(FileRole)

    def test_unrestricted_roles(self):
        for role in (FileRole.META, FileRole.FULL_SCHEMA, FileRole.CONFIG):
            assert check_mutation(role, '{"a": 1}', "totally different") == []

    def test_rendered_text_lists_forbidden_changes(self):
        text = render_rules_text()
        assert "`main.ts`" in text
        assert "`inputs.json`" in text
        assert "making optional inputs required" in text
        assert "`meta.json`" not in text
