"""Tests for promptship.generation.builder."""

from promptship.generation.builder import RESPONSE_SCHEMA, build_generation_request, describe_plan
from promptship.generation.prompts import SYSTEM_INSTRUCTION
from promptship.reconciler import ContextReconciler
from promptship.reconciler.models import ArtifactPlan
from promptship.schema.layout import ArtifactKind


class TestSystemInstruction:
    def test_lists_every_layout(self):
        assert "`nodes/[node-id]/[version]/`" in SYSTEM_INSTRUCTION
        assert "`workflows/[workflow-id]/`" in SYSTEM_INSTRUCTION
        assert "`workflows/[workflow-id]/nodes/[node-id]/`" in SYSTEM_INSTRUCTION
        assert "`flow-id-to-label/[id].txt`" in SYSTEM_INSTRUCTION

    def test_includes_safety_rules(self):
        assert "MODIFICATION SAFETY RULES" in SYSTEM_INSTRUCTION
        assert "`output.json`" in SYSTEM_INSTRUCTION


class TestBuildRequest:
    def test_context_sections(self, sample_context):
        reconciled = ContextReconciler().reconcile("Tweak the pdf parser", sample_context)
        request = build_generation_request(reconciled, "  Tweak the pdf parser  ")

        assert request.system_instruction == SYSTEM_INSTRUCTION
        assert request.response_schema == RESPONSE_SCHEMA
        assert 'USER REQUEST: "Tweak the pdf parser"' in request.user_prompt
        assert '"axios"' in request.user_prompt
        assert "PDF Parser" in request.user_prompt
        assert "pdf-parser@1.0.2, workflow:daily-report" in request.user_prompt
        assert "new version 1.0.3" in request.user_prompt
        assert "PREVIOUS ATTEMPT REJECTED" not in request.user_prompt

    def test_empty_context_placeholders(self, empty_context):
        reconciled = ContextReconciler().reconcile("Create a node that echoes", empty_context)
        prompt = build_generation_request(reconciled, "Create a node that echoes").user_prompt
        assert "Not found (assume standard)" in prompt
        assert "None found" in prompt
        assert "- NEW node with identifier `echoes`" in prompt

    def test_feedback_is_appended(self, empty_context):
        reconciled = ContextReconciler().reconcile("Create a node that echoes", empty_context)
        request = build_generation_request(reconciled, "x", feedback="missing main.ts")
        assert request.user_prompt.rstrip().endswith("missing main.ts")
        assert "PREVIOUS ATTEMPT REJECTED" in request.user_prompt

    def test_no_plans(self, empty_context):
        reconciled = ContextReconciler().reconcile("x", empty_context).model_copy(
            update={"plans": ()}
        )
        assert "- (no artifacts planned)" in build_generation_request(reconciled, "x").user_prompt


class TestDescribePlan:
    def test_create_mentions_label_file(self):
        plan = ArtifactPlan(
            identifier="pdf-parser",
            kind=ArtifactKind.NODE,
            action="create",
            resolved_version="1.0.0",
            label="PDF Parser",
        )
        line = describe_plan(plan, "kebab")
        assert "`nodes/pdf-parser/1.0.0/`" in line
        assert 'flow-id-to-label/pdf-parser.txt containing "PDF Parser"' in line
        assert "main.ts, inputs.json, output.json, meta.json, schema.json" in line

    def test_workflow_update_has_no_version(self):
        plan = ArtifactPlan(identifier="daily-report", kind=ArtifactKind.WORKFLOW, action="update")
        line = describe_plan(plan, "kebab")
        assert line.startswith("- UPDATE existing workflow `daily-report`:")
        assert "nodes.json, triggers.json" in line

    def test_reference(self):
        plan = ArtifactPlan(
            identifier="pdf-parser",
            kind=ArtifactKind.NODE,
            action="reference",
            resolved_version="1.0.2",
        )
        assert describe_plan(plan, "kebab").startswith(
            "- REFERENCE existing node `pdf-parser@1.0.2`"
        )
