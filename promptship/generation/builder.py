"""Generation request builder: policy text + reconciled context + request."""

from __future__ import annotations

from typing import Any

from promptship.generation.models import GenerationRequest
from promptship.generation.prompts import (
    CONTEXT_TEMPLATE,
    FEEDBACK_TEMPLATE,
    SYSTEM_INSTRUCTION,
    USER_PROMPT_TEMPLATE,
)
from promptship.reconciler.models import ArtifactPlan, ReconciledContext
from promptship.schema.layout import REQUIRED_ROLES, ROLE_FILENAMES, ArtifactKind

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "files": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "The relative file path, e.g. 'nodes/my-node/1.0.1/main.ts'",
                    },
                    "content": {
                        "type": "string",
                        "description": "The full text content of the file.",
                    },
                },
                "required": ["path", "content"],
            },
        },
        "summary": {
            "type": "string",
            "description": "A short summary of the changes for the PR body.",
        },
    },
    "required": ["files", "summary"],
}


def describe_plan(plan: ArtifactPlan, policy: str) -> str:
    """One instruction line per planned artifact."""
    files = ", ".join(ROLE_FILENAMES[r] for r in REQUIRED_ROLES[plan.kind])
    kind = "workflow" if plan.kind == ArtifactKind.WORKFLOW else "node"
    if plan.action == "create":
        label = f' and add {plan.label_file} containing "{plan.label}"' if plan.label else ""
        return (
            f"- NEW {kind} with identifier `{plan.identifier}` ({policy} policy): "
            f"write {files} to `{plan.directory}/`{label}."
        )
    if plan.action == "update":
        version = (
            f" (existing version {plan.previous_version}, new version {plan.resolved_version})"
            if plan.kind == ArtifactKind.NODE
            else ""
        )
        return (
            f"- UPDATE existing {kind} `{plan.identifier}`{version}: keep the identifier "
            f"unchanged and write {files} to `{plan.directory}/`."
        )
    version = f"@{plan.resolved_version}" if plan.resolved_version else ""
    return (
        f"- REFERENCE existing {kind} `{plan.identifier}{version}`: use it as is; "
        "do not modify its files."
    )


def build_generation_request(
    reconciled: ReconciledContext,
    prompt: str,
    *,
    feedback: str | None = None,
) -> GenerationRequest:
    """Assemble the instruction payload for the generator. Pure, no I/O."""
    context = reconciled.context
    existing = reconciled.index.describe()
    context_text = CONTEXT_TEMPLATE.format(
        package_json=context.package_json or "Not found (assume standard)",
        flow_id_mapping=context.flow_id_mapping or "Not found",
        existing=", ".join(existing) if existing else "None found",
    )
    plan_text = "\n".join(
        describe_plan(p, reconciled.identifier_policy) for p in reconciled.plans
    )
    user_prompt = USER_PROMPT_TEMPLATE.format(
        prompt=prompt.strip(),
        context=context_text,
        plan=plan_text or "- (no artifacts planned)",
    )
    if feedback:
        user_prompt += FEEDBACK_TEMPLATE.format(feedback=feedback)
    return GenerationRequest(
        system_instruction=SYSTEM_INSTRUCTION,
        user_prompt=user_prompt,
        response_schema=RESPONSE_SCHEMA,
    )
