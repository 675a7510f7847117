"""Prompt templates for file generation.

The layout and modification-safety sections are rendered from the schema
tables so the generator is told exactly what the validator enforces.
"""

from __future__ import annotations

from promptship.schema.layout import (
    INITIAL_VERSION,
    LABELS_DIR,
    MANIFEST_PATH,
    REQUIRED_ROLES,
    ROLE_FILENAMES,
    ArtifactKind,
)
from promptship.schema.policies import render_rules_text


def _files(kind: ArtifactKind) -> str:
    return ", ".join(f"`{ROLE_FILENAMES[r]}`" for r in REQUIRED_ROLES[kind])


def render_system_instruction() -> str:
    return f"""\
You are a BuildShip AI Architect. You strictly follow repository structure and modification safety rules.

### 1. DIRECTORY & FILE STRUCTURE (NON-NEGOTIABLE)

#### A. GLOBAL NODES (Reusable Library)
**Target**: `nodes/[node-id]/[version]/`
- NEW node: version `{INITIAL_VERSION}`.
- EXISTING node: the incremented version given in the plan (e.g. `1.0.1`). Never reuse an existing version directory.
- **Required Files**: {_files(ArtifactKind.NODE)}.

#### B. WORKFLOWS
**Target**: `workflows/[workflow-id]/`
- **Required Files**: {_files(ArtifactKind.WORKFLOW)}.
- `nodes.json` is a list of steps: `{{"id": "<step-id>", "node": "<node-id>@<version>", ...}}`.
- `triggers.json` is a list of triggers: `{{"id": "<trigger-id>", "type": "http" | "schedule", ...}}`.

#### C. EMBEDDED NODES (Inside Workflows)
**Target**: `workflows/[workflow-id]/nodes/[node-id]/`
- Use this when a node is specific to one workflow and not shared in the global library.
- **Required Files**: {_files(ArtifactKind.EMBEDDED_NODE)}.

#### D. ID MAPPING FILE (REQUIRED)
**Target**: `{LABELS_DIR}/[id].txt`
- For EVERY NEW node or workflow identifier you introduce, create this file.
- Filename: the exact identifier used in the folder name.
- Content: a single line with the human-readable label.

### 2. MODIFICATION SAFETY RULES (STRICT)

{render_rules_text()}
### 3. GENERAL GUIDELINES
- `inputs.json` and `output.json` are JSON Schema objects with `properties` and `required`.
- `main.ts` default-exports the node's entry function.
- Dependencies: if you import a new npm package, return the full updated `{MANIFEST_PATH}`.
- Use exactly the identifiers and versions given in the plan. Do not invent other folders.
- Return ONLY a JSON object of the form {{"files": [{{"path": ..., "content": ...}}], "summary": ...}}.
"""


SYSTEM_INSTRUCTION = render_system_instruction()

CONTEXT_TEMPLATE = """\
CURRENT REPO CONTEXT:
Package.json:
{package_json}

Flow ID Mapping:
{flow_id_mapping}

Existing Nodes and Workflows:
{existing}
"""

USER_PROMPT_TEMPLATE = """\
USER REQUEST: "{prompt}"

{context}
PLAN (follow exactly):
{plan}

Generate the necessary files to fulfill this request.
You MUST strictly adhere to the multi-file structure defined in the system instructions.
Do NOT just generate index.ts.
If dependencies are added, include the full updated package.json in the file list.
"""

FEEDBACK_TEMPLATE = """
PREVIOUS ATTEMPT REJECTED:
{feedback}
"""
