# jwst_cosmos/comfyui/workflow.py
"""
Workflow template resolution.

Templates are ComfyUI API-format workflow graphs with `{{name}}`
placeholders. Placeholders can stand for string content (prompt text) or for
whole values (width, height, seed), so resolution works on the JSON text:

    1. serialize: dict templates are dumped to JSON text; text templates are
       used as-is and may contain bare placeholders such as `"width": {{width}}`
    2. substitute: every placeholder is replaced with a JSON-safe rendering
       of its value (see below)
    3. reparse: the result is parsed back into a dict

Rendering depends on where the placeholder sits:

    - whole JSON string, `"{{width}}"`  -> JSON literal of the value (1024, "text", true)
    - inside string text, `"a {{x}} b"`  -> value text with JSON string escaping
    - bare, outside any string           -> JSON literal of the value

Values are validated before substitution so quotes, backslashes or braces in
a prompt can never break the document structure.
"""

import json
import logging
import math
import re
from pathlib import Path
from typing import Any

from jwst_cosmos.errors import TemplateError

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

# A JSON string literal, or a placeholder standing outside any string
_TOKEN_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}')

_NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")

ParamValue = str | int | float | bool


def _validate_params(params: dict[str, Any]) -> dict[str, ParamValue]:
    """Reject keys and values that cannot be rendered safely."""
    for key, value in params.items():
        if not isinstance(key, str) or not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", key):
            raise TemplateError(f"Invalid placeholder name: {key!r}")
        if isinstance(value, float) and not math.isfinite(value):
            raise TemplateError(f"Parameter '{key}' must be finite, got {value}")
        if not isinstance(value, (str, int, float, bool)):
            raise TemplateError(
                f"Parameter '{key}' has unsupported type {type(value).__name__}"
            )
    return params


def _literal(value: ParamValue) -> str:
    """Render a value where a complete JSON value is expected."""
    if isinstance(value, str) and _NUMBER_RE.fullmatch(value.strip()):
        # "1024" passed as text into a numeric slot stays numeric
        return value.strip()
    return json.dumps(value)


def _as_text(value: ParamValue) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _escaped(value: ParamValue) -> str:
    """Render a value for embedding inside an existing JSON string."""
    return json.dumps(_as_text(value))[1:-1]


def substitute(text: str, params: dict[str, ParamValue]) -> tuple[str, set[str]]:
    """
    Replace placeholders in JSON text.

    Returns:
        (substituted_text, unresolved_placeholder_names)
    """
    unresolved: set[str] = set()

    def _replace_inner(match: re.Match) -> str:
        name = match.group(1)
        if name not in params:
            unresolved.add(name)
            return match.group(0)
        return _escaped(params[name])

    def _replace_token(match: re.Match) -> str:
        token = match.group(0)
        bare_name = match.group(1)

        if bare_name is not None:
            if bare_name not in params:
                unresolved.add(bare_name)
                return token
            return _literal(params[bare_name])

        content = token[1:-1]
        whole = PLACEHOLDER_RE.fullmatch(content)
        if whole is not None and whole.group(1) in params:
            return json.dumps(params[whole.group(1)])
        return '"' + PLACEHOLDER_RE.sub(_replace_inner, content) + '"'

    return _TOKEN_RE.sub(_replace_token, text), unresolved


def prepare_workflow(template: str | dict, params: dict[str, Any]) -> dict:
    """
    Resolve a workflow template against a parameter mapping.

    Args:
        template: Workflow JSON text or an already-parsed workflow dict
        params: Placeholder name -> str/int/float/bool value

    Returns:
        The resolved workflow graph.

    Raises:
        TemplateError: On invalid parameters or if the result is not a JSON object
    """
    values = _validate_params(params)
    text = template if isinstance(template, str) else json.dumps(template)

    resolved_text, unresolved = substitute(text, values)
    if unresolved:
        logger.warning(f"Workflow placeholders left unresolved: {sorted(unresolved)}")

    try:
        workflow = json.loads(resolved_text)
    except json.JSONDecodeError as e:
        raise TemplateError(f"Resolved workflow is not valid JSON: {e}") from e

    if not isinstance(workflow, dict):
        raise TemplateError(
            f"Workflow must be a JSON object, got {type(workflow).__name__}"
        )
    return workflow


def load_workflow(path: Path | str) -> str:
    """Read a workflow template file as text (placeholders intact)."""
    return Path(path).read_text(encoding="utf-8")
