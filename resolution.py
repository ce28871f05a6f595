# resolution.py

import json
from typing import AbstractSet

from pydantic import ValidationError

from api_client import InferenceClient
from errors import InferenceError, Reason, ResolutionError, Result
from prompts import RESOLUTION_PROMPT_TEMPLATE
from schemas import (
    AutomationTreeSnapshot, ElementRoleMap, REQUIRED_ROLES, ROLE_DESCRIPTIONS, RequiredRole,
    has_missing_value, summarize_validation_error,
)
from utils import log, truncate


def build_resolution_prompt(tree: AutomationTreeSnapshot, roles: AbstractSet[RequiredRole]) -> str:
    ordered_roles = [role for role in RequiredRole if role in roles]
    role_list_str = "\n".join(f"- `{role.wire_key}`: {ROLE_DESCRIPTIONS[role]}" for role in ordered_roles)
    response_shape = {role.wire_key: f"ID_for_{role.value}" for role in ordered_roles}
    return RESOLUTION_PROMPT_TEMPLATE.format(
        window_title=tree.title or "target",
        role_list_str=role_list_str,
        response_shape_str=json.dumps(response_shape, indent=2),
        tree_json=tree.tree_json,
    )


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_role_map(raw_response: str, roles: AbstractSet[RequiredRole] = REQUIRED_ROLES) -> Result[ElementRoleMap]:
    """
    Validates a raw resolution response. Every requested role needs a non-blank element id;
    the returned map holds exactly the requested roles.
    """
    try:
        payload = json.loads(raw_response)
    except (json.JSONDecodeError, TypeError) as e:
        return Result.failure(ResolutionError(Reason.MALFORMED_RESPONSE, f"Response is not valid JSON: {e}"))
    if not isinstance(payload, dict):
        return Result.failure(ResolutionError(
            Reason.MALFORMED_RESPONSE, f"Expected a JSON object, got {type(payload).__name__}."
        ))

    present = {str(key).lower(): value for key, value in payload.items()}
    requested = [role.wire_key for role in RequiredRole if role in roles]
    missing = [key for key in requested if _is_blank(present.get(key.lower()))]
    if missing:
        return Result.failure(ResolutionError(Reason.INCOMPLETE_MAPPING, f"No element id for: {', '.join(missing)}"))

    # Ids for roles nobody asked for are ignored, whatever their shape.
    try:
        role_map = ElementRoleMap.model_validate({key: present[key.lower()] for key in requested})
    except ValidationError as e:
        reason = Reason.INCOMPLETE_MAPPING if has_missing_value(e) else Reason.MALFORMED_RESPONSE
        return Result.failure(ResolutionError(reason, summarize_validation_error(e)))
    return Result.success(role_map)


class UIElementResolver:
    """Maps the required semantic roles onto element ids of one automation tree snapshot."""
    def __init__(self, client: InferenceClient):
        self._client = client

    async def resolve(
        self, tree: AutomationTreeSnapshot, roles: AbstractSet[RequiredRole] = REQUIRED_ROLES, context: str = ""
    ) -> Result[ElementRoleMap]:
        prompt = build_resolution_prompt(tree, roles)
        log.info(f"[{context}] Asking model to identify element ids for {len(roles)} role(s) "
                 f"in window {tree.window_id} ({len(tree.tree_json)} chars of tree)...")
        try:
            raw_response = await self._client.complete_json(prompt, context=context)
        except InferenceError as e:
            return Result.failure(ResolutionError(Reason.INFERENCE_FAILED, str(e)))
        log.info(f"[{context}] Element id response: {truncate(raw_response)}")

        result = parse_role_map(raw_response, roles)
        if result.ok:
            log.info(f"[{context}] Successfully identified element ids.")
        else:
            log.error(f"[{context}] Element id resolution rejected: {result.error}")
        return result
