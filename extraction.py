# extraction.py

import json
from decimal import Decimal
from typing import Type

from pydantic import ValidationError

from api_client import InferenceClient
from errors import CaptureError, ExtractionError, InferenceError, Reason, Result
from prompts import EXTRACTION_PROMPT_TEMPLATE
from schemas import DocumentSnapshot, Order, has_missing_value, summarize_validation_error
from utils import log, truncate


def build_extraction_prompt(schema: Type[Order] = Order) -> str:
    return EXTRACTION_PROMPT_TEMPLATE.format(
        schema_json=json.dumps(schema.model_json_schema(by_alias=True), indent=2)
    )


def parse_order(raw_response: str, schema: Type[Order] = Order) -> Result[Order]:
    """
    Validates a raw extraction response. Floats are read as Decimal so prices keep the
    precision they were sent with. Absent or empty required values are reported as
    MissingRequiredField; anything else that does not fit the schema (wrong types,
    non-positive quantity, negative price) as MalformedResponse.
    """
    try:
        payload = json.loads(raw_response, parse_float=Decimal)
    except (json.JSONDecodeError, TypeError) as e:
        return Result.failure(ExtractionError(Reason.MALFORMED_RESPONSE, f"Response is not valid JSON: {e}"))
    if not isinstance(payload, dict):
        return Result.failure(ExtractionError(
            Reason.MALFORMED_RESPONSE, f"Expected a JSON object, got {type(payload).__name__}."
        ))

    try:
        order = schema.model_validate(payload)
    except ValidationError as e:
        reason = Reason.MISSING_REQUIRED_FIELD if has_missing_value(e) else Reason.MALFORMED_RESPONSE
        return Result.failure(ExtractionError(reason, summarize_validation_error(e)))
    return Result.success(order)


class StructuredExtractor:
    """Turns a document snapshot into a validated Order with the help of the inference service."""
    def __init__(self, client: InferenceClient):
        self._client = client

    async def extract(self, snapshot: DocumentSnapshot, schema: Type[Order] = Order, context: str = "") -> Result[Order]:
        if not snapshot.success or not snapshot.image_bytes:
            return Result.failure(CaptureError(snapshot.message or "Snapshot is empty or unsuccessful."))

        prompt = build_extraction_prompt(schema)
        log.info(f"[{context}] Asking model to extract order data from screenshot ({len(snapshot.image_bytes)} bytes)...")
        try:
            raw_response = await self._client.complete_json(prompt, snapshot, context=context)
        except InferenceError as e:
            return Result.failure(ExtractionError(Reason.INFERENCE_FAILED, str(e)))
        log.info(f"[{context}] Order extraction response: {truncate(raw_response)}")

        result = parse_order(raw_response, schema)
        if result.ok:
            order = result.value
            log.info(f"[{context}] Extracted order for customer '{order.customer_name}' "
                     f"with {len(order.ordered_articles)} article(s).")
        else:
            log.error(f"[{context}] Order extraction rejected: {result.error}")
        return result
