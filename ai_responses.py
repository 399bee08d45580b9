from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple, Union

import structlog

from estimate_engine import (
    LineItem,
    coerce_number,
    new_line_item_id,
    parse_category,
    parse_unit,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class EstimatePayload:
    items: Tuple[LineItem, ...]
    reasoning: Optional[str] = None


@dataclass(frozen=True)
class ShotListPayload:
    data: Mapping[str, Any] = field(default_factory=dict)

    @property
    def scenes(self) -> list[Mapping[str, Any]]:
        """Scene objects in order; non-object entries are skipped."""
        raw = self.data.get("scenes")
        if not isinstance(raw, list):
            return []
        return [s for s in raw if isinstance(s, Mapping)]


@dataclass(frozen=True)
class CallSheetPayload:
    data: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlainText:
    text: str


AiResponse = Union[EstimatePayload, ShotListPayload, CallSheetPayload, PlainText]

# Greedy on purpose: first "{" through the last "}".
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """
    Parse the whole text as JSON, falling back to the widest `{...}` span inside it.

    Returns None when neither attempt yields a JSON object.
    """
    t = (text or "").strip()
    if not t:
        return None

    data = _loads(t)
    if data is None:
        m = _JSON_OBJECT_RE.search(t)
        if not m:
            return None
        data = _loads(m.group(0))
    if not isinstance(data, dict):
        return None
    return data


def normalize_line_item(raw: Mapping[str, Any]) -> LineItem:
    """
    Coerce one AI-produced line item into the domain shape.

    The AI never gets to pick the id or the taxable flag. Quantity falls back to 1
    (including an explicit 0), rate to 0, unit to "day", unknown categories to Other.
    """
    description = raw.get("description")
    return LineItem(
        id=new_line_item_id(),
        description="" if description is None else str(description),
        category=parse_category(raw.get("category")),
        quantity=coerce_number(raw.get("quantity"), 0.0) or 1.0,
        rate=coerce_number(raw.get("rate"), 0.0),
        unit=parse_unit(raw.get("unit")),
        taxable=True,
    )


def _estimate_payload(data: Mapping[str, Any]) -> EstimatePayload:
    items = tuple(normalize_line_item(raw) for raw in data["items"] if isinstance(raw, Mapping))
    reasoning = data.get("reasoning")
    return EstimatePayload(items=items, reasoning=reasoning if isinstance(reasoning, str) else None)


def normalize_ai_response(text: str) -> AiResponse:
    """
    Route a raw model reply to a structured payload or plain conversational text.

    Shapes are tried in a fixed order: estimate (`items`), shot list (`scenes`),
    call sheet (`crew` / `schedule`). Anything else is shown to the user verbatim.
    """
    raw = "" if text is None else str(text)
    data = extract_json_object(raw)
    if data is None:
        return PlainText(raw)

    if isinstance(data.get("items"), list):
        payload = _estimate_payload(data)
        logger.debug("ai_response_estimate", item_count=len(payload.items))
        return payload
    if isinstance(data.get("scenes"), list):
        return ShotListPayload(data=data)
    if data.get("crew") is not None or data.get("schedule") is not None:
        return CallSheetPayload(data=data)

    logger.debug("ai_response_unrecognized_json", keys=sorted(data.keys())[:10])
    return PlainText(raw)


def is_structured(outcome: AiResponse) -> bool:
    return not isinstance(outcome, PlainText)
