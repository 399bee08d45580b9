from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import structlog
from openai import OpenAI, OpenAIError

from ai_responses import AiResponse, extract_json_object, normalize_ai_response, normalize_line_item
from estimate_engine import LineItem, coerce_number

logger = structlog.get_logger()


class AiConfigError(RuntimeError):
    pass


class AiServiceError(RuntimeError):
    pass


class ChatBusyError(RuntimeError):
    pass


DEFAULT_LOCATION = "United States"
CONNECTION_FALLBACK_TEXT = "I'm having trouble connecting."

SHOT_LIST_GREETING = (
    "I'm SER.0, your virtual Director of Photography. Tell me about the scene we're planning. "
    "What's the location and the emotional tone?"
)
CALL_SHEET_GREETING = (
    "I'm SER.0, your virtual Assistant Director. Let's build a Call Sheet. "
    "What's the project title, date, and general call time?"
)
ESTIMATOR_GREETING = "Ready. Tell me what we're shooting, and I'll generate a budget."

_CATEGORY_CHOICES = '"Pre-Production" | "Production" | "Post-Production" | "Equipment & Rentals" | "Expenses" | "Other"'

ESTIMATOR_INSTRUCTIONS = f"""
You are an expert video production producer and estimator.
Your goal is to formulate a precise budget estimate for the user AS QUICKLY AS POSSIBLE.

PROTOCOL:
1. PREFER ACTION OVER QUESTIONS. Generate a baseline estimate immediately based on the user's prompt.
2. Only ask a question if the request is completely unintelligible.
3. If budget is not specified, assume a standard professional rate for the region.
4. If scope is vague (e.g. "music video"), infer standard crew/gear needs (DP, Cam Op, Gaffer, Location, Editing) and generate the list.
5. SPECIAL RULE: If the project is identified as a WEDDING, DOUBLE the standard market rates for all roles and services.
6. Default editing rate is approx $350/day unless specified otherwise (or doubled for weddings).
7. CREW HIERARCHY RULE: The primary camera user is ALWAYS the "Director of Photography" (A-Cam). If a second camera operator is needed, list them as "Camera Operator" (B-Cam). NEVER list "2 Camera Operators".

OUTPUT FORMAT:
When generating the estimate, return ONLY a JSON object.
Structure:
{{
  "items": [
    {{
      "description": "string",
      "category": {_CATEGORY_CHOICES},
      "quantity": number,
      "rate": number,
      "unit": "day" | "hour" | "flat" | "item"
    }}
  ],
  "reasoning": "string (summary of the approach)"
}}
"""

SHOT_LIST_INSTRUCTIONS = """
You are SER.0, an expert Director of Photography and Assistant Director.
Your goal is to help the user create a structured SHOT LIST for a video shoot.

PROTOCOL:
1. Ask 1-2 concise questions at a time to understand the scene, the subject, the mood, and the location.
2. Suggest creative angles (Low angle, Dutch angle, Top-down) and movements (Dolly in, Truck left, Orbit) based on their description.
3. When you have enough information OR if the user asks for the list, generate the JSON object.

OUTPUT FORMAT:
If you are chatting, return plain text.
If you are generating the final list, return ONLY a JSON object with this structure:
{
  "projectTitle": "string",
  "scenes": [
    {
      "sceneNumber": "string",
      "location": "string",
      "description": "string",
      "shots": [
        {
          "shotNumber": 1,
          "size": "WS" | "MS" | "CU" | "ECU",
          "type": "Static" | "Handheld" | "Gimbal" | "Dolly",
          "description": "string (visual description)",
          "notes": "string (lens choice, lighting notes)"
        }
      ]
    }
  ]
}
"""

CALL_SHEET_INSTRUCTIONS = """
You are SER.0, an expert Assistant Director and Producer.
Your goal is to help the user create a structured CALL SHEET for a video shoot.

PROTOCOL:
1. Ask concise questions to get the Project Title, Date, General Call Time, Location, and Crew roles needed.
2. Ask about the Schedule (key events like Call, Lunch, Wrap).
3. When you have enough information OR if the user asks for the sheet, generate the JSON object.

OUTPUT FORMAT:
If you are chatting, return plain text.
If you are generating the final call sheet, return ONLY a JSON object with this structure:
{
  "projectTitle": "string",
  "client": "string",
  "shootDate": "string",
  "generalCallTime": "string",
  "location": "string",
  "weather": "string",
  "crew": [{ "role": "string", "name": "string", "phone": "string", "email": "string", "callTime": "string" }],
  "talent": [{ "role": "string", "name": "string", "callTime": "string", "notes": "string" }],
  "schedule": [{ "time": "string", "activity": "string", "location": "string", "notes": "string" }],
  "locations": { "address": "string", "parking": "string", "hospital": "string" },
  "notes": "string"
}
"""


def ai_api_key() -> str:
    return str(os.getenv("OPENAI_API_KEY", "")).strip()


def ai_model() -> str:
    return str(os.getenv("SER_AI_MODEL", "")).strip() or "gpt-5-mini"


def ai_image_model() -> str:
    return str(os.getenv("SER_AI_IMAGE_MODEL", "")).strip() or "gpt-image-1"


def ai_timeout_s() -> float:
    return coerce_number(os.getenv("SER_AI_TIMEOUT_S"), 60.0) or 60.0


def make_client() -> OpenAI:
    """
    Build an OpenAI client from the environment.

    A missing key is a configuration error and fails right away, before any request.
    """
    api_key = ai_api_key()
    if not api_key:
        raise AiConfigError("OPENAI_API_KEY is not set.")
    return OpenAI(api_key=api_key, timeout=ai_timeout_s())


def _response_text(resp: Any) -> str:
    try:
        return (resp.output_text or "").strip()
    except AttributeError:
        return ""


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" | "assistant"
    text: str


@dataclass(frozen=True)
class ChatReply:
    text: str
    outcome: AiResponse


class ChatSession:
    """
    One multi-turn conversation with the model.

    Only one send may be in flight at a time; replies are applied in the order they arrive.
    A failed send leaves the history exactly as it was.
    """

    def __init__(self, *, instructions: str, client: Optional[OpenAI] = None, model: Optional[str] = None) -> None:
        self.instructions = instructions
        self.model = model or ai_model()
        self._client = client or make_client()
        self._history: List[ChatMessage] = []
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def history(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._history)

    def send(self, text: str) -> ChatReply:
        if self._busy:
            raise ChatBusyError("A reply is still pending for this conversation.")
        user_text = (text or "").strip()
        if not user_text:
            raise ValueError("message text must be non-empty")

        turns = [*self._history, ChatMessage(role="user", text=user_text)]
        self._busy = True
        try:
            resp = self._client.responses.create(
                model=self.model,
                instructions=self.instructions,
                input=[{"role": m.role, "content": m.text} for m in turns],
            )
        except OpenAIError as exc:
            logger.warning("ai_chat_failed", model=self.model, error=str(exc))
            raise AiServiceError("The assistant could not be reached. Please try again.") from exc
        finally:
            self._busy = False

        reply_text = _response_text(resp) or CONNECTION_FALLBACK_TEXT
        self._history = [*turns, ChatMessage(role="assistant", text=reply_text)]
        return ChatReply(text=reply_text, outcome=normalize_ai_response(reply_text))


def create_estimator_chat(location: str, *, client: Optional[OpenAI] = None) -> ChatSession:
    loc = (location or "").strip() or DEFAULT_LOCATION
    return ChatSession(instructions=ESTIMATOR_INSTRUCTIONS + f" Current Location context: {loc}.", client=client)


def create_shot_list_chat(*, client: Optional[OpenAI] = None) -> ChatSession:
    return ChatSession(instructions=SHOT_LIST_INSTRUCTIONS, client=client)


def create_call_sheet_chat(*, client: Optional[OpenAI] = None) -> ChatSession:
    return ChatSession(instructions=CALL_SHEET_INSTRUCTIONS, client=client)


def wizard_prompt(*, project_type: str, duration: str, scale: str, notes: str = "") -> str:
    """
    First message sent after the auto-build form is filled in.
    """
    lines = [
        f"I need a budget estimate for a {project_type.strip()}.",
        f"Duration: {duration}.",
        f"Production Scale: {scale}.",
    ]
    if notes.strip():
        lines.append(f"Additional Context/Notes: {notes.strip()}")
    lines.append(
        f'Constraint: Ensure the crew size and equipment list matches the "{scale}" scope exactly. Do not over-resource.'
    )
    return "\n".join(lines)


def generate_single_line_item(description: str, location: str, *, client: Optional[OpenAI] = None) -> LineItem:
    """
    Ask the model for one priced line item from a free-text description.

    Raises AiServiceError when the call fails or the reply has no JSON object.
    """
    client = client or make_client()
    loc = (location or "").strip() or DEFAULT_LOCATION
    prompt = (
        f'Create a single line item for a video production budget based on this description: "{description}".\n'
        f"Location: {loc}.\n\n"
        "Rule: If the description or context implies a WEDDING, double the standard market rate.\n"
        "Rule: Default Video Editor rate is $350/day (or $700 if wedding).\n"
        'Rule: Primary camera op is "Director of Photography". Secondary is "Camera Operator".\n\n'
        "Return ONLY a valid JSON object.\n"
        "Structure:\n"
        "{\n"
        '  "description": "string (refined title)",\n'
        f'  "category": {_CATEGORY_CHOICES},\n'
        '  "quantity": number (default 1),\n'
        '  "rate": number (estimated market rate),\n'
        '  "unit": "day" | "hour" | "flat" | "item"\n'
        "}\n"
    )
    try:
        resp = client.responses.create(model=ai_model(), input=prompt)
    except OpenAIError as exc:
        logger.warning("ai_single_item_failed", error=str(exc))
        raise AiServiceError("Could not generate a line item. Please try again.") from exc

    text = _response_text(resp)
    if not text:
        raise AiServiceError("The assistant returned an empty response.")
    data = extract_json_object(text)
    if data is None:
        logger.info("ai_single_item_unparseable", text_len=len(text))
        raise AiServiceError("The assistant did not return a line item.")
    return normalize_line_item(data)


def generate_storyboard_sketch(description: str, shot_size: str, *, client: Optional[OpenAI] = None) -> Optional[bytes]:
    """
    Render a rough black-and-white storyboard frame. Returns PNG bytes, or None on failure.
    """
    client = client or make_client()
    prompt = (
        "Create a simple, black and white storyboard sketch for a film shot.\n"
        "Style: Rough pencil sketch, cinematic aspect ratio, minimalist.\n"
        f"Shot Description: {description}.\n"
        f"Shot Size: {shot_size}.\n"
        "Do not include text in the image.\n"
    )
    try:
        resp = client.images.generate(model=ai_image_model(), prompt=prompt, size="1536x1024", n=1)
        b64 = resp.data[0].b64_json if resp.data else None
        if not b64:
            return None
        return base64.b64decode(b64)
    except (OpenAIError, binascii.Error, IndexError) as exc:
        logger.warning("ai_storyboard_failed", error=str(exc))
        return None


@dataclass(frozen=True)
class RateEstimate:
    role: str
    average_rate: float
    currency: str = "USD"


def get_local_rates(location: str, roles: Sequence[str], *, client: Optional[OpenAI] = None) -> Tuple[RateEstimate, ...]:
    """
    Look up typical day rates for crew roles in a location. Empty on any failure.
    """
    client = client or make_client()
    prompt = (
        f"Find the current average daily rates for the following video production roles in {location}: "
        f"{', '.join(roles)}.\n\n"
        "Return ONLY a valid JSON object. Do not include any other text or markdown formatting.\n"
        "Structure:\n"
        f"{json.dumps({'rates': [{'role': 'string', 'averageRate': 0, 'currency': 'string'}]}, indent=2)}\n"
    )
    try:
        resp = client.responses.create(model=ai_model(), input=prompt)
    except OpenAIError as exc:
        logger.warning("ai_rates_failed", error=str(exc))
        return ()

    data = extract_json_object(_response_text(resp))
    rates = data.get("rates") if data else None
    if not isinstance(rates, list):
        return ()
    out: List[RateEstimate] = []
    for r in rates:
        if not isinstance(r, dict) or not r.get("role"):
            continue
        out.append(
            RateEstimate(
                role=str(r["role"]),
                average_rate=coerce_number(r.get("averageRate"), 0.0),
                currency=str(r.get("currency") or "USD"),
            )
        )
    return tuple(out)
