from __future__ import annotations

import math
import random
import secrets
import string
import time
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


class LineItemCategory(str, Enum):
    PRE_PRODUCTION = "Pre-Production"
    PRODUCTION = "Production"
    POST_PRODUCTION = "Post-Production"
    EQUIPMENT = "Equipment & Rentals"
    EXPENSES = "Expenses"
    OTHER = "Other"


class LineItemUnit(str, Enum):
    DAY = "day"
    HOUR = "hour"
    FLAT = "flat"
    ITEM = "item"


class EstimateError(ValueError):
    pass


DEFAULT_BUSINESS_NAME = "Shoot.Edit.Release"
DEFAULT_MARKUP_PERCENT = 10.0
DEFAULT_TAX_PERCENT = 0.0
MAX_MARKUP_PERCENT = 50.0
MAX_TAX_PERCENT = 20.0

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class LineItem:
    id: str
    description: str
    category: LineItemCategory
    quantity: float
    rate: float
    unit: LineItemUnit = LineItemUnit.DAY
    taxable: bool = True

    @property
    def amount(self) -> float:
        return self.quantity * self.rate


@dataclass(frozen=True)
class ProjectDetails:
    client_name: str = ""
    project_name: str = ""
    project_date: str = ""
    location: str = ""
    email: str = ""
    phone: str = ""
    notes: str = ""
    # Premium-gated: only populated from the profile while Pro is active.
    payment_link: str = ""
    business_name: str = DEFAULT_BUSINESS_NAME
    business_logo: str = ""
    payable_to: str = ""
    business_address: str = ""
    business_email: str = ""
    business_phone: str = ""


@dataclass(frozen=True)
class Estimate:
    id: str
    details: ProjectDetails
    items: Tuple[LineItem, ...] = ()
    markup_percent: float = DEFAULT_MARKUP_PERCENT
    tax_percent: float = DEFAULT_TAX_PERCENT
    currency: str = "USD"
    created_at: int = 0


@dataclass(frozen=True)
class UserProfile:
    business_name: str = ""
    business_logo: str = ""
    payable_to: str = ""
    business_address: str = ""
    business_email: str = ""
    business_phone: str = ""
    payment_link: str = ""


@dataclass(frozen=True)
class EstimateTotals:
    subtotal: float
    markup_amount: float
    taxable_subtotal: float
    taxable_amount: float
    tax_amount: float
    total: float


@dataclass(frozen=True)
class ItemPreset:
    description: str
    category: LineItemCategory
    rate: float
    unit: LineItemUnit


COMMON_ITEMS: Tuple[ItemPreset, ...] = (
    ItemPreset("Director of Photography (A-Cam)", LineItemCategory.PRODUCTION, 1200, LineItemUnit.DAY),
    ItemPreset("Camera Operator (B-Cam)", LineItemCategory.PRODUCTION, 800, LineItemUnit.DAY),
    ItemPreset("Video Editor", LineItemCategory.POST_PRODUCTION, 350, LineItemUnit.DAY),
    ItemPreset("Sound Mixer", LineItemCategory.PRODUCTION, 750, LineItemUnit.DAY),
    ItemPreset("Gaffer", LineItemCategory.PRODUCTION, 650, LineItemUnit.DAY),
    ItemPreset("Lighting Package", LineItemCategory.EQUIPMENT, 500, LineItemUnit.DAY),
    ItemPreset("Camera Package (Cinema)", LineItemCategory.EQUIPMENT, 800, LineItemUnit.DAY),
    ItemPreset("Producer", LineItemCategory.PRE_PRODUCTION, 1000, LineItemUnit.DAY),
    ItemPreset("Production Assistant", LineItemCategory.PRODUCTION, 300, LineItemUnit.DAY),
    ItemPreset("Music Licensing", LineItemCategory.EXPENSES, 250, LineItemUnit.FLAT),
)


def new_line_item_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))


def new_estimate_id() -> str:
    return f"EST-{random.randrange(10000)}"


def now_ms() -> int:
    return int(time.time() * 1000)


def coerce_number(value: Any, default: float = 0.0) -> float:
    """
    Permissive numeric coercion for user edits and AI output.

    Anything that is not a finite number (None, "", "abc", NaN, inf) becomes `default`.
    """
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(f):
        return default
    return f


def parse_category(value: Any) -> LineItemCategory:
    """
    Exact match against the category labels; anything else is `Other`.
    """
    if isinstance(value, LineItemCategory):
        return value
    for cat in LineItemCategory:
        if value == cat.value:
            return cat
    return LineItemCategory.OTHER


def parse_unit(value: Any) -> LineItemUnit:
    if isinstance(value, LineItemUnit):
        return value
    for unit in LineItemUnit:
        if value == unit.value:
            return unit
    return LineItemUnit.DAY


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


# region totals


def compute_totals(items: Iterable[LineItem], markup_percent: float, tax_percent: float) -> EstimateTotals:
    """
    Derive subtotal / markup / tax / total from the line items.

    Markup is applied to the taxable share before tax; the non-taxable share of the
    markup is never taxed. No rounding happens here.
    """
    subtotal = 0.0
    taxable_subtotal = 0.0
    for item in items:
        amount = item.quantity * item.rate
        subtotal += amount
        if item.taxable:
            taxable_subtotal += amount

    markup_amount = subtotal * markup_percent / 100
    taxable_amount = taxable_subtotal + taxable_subtotal * markup_percent / 100
    tax_amount = taxable_amount * tax_percent / 100
    total = subtotal + markup_amount + tax_amount
    return EstimateTotals(
        subtotal=subtotal,
        markup_amount=markup_amount,
        taxable_subtotal=taxable_subtotal,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        total=total,
    )


def estimate_totals(estimate: Estimate) -> EstimateTotals:
    return compute_totals(estimate.items, estimate.markup_percent, estimate.tax_percent)


def allocation_by_category(items: Sequence[LineItem]) -> Tuple[Tuple[LineItemCategory, float], ...]:
    """
    Per-category spend for the summary chart, in fixed category order.

    Categories with no positive spend are dropped after summing.
    """
    rows: List[Tuple[LineItemCategory, float]] = []
    for cat in LineItemCategory:
        value = sum(i.quantity * i.rate for i in items if i.category == cat)
        rows.append((cat, value))
    return tuple((cat, value) for cat, value in rows if value > 0)


def items_by_category(items: Sequence[LineItem]) -> Tuple[Tuple[LineItemCategory, Tuple[LineItem, ...]], ...]:
    """
    Group items for invoice display, in order of first appearance.
    """
    groups: Dict[LineItemCategory, List[LineItem]] = {}
    for item in items:
        groups.setdefault(item.category, []).append(item)
    return tuple((cat, tuple(group)) for cat, group in groups.items())


def format_money(amount: float, currency: str = "USD") -> str:
    sign = "-" if amount < 0 else ""
    symbol = "$" if currency.upper() in {"USD", "CAD", "AUD", "NZD"} else ""
    text = f"{abs(amount):,.2f}"
    if symbol:
        return f"{sign}{symbol}{text}"
    return f"{sign}{text} {currency.upper()}"


def format_quantity(quantity: float) -> str:
    if float(quantity).is_integer():
        return str(int(quantity))
    return f"{quantity:g}"


# endregion totals

# region editing


def new_line_item(
    *,
    description: str = "New Item",
    category: LineItemCategory = LineItemCategory.PRODUCTION,
    quantity: float = 1,
    rate: float = 0,
    unit: LineItemUnit = LineItemUnit.DAY,
    taxable: bool = True,
) -> LineItem:
    return LineItem(
        id=new_line_item_id(),
        description=description,
        category=category,
        quantity=float(quantity),
        rate=float(rate),
        unit=unit,
        taxable=taxable,
    )


def line_item_from_preset(preset: ItemPreset) -> LineItem:
    return new_line_item(
        description=preset.description,
        category=preset.category,
        quantity=1,
        rate=preset.rate,
        unit=preset.unit,
    )


def add_line_item(estimate: Estimate, item: LineItem) -> Estimate:
    return add_line_items(estimate, (item,))


def add_line_items(estimate: Estimate, items: Iterable[LineItem]) -> Estimate:
    """
    Append items, re-issuing ids that would collide with ones already on the estimate.
    """
    seen = {i.id for i in estimate.items}
    merged = list(estimate.items)
    for item in items:
        if item.id in seen:
            item = replace(item, id=new_line_item_id())
        seen.add(item.id)
        merged.append(item)
    return replace(estimate, items=tuple(merged))


_EDITABLE_FIELDS = {"description", "category", "quantity", "rate", "unit", "taxable"}


def update_line_item(estimate: Estimate, item_id: str, field_name: str, value: Any) -> Estimate:
    """
    Update one field of one line item.

    Numeric fields use the permissive input rule (non-numeric becomes 0).
    Unknown ids leave the estimate unchanged.
    """
    if field_name not in _EDITABLE_FIELDS:
        raise EstimateError(f"Line item field {field_name!r} is not editable.")

    if field_name in ("quantity", "rate"):
        coerced: Any = coerce_number(value, 0.0)
    elif field_name == "category":
        coerced = parse_category(value)
    elif field_name == "unit":
        coerced = parse_unit(value)
    elif field_name == "taxable":
        coerced = bool(value)
    else:
        coerced = "" if value is None else str(value)

    items = tuple(replace(i, **{field_name: coerced}) if i.id == item_id else i for i in estimate.items)
    return replace(estimate, items=items)


def remove_line_item(estimate: Estimate, item_id: str) -> Estimate:
    return replace(estimate, items=tuple(i for i in estimate.items if i.id != item_id))


def clear_line_items(estimate: Estimate) -> Estimate:
    return replace(estimate, items=())


def set_markup_percent(estimate: Estimate, value: Any) -> Estimate:
    pct = _clamp(coerce_number(value, 0.0), 0.0, MAX_MARKUP_PERCENT)
    return replace(estimate, markup_percent=pct)


def set_tax_percent(estimate: Estimate, value: Any) -> Estimate:
    pct = _clamp(coerce_number(value, 0.0), 0.0, MAX_TAX_PERCENT)
    return replace(estimate, tax_percent=pct)


def update_details(estimate: Estimate, **changes: str) -> Estimate:
    unknown = set(changes) - set(ProjectDetails.__dataclass_fields__)
    if unknown:
        raise EstimateError(f"Unknown project detail field(s): {', '.join(sorted(unknown))}")
    return replace(estimate, details=replace(estimate.details, **changes))


def is_wedding_project(details: ProjectDetails) -> bool:
    return "wedding" in details.project_name.lower() or "wedding" in details.client_name.lower()


def initial_estimate(*, today: Optional[date] = None) -> Estimate:
    today = today or date.today()
    return Estimate(
        id="EST-001",
        details=ProjectDetails(project_date=today.isoformat()),
        created_at=now_ms(),
    )


def new_estimate(profile: Optional[UserProfile], *, is_pro: bool, today: Optional[date] = None) -> Estimate:
    """
    Start a blank estimate. Pro users get their saved business identity pre-filled.
    """
    today = today or date.today()
    details = ProjectDetails(project_date=today.isoformat())
    if is_pro and profile is not None:
        details = replace(
            details,
            business_name=profile.business_name or DEFAULT_BUSINESS_NAME,
            business_logo=profile.business_logo,
            payable_to=profile.payable_to,
            business_address=profile.business_address,
            business_email=profile.business_email,
            business_phone=profile.business_phone,
            payment_link=profile.payment_link,
        )
    return Estimate(id=new_estimate_id(), details=details, created_at=now_ms())


# endregion editing

# region serialization

_DETAILS_KEYS: Dict[str, str] = {
    "client_name": "clientName",
    "project_name": "projectName",
    "project_date": "projectDate",
    "location": "location",
    "email": "email",
    "phone": "phone",
    "notes": "notes",
    "payment_link": "paymentLink",
    "business_name": "businessName",
    "business_logo": "businessLogo",
    "payable_to": "payableTo",
    "business_address": "businessAddress",
    "business_email": "businessEmail",
    "business_phone": "businessPhone",
}

_PROFILE_KEYS: Dict[str, str] = {k: v for k, v in _DETAILS_KEYS.items() if k in UserProfile.__dataclass_fields__}


def line_item_to_dict(item: LineItem) -> dict[str, object]:
    return {
        "id": item.id,
        "description": item.description,
        "category": item.category.value,
        "quantity": item.quantity,
        "rate": item.rate,
        "unit": item.unit.value,
        "taxable": item.taxable,
    }


def line_item_from_dict(data: Mapping[str, Any]) -> LineItem:
    return LineItem(
        id=str(data.get("id") or new_line_item_id()),
        description=str(data.get("description") or ""),
        category=parse_category(data.get("category")),
        quantity=coerce_number(data.get("quantity"), 0.0),
        rate=coerce_number(data.get("rate"), 0.0),
        unit=parse_unit(data.get("unit")),
        taxable=bool(data.get("taxable", True)),
    )


def details_to_dict(details: ProjectDetails) -> dict[str, str]:
    return {camel: getattr(details, attr) for attr, camel in _DETAILS_KEYS.items()}


def details_from_dict(data: Mapping[str, Any]) -> ProjectDetails:
    values = {attr: str(data[camel]) for attr, camel in _DETAILS_KEYS.items() if data.get(camel) is not None}
    return ProjectDetails(**values)


def estimate_to_dict(estimate: Estimate) -> dict[str, object]:
    return {
        "id": estimate.id,
        "details": details_to_dict(estimate.details),
        "items": [line_item_to_dict(i) for i in estimate.items],
        "markupPercent": estimate.markup_percent,
        "taxPercent": estimate.tax_percent,
        "currency": estimate.currency,
        "createdAt": estimate.created_at,
    }


def estimate_from_dict(data: Mapping[str, Any]) -> Estimate:
    raw_items = data.get("items")
    items = tuple(line_item_from_dict(i) for i in raw_items if isinstance(i, Mapping)) if isinstance(raw_items, list) else ()
    details = data.get("details")
    return Estimate(
        id=str(data.get("id") or new_estimate_id()),
        details=details_from_dict(details) if isinstance(details, Mapping) else ProjectDetails(),
        items=items,
        markup_percent=coerce_number(data.get("markupPercent"), DEFAULT_MARKUP_PERCENT),
        tax_percent=coerce_number(data.get("taxPercent"), DEFAULT_TAX_PERCENT),
        currency=str(data.get("currency") or "USD"),
        created_at=int(coerce_number(data.get("createdAt"), 0.0)),
    )


def profile_to_dict(profile: UserProfile) -> dict[str, str]:
    return {camel: getattr(profile, attr) for attr, camel in _PROFILE_KEYS.items()}


def profile_from_dict(data: Mapping[str, Any]) -> UserProfile:
    values = {attr: str(data[camel]) for attr, camel in _PROFILE_KEYS.items() if data.get(camel) is not None}
    return UserProfile(**values)


# endregion serialization
