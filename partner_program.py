from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

import httpx
import structlog

logger = structlog.get_logger()

REFERRAL_BASE_URL = "https://shooteditrelease.com/"
DEFAULT_REFERRAL_CODE = "VID-8829"
COMMISSION_PERCENT = 20

PERKS: Tuple[Tuple[str, str], ...] = (
    (f"{COMMISSION_PERCENT}% Commission", "Earn on every subscription payment for the lifetime of the customer."),
    ("Grow the Community", "Help standardize professional rates and practices across the industry."),
    ("Monthly Payouts", "Reliable transfers via Stripe or PayPal on the 1st of every month."),
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PartnerApplicationError(ValueError):
    pass


@dataclass(frozen=True)
class PartnerApplication:
    name: str
    email: str
    phone: str
    website: str
    socials: str

    def validated(self) -> "PartnerApplication":
        """Strip every field; all are required and the email must look like one."""
        clean = PartnerApplication(**{k: str(v or "").strip() for k, v in asdict(self).items()})
        missing = [k for k, v in asdict(clean).items() if not v]
        if missing:
            raise PartnerApplicationError(f"Missing required fields: {', '.join(missing)}")
        if not _EMAIL_RE.match(clean.email):
            raise PartnerApplicationError(f"Invalid email address: {clean.email}")
        return clean


@dataclass(frozen=True)
class PartnerStats:
    clicks: int = 0
    signups: int = 0
    pending_payout: float = 0.0


def referral_link(code: str = DEFAULT_REFERRAL_CODE) -> str:
    return f"{REFERRAL_BASE_URL}?ref={code.strip() or DEFAULT_REFERRAL_CODE}"


def form_url_from_env() -> str:
    return str(os.getenv("SER_AFFILIATE_FORM_URL", "")).strip()


def application_form_data(application: PartnerApplication, *, submitted_at: Optional[datetime] = None) -> dict[str, str]:
    data = asdict(application)
    data["timestamp"] = (submitted_at or datetime.now(timezone.utc)).isoformat()
    return data


def submit_application(
    application: PartnerApplication,
    *,
    form_url: Optional[str] = None,
    client: Optional[httpx.Client] = None,
    timeout_s: float = 15.0,
    submitted_at: Optional[datetime] = None,
) -> bool:
    """
    Post a partner application as form data to the configured sheet endpoint.

    Returns True only when the endpoint accepted it. With no endpoint configured the
    submission is logged and skipped. A failed post is logged; the applicant still
    lands on the partner dashboard.
    """
    clean = application.validated()
    url = form_url if form_url is not None else form_url_from_env()
    if not url:
        logger.info("partner_application_simulated", email=clean.email)
        return False

    data = application_form_data(clean, submitted_at=submitted_at)
    try:
        if client is not None:
            resp = client.post(url, data=data)
        else:
            with httpx.Client(timeout=timeout_s, follow_redirects=True) as c:
                resp = c.post(url, data=data)
    except httpx.HTTPError as exc:
        logger.warning("partner_application_failed", error=str(exc))
        return False

    if not 200 <= resp.status_code < 300:
        logger.warning("partner_application_rejected", status=resp.status_code, body=resp.text[:500])
        return False
    logger.info("partner_application_submitted", email=clean.email)
    return True
