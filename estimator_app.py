from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, TypedDict

import streamlit as st
import structlog
from dotenv import load_dotenv

import ai_assistant
from ai_assistant import AiConfigError, AiServiceError, ChatBusyError, ChatSession
from ai_responses import CallSheetPayload, EstimatePayload, ShotListPayload, is_structured
from estimate_engine import (
    COMMON_ITEMS,
    MAX_MARKUP_PERCENT,
    MAX_TAX_PERCENT,
    Estimate,
    LineItemCategory,
    LineItemUnit,
    UserProfile,
    add_line_item,
    add_line_items,
    allocation_by_category,
    clear_line_items,
    estimate_totals,
    format_money,
    initial_estimate,
    is_wedding_project,
    line_item_from_preset,
    new_line_item,
    remove_line_item,
    set_markup_percent,
    set_tax_percent,
    update_details,
    update_line_item,
)
from guide_content import MANUAL_TAGLINE, MANUAL_TITLE, manual_entries
from invoice_pdf import invoice_file_name, invoice_pdf_for_estimate, share_text
from log_config import configure_logging
from partner_program import PERKS, PartnerApplication, PartnerApplicationError, PartnerStats, referral_link, submit_application
from session_gate import MAX_FREE_PROJECTS, SessionGate
from sheet_pdf import make_call_sheet_pdf_bytes, make_shot_list_pdf_bytes, scene_records, shot_records, sketch_key
from storage import MemoryStore, open_persistent_store

logger = structlog.get_logger()

View = Literal["dashboard", "editor", "invoice", "guide", "partners", "subscription", "account"]
VIEWS: dict[str, str] = {
    "dashboard": "Dashboard",
    "editor": "Estimate Editor",
    "invoice": "Invoice",
    "guide": "The Manual",
    "partners": "Partner Program",
    "subscription": "Go Pro",
    "account": "Studio Portal",
}

DURATION_OPTIONS = ["Half Day (5 hours)", "Full Day (10 hours)", "Multi-Day (2-3 days)", "Extended (1 week+)"]
SCALE_OPTIONS = ["Solo Shooter", "Small Crew (Standard)", "Medium Crew (Commercial)", "Large Production"]

CHAT_ERROR_TEXT = "Sorry, I encountered an error. Please try again."


class TranscriptMessage(TypedDict):
    role: Literal["assistant", "user"]
    content: str


def _read_secret_or_env_str(key: str) -> str:
    """
    Read a configuration value from Streamlit Secrets (preferred) or environment variables.

    Returns a stripped string; returns "" when missing.
    """
    val: object = ""
    try:
        val = st.secrets.get(key, "")  # type: ignore[attr-defined]
    except (FileNotFoundError, KeyError, AttributeError):
        val = ""
    if not val:
        val = os.environ.get(key, "")
    if isinstance(val, str):
        return val.strip()
    return str(val).strip() if val is not None else ""


def _sync_env_from_secrets() -> None:
    """
    Mirror Streamlit secrets into the environment so the non-UI modules stay Streamlit-free.
    """
    for key in ("OPENAI_API_KEY", "SER_AI_MODEL", "SER_AI_IMAGE_MODEL", "SER_DATA_DIR", "SQUARE_CHECKOUT_URL"):
        value = _read_secret_or_env_str(key)
        if value:
            os.environ[key] = value


# region state


def _gate() -> SessionGate:
    """
    The one SessionGate for this browser session.

    `st.session_state` lives exactly as long as the tab, which makes it the session scope;
    the persistent scope is a JSON file on disk.
    """
    gate = st.session_state.get("_gate")
    if isinstance(gate, SessionGate):
        return gate
    session_store = st.session_state.get("_session_store")
    if not isinstance(session_store, MemoryStore):
        session_store = MemoryStore()
        st.session_state["_session_store"] = session_store
    gate = SessionGate.load(open_persistent_store(), session_store)
    st.session_state["_gate"] = gate
    return gate


def _estimate() -> Estimate:
    est = st.session_state.get("estimate")
    if isinstance(est, Estimate):
        return est
    est = initial_estimate()
    st.session_state["estimate"] = est
    return est


def _set_estimate(est: Estimate) -> None:
    st.session_state["estimate"] = est


def _set_view(view: View) -> None:
    st.session_state["view"] = view


def _current_view() -> str:
    view = str(st.session_state.get("view") or "dashboard")
    return view if view in VIEWS else "dashboard"


def _messages(key: str) -> list[TranscriptMessage]:
    msgs = st.session_state.get(key)
    if not isinstance(msgs, list):
        msgs = []
        st.session_state[key] = msgs
    return msgs


# endregion state

# region chat handling


def _send_chat(chat: ChatSession, text: str, *, messages_key: str):
    """
    Send one message and return the reply, or None after recording a retryable error.

    The busy flag keeps the chat input disabled until this returns.
    """
    messages = _messages(messages_key)
    messages.append({"role": "user", "content": text})
    st.session_state["ai_busy"] = True
    try:
        reply = chat.send(text)
        logger.debug("chat_reply", chat=messages_key, structured=is_structured(reply.outcome))
        return reply
    except (AiServiceError, ChatBusyError) as exc:
        logger.warning("chat_send_failed", error=str(exc))
        messages.append({"role": "assistant", "content": CHAT_ERROR_TEXT})
        return None
    finally:
        st.session_state["ai_busy"] = False


def _apply_estimator_reply(reply) -> bool:
    """
    Apply an estimator reply to the current estimate.

    Returns True when line items were added (the auto-build chat is then closed).
    """
    outcome = reply.outcome
    if isinstance(outcome, EstimatePayload):
        _set_estimate(add_line_items(_estimate(), outcome.items))
        st.session_state["ai_reasoning"] = outcome.reasoning
        st.session_state.pop("estimator_chat", None)
        st.session_state["estimator_messages"] = []
        st.session_state["show_auto_build"] = False
        logger.info("ai_items_applied", item_count=len(outcome.items))
        return True
    _messages("estimator_messages").append({"role": "assistant", "content": reply.text})
    return False


def _apply_guide_reply(mode: str, reply) -> None:
    outcome = reply.outcome
    messages = _messages(f"{mode}_messages")
    if mode == "shot_list" and isinstance(outcome, ShotListPayload):
        st.session_state["generated_shot_list"] = outcome
        st.session_state["shot_sketches"] = {}
        messages.append({"role": "assistant", "content": "I've generated the shot list. You can see it below."})
    elif mode == "call_sheet" and isinstance(outcome, CallSheetPayload):
        st.session_state["generated_call_sheet"] = outcome
        messages.append({"role": "assistant", "content": "Call sheet generated. Preview available below."})
    else:
        messages.append({"role": "assistant", "content": reply.text})


def _render_messages(key: str) -> None:
    for msg in _messages(key):
        with st.chat_message(msg["role"]):
            st.markdown(msg["content"])


# endregion chat handling

# region views


def _render_auth(gate: SessionGate) -> None:
    st.title("Shoot.Edit.Release")
    st.caption("AI-fueled estimation for the relentless creator.")
    with st.form("auth_form"):
        name = st.text_input("Name (optional)")
        email = st.text_input("Email")
        st.text_input("Password", type="password")
        remember = st.checkbox("Remember me for 7 days", value=False)
        submitted = st.form_submit_button("Enter the studio", use_container_width=True)
    if submitted:
        if not email.strip():
            st.error("Email is required.")
            return
        gate.login(email.strip(), name.strip() or None, remember=remember)
        st.rerun()


def _render_dashboard(gate: SessionGate) -> None:
    state = gate.state
    st.header("The Modern Production Suite")
    left, right = st.columns(2)
    with left:
        if state.pro:
            st.metric("Access Level", "Pro")
        else:
            st.metric("Free Credits", f"{gate.remaining_free_projects()} / {MAX_FREE_PROJECTS}")
    with right:
        label = "New Project" if gate.can_create_project() else "Upgrade to create more projects"
        if st.button(label, type="primary", use_container_width=True):
            decision = gate.request_new_project()
            if decision.allowed and decision.estimate is not None:
                _set_estimate(decision.estimate)
                st.session_state["ai_reasoning"] = None
                _set_view("editor")
            else:
                _set_view("subscription")
            st.rerun()
        if _estimate().items and st.button("Continue current estimate", use_container_width=True):
            _set_view("editor")
            st.rerun()


def _render_details(est: Estimate, *, is_pro: bool) -> Estimate:
    d = est.details
    st.subheader("Project Data")
    changes: dict[str, str] = {}
    with st.expander("Your Business", expanded=False):
        changes["business_name"] = st.text_input("Business Name", d.business_name)
        changes["business_email"] = st.text_input("Business Email", d.business_email)
        changes["business_phone"] = st.text_input("Business Phone", d.business_phone)
        changes["business_address"] = st.text_input("Business Address", d.business_address)
        changes["payable_to"] = st.text_input("Payable To", d.payable_to)
        if is_pro:
            changes["payment_link"] = st.text_input("Payment Link", d.payment_link)
        else:
            st.caption("Payment links and logos are Pro features.")
    changes["client_name"] = st.text_input("Client", d.client_name)
    changes["project_name"] = st.text_input("Project", d.project_name)
    changes["project_date"] = st.text_input("Date", d.project_date)
    changes["location"] = st.text_input("Location", d.location)
    changes["email"] = st.text_input("Client Email", d.email)
    changes["phone"] = st.text_input("Client Phone", d.phone)
    changes["notes"] = st.text_area("Notes", d.notes)
    changed = {k: v for k, v in changes.items() if getattr(d, k) != v}
    return update_details(est, **changed) if changed else est


def _render_line_items(est: Estimate) -> Estimate:
    categories = [c.value for c in LineItemCategory]
    units = [u.value for u in LineItemUnit]
    for item in est.items:
        cols = st.columns([4, 2, 1, 1, 1, 1, 1])
        desc = cols[0].text_input("Description", item.description, key=f"desc_{item.id}", label_visibility="collapsed")
        cat = cols[1].selectbox(
            "Category", categories, index=categories.index(item.category.value), key=f"cat_{item.id}", label_visibility="collapsed"
        )
        qty = cols[2].number_input("Qty", value=float(item.quantity), key=f"qty_{item.id}", label_visibility="collapsed")
        unit = cols[3].selectbox("Unit", units, index=units.index(item.unit.value), key=f"unit_{item.id}", label_visibility="collapsed")
        rate = cols[4].number_input("Rate", value=float(item.rate), key=f"rate_{item.id}", label_visibility="collapsed")
        taxable = cols[5].checkbox("Tax", value=item.taxable, key=f"tax_{item.id}")
        for field_name, value, current in (
            ("description", desc, item.description),
            ("category", cat, item.category.value),
            ("quantity", qty, item.quantity),
            ("unit", unit, item.unit.value),
            ("rate", rate, item.rate),
            ("taxable", taxable, item.taxable),
        ):
            if value != current:
                est = update_line_item(est, item.id, field_name, value)
        if cols[6].button("Remove", key=f"rm_{item.id}"):
            est = remove_line_item(est, item.id)
    return est


def _render_auto_build(est: Estimate) -> None:
    st.subheader("AI Auto-Build")
    chat = st.session_state.get("estimator_chat")
    if not isinstance(chat, ChatSession):
        with st.form("auto_build_form"):
            project_type = st.text_input("What are we shooting?", placeholder="Music video, corporate interview, wedding...")
            duration = st.selectbox("Duration", DURATION_OPTIONS, index=1)
            scale = st.selectbox("Scale", SCALE_OPTIONS, index=1)
            notes = st.text_area("Notes")
            start = st.form_submit_button("Generate budget")
            skip = st.form_submit_button("Skip to chat")
        if not (start or skip):
            return
        try:
            chat = ai_assistant.create_estimator_chat(est.details.location)
        except AiConfigError as exc:
            st.error(str(exc))
            return
        st.session_state["estimator_chat"] = chat
        if skip or not project_type.strip():
            st.session_state["estimator_messages"] = [{"role": "assistant", "content": ai_assistant.ESTIMATOR_GREETING}]
            st.rerun()
        st.session_state["estimator_messages"] = []
        prompt = ai_assistant.wizard_prompt(project_type=project_type, duration=duration, scale=scale, notes=notes)
        reply = _send_chat(chat, prompt, messages_key="estimator_messages")
        if reply is not None:
            _apply_estimator_reply(reply)
        st.rerun()

    _render_messages("estimator_messages")
    text = st.chat_input("Describe the shoot...", disabled=bool(st.session_state.get("ai_busy")))
    if text:
        reply = _send_chat(chat, text, messages_key="estimator_messages")
        if reply is not None:
            _apply_estimator_reply(reply)
        st.rerun()


_CREW_CATEGORIES = (LineItemCategory.PRE_PRODUCTION, LineItemCategory.PRODUCTION, LineItemCategory.POST_PRODUCTION)


def _crew_roles(est: Estimate) -> list[str]:
    """Distinct crew line descriptions, in estimate order."""
    roles: list[str] = []
    for item in est.items:
        role = item.description.strip()
        if item.category in _CREW_CATEGORIES and role and role not in roles:
            roles.append(role)
    return roles


def _render_local_rates(est: Estimate) -> None:
    location = est.details.location.strip()
    roles = _crew_roles(est)
    with st.expander("Check local rates"):
        if not location or not roles:
            st.caption("Add a location and at least one crew line item to compare against local day rates.")
            return
        if st.button("Look up rates", key="local_rates_button"):
            try:
                rates = ai_assistant.get_local_rates(location, roles)
            except AiConfigError as exc:
                st.error(str(exc))
                return
            st.session_state["local_rates"] = (location, rates)
        cached = st.session_state.get("local_rates")
        if not cached or cached[0] != location:
            return
        rates = cached[1]
        if not rates:
            st.warning("No rate data came back. Try again in a moment.")
            return
        for rate in rates:
            st.write(f"{rate.role}: {format_money(rate.average_rate, rate.currency)} / day")


def _render_editor(gate: SessionGate) -> None:
    is_pro = gate.state.pro
    est = _estimate()
    st.header("Estimate Editor")
    st.caption(f"Project ID: {est.id}")
    if is_wedding_project(est.details):
        st.info("Wedding detected: AI rates are doubled for the no-retake premium.")

    left, right = st.columns([1, 2], gap="large")
    with left:
        est = _render_details(est, is_pro=is_pro)
        st.subheader("Fees")
        markup = st.slider("Production Fee (%)", 0.0, MAX_MARKUP_PERCENT, float(est.markup_percent), step=1.0)
        tax = st.slider("Tax (%)", 0.0, MAX_TAX_PERCENT, float(est.tax_percent), step=0.5)
        if markup != est.markup_percent:
            est = set_markup_percent(est, markup)
        if tax != est.tax_percent:
            est = set_tax_percent(est, tax)

    with right:
        est = _render_line_items(est)
        preset_labels = [p.description for p in COMMON_ITEMS]
        c1, c2, c3 = st.columns([3, 1, 1])
        preset = c1.selectbox("Quick add", ["Custom item", *preset_labels])
        if c2.button("Add item"):
            if preset == "Custom item":
                est = add_line_item(est, new_line_item())
            else:
                est = add_line_item(est, line_item_from_preset(COMMON_ITEMS[preset_labels.index(preset)]))
        if c3.button("Clear all"):
            est = clear_line_items(est)

        ai_desc = st.text_input("Describe an item for AI pricing", key="ai_item_input")
        if st.button("AI add item") and ai_desc.strip():
            try:
                item = ai_assistant.generate_single_line_item(ai_desc, est.details.location)
                est = add_line_item(est, item)
            except (AiServiceError, AiConfigError) as exc:
                st.error(str(exc))
        _render_local_rates(est)

        totals = estimate_totals(est)
        st.divider()
        st.metric("Subtotal", format_money(totals.subtotal, est.currency))
        st.metric(f"Production Fee ({est.markup_percent:g}%)", format_money(totals.markup_amount, est.currency))
        st.metric(f"Tax ({est.tax_percent:g}%)", format_money(totals.tax_amount, est.currency))
        st.metric("Total", format_money(totals.total, est.currency))
        allocation = allocation_by_category(est.items)
        if allocation:
            st.bar_chart({cat.value: value for cat, value in allocation})
        reasoning = st.session_state.get("ai_reasoning")
        if reasoning:
            st.info(reasoning)

    _set_estimate(est)
    if st.button("AI Auto-Build", type="primary"):
        st.session_state["show_auto_build"] = True
    if st.session_state.get("show_auto_build"):
        _render_auto_build(est)
    if st.button("View invoice"):
        _set_view("invoice")
        st.rerun()


def _render_invoice() -> None:
    est = _estimate()
    totals = estimate_totals(est)
    st.header(f"Estimate {est.id}")
    st.write(f"**{est.details.project_name or 'Untitled'}** for {est.details.client_name or '-'}")
    st.dataframe(
        [
            {
                "Category": i.category.value,
                "Description": i.description,
                "Qty": i.quantity,
                "Unit": i.unit.value,
                "Rate": format_money(i.rate, est.currency),
                "Amount": format_money(i.amount, est.currency),
            }
            for i in est.items
        ],
        use_container_width=True,
        hide_index=True,
    )
    st.metric("Total", format_money(totals.total, est.currency))
    try:
        pdf = invoice_pdf_for_estimate(est)
        st.download_button(
            "Download PDF", data=pdf, file_name=invoice_file_name(est), mime="application/pdf", use_container_width=True
        )
    except (OSError, ValueError) as exc:
        st.error(f"Could not generate PDF: {exc}")
    st.text_area("Share message", share_text(est), height=180)
    if st.button("Back to editor"):
        _set_view("editor")
        st.rerun()


def _render_guide_assistant(mode: str) -> None:
    chat_key = f"{mode}_chat"
    chat = st.session_state.get(chat_key)
    if not isinstance(chat, ChatSession):
        label = "Start shot list assistant" if mode == "shot_list" else "Start call sheet assistant"
        if st.button(label, key=f"start_{mode}"):
            try:
                chat = ai_assistant.create_shot_list_chat() if mode == "shot_list" else ai_assistant.create_call_sheet_chat()
            except AiConfigError as exc:
                st.error(str(exc))
                return
            st.session_state[chat_key] = chat
            greeting = ai_assistant.SHOT_LIST_GREETING if mode == "shot_list" else ai_assistant.CALL_SHEET_GREETING
            st.session_state[f"{mode}_messages"] = [{"role": "assistant", "content": greeting}]
            st.rerun()
        return

    _render_messages(f"{mode}_messages")
    text = st.chat_input("Message SER.0...", key=f"input_{mode}", disabled=bool(st.session_state.get("ai_busy")))
    if text:
        reply = _send_chat(chat, text, messages_key=f"{mode}_messages")
        if reply is not None:
            _apply_guide_reply(mode, reply)
        st.rerun()


def _render_shot_list(payload: ShotListPayload) -> None:
    sketches: dict[str, bytes] = st.session_state.setdefault("shot_sketches", {})
    st.subheader(str(payload.data.get("projectTitle") or "Shot List"))
    for scene_idx, scene in enumerate(scene_records(payload)):
        st.markdown(f"**Scene {scene.get('sceneNumber') or scene_idx + 1}** - {scene.get('location') or ''}")
        for shot_idx, shot in enumerate(shot_records(scene)):
            key = sketch_key(scene_idx, shot_idx)
            cols = st.columns([3, 2])
            cols[0].write(f"{shot.get('shotNumber', shot_idx + 1)}. [{shot.get('size', '')}] {shot.get('description', '')}")
            if key in sketches:
                cols[1].image(sketches[key])
            elif cols[1].button("Sketch", key=f"sketch_{key}"):
                try:
                    png = ai_assistant.generate_storyboard_sketch(str(shot.get("description") or ""), str(shot.get("size") or ""))
                except AiConfigError as exc:
                    st.error(str(exc))
                    png = None
                if png:
                    sketches[key] = png
                    st.rerun()
    st.download_button(
        "Download shot list (PDF)",
        data=make_shot_list_pdf_bytes(payload, sketches=sketches),
        file_name="shot_list.pdf",
        mime="application/pdf",
    )


def _render_pro_assistant(assistant: str) -> None:
    _render_guide_assistant(assistant)
    if assistant == "shot_list":
        shot_list = st.session_state.get("generated_shot_list")
        if isinstance(shot_list, ShotListPayload):
            _render_shot_list(shot_list)
        return
    call_sheet = st.session_state.get("generated_call_sheet")
    if isinstance(call_sheet, CallSheetPayload):
        st.json(dict(call_sheet.data))
        st.download_button(
            "Download call sheet (PDF)",
            data=make_call_sheet_pdf_bytes(call_sheet),
            file_name="call_sheet.pdf",
            mime="application/pdf",
        )


def _render_guide(gate: SessionGate) -> None:
    st.header(MANUAL_TITLE)
    st.caption(MANUAL_TAGLINE)
    for entry in manual_entries(gate.state.pro):
        section = entry.section
        st.subheader(section.title)
        if entry.locked:
            st.warning("Pro template. Unlock Pro to use the SER.0 production assistant.")
            if st.button("Unlock Pro", key=f"unlock_{section.assistant}"):
                _set_view("subscription")
                st.rerun()
            continue
        for tip in section.tips:
            st.markdown(f"**{tip.head}**  \n{tip.text}")
        if section.assistant:
            with st.container(border=True):
                _render_pro_assistant(section.assistant)


def _render_partners() -> None:
    st.header("The Alliance")
    st.caption("Partner Program")
    st.write("Empower your fellow filmmakers. Earn recurring revenue for every creator you bring into the ecosystem.")
    for col, (title, text) in zip(st.columns(len(PERKS)), PERKS):
        col.markdown(f"**{title}**  \n{text}")

    stage = st.session_state.get("partner_stage", "intro")
    if stage == "intro":
        if st.button("Join The Alliance", type="primary"):
            st.session_state["partner_stage"] = "signup"
            st.rerun()
        return
    if stage == "signup":
        with st.form("partner_form"):
            application = PartnerApplication(
                name=st.text_input("Full Name"),
                email=st.text_input("Email Address"),
                phone=st.text_input("Phone"),
                website=st.text_input("Website / Portfolio"),
                socials=st.text_area("Social Media Links"),
            )
            submitted = st.form_submit_button("Complete Application")
        if not submitted:
            return
        try:
            submit_application(application)
        except PartnerApplicationError as exc:
            st.error(str(exc))
            return
        st.session_state["partner_stage"] = "dashboard"
        st.rerun()

    st.subheader("Partner Dashboard")
    st.code(referral_link(), language=None)
    stats = PartnerStats()
    c1, c2, c3 = st.columns(3)
    c1.metric("Clicks", stats.clicks)
    c2.metric("Signups", stats.signups)
    c3.metric("Pending", format_money(stats.pending_payout))


def _render_subscription(gate: SessionGate) -> None:
    st.header("Go Pro")
    st.write("Unlimited projects, saved business identity, payment links, logos, and the SER.0 production assistants.")
    checkout_url = _read_secret_or_env_str("SQUARE_CHECKOUT_URL")
    if checkout_url:
        st.link_button("Subscribe", checkout_url, type="primary")
    if st.button("Simulate successful payment"):
        gate.upgrade()
        st.session_state["show_activation"] = True
        _set_view("account")
        st.rerun()


def _render_account(gate: SessionGate) -> None:
    st.header("Studio Portal")
    if st.session_state.pop("show_activation", False):
        st.success("Pro activated. Your details below will auto-fill on all new estimates.")
    profile = gate.user_profile
    with st.form("profile_form"):
        updated = UserProfile(
            business_name=st.text_input("Business Name", profile.business_name),
            business_logo=st.text_input("Logo (data URI)", profile.business_logo),
            payable_to=st.text_input("Payable To", profile.payable_to),
            business_address=st.text_input("Address", profile.business_address),
            business_email=st.text_input("Email", profile.business_email),
            business_phone=st.text_input("Phone", profile.business_phone),
            payment_link=st.text_input("Payment Link", profile.payment_link),
        )
        if st.form_submit_button("Save"):
            gate.save_user_profile(updated)
            st.success("Saved.")
    c1, c2 = st.columns(2)
    if c1.button("Log out"):
        gate.logout()
        _set_view("dashboard")
        st.rerun()
    if gate.state.pro:
        confirm = c2.checkbox("I understand I will lose access to premium features.")
        if c2.button("Cancel Pro membership"):
            gate.downgrade(confirmed=confirm)
            if confirm:
                _set_view("dashboard")
                st.rerun()


# endregion views


def _handle_payment_query(gate: SessionGate) -> None:
    status = st.query_params.get("payment")
    if not status:
        return
    result = gate.handle_payment_redirect(status)
    del st.query_params["payment"]
    if result == "activated":
        st.session_state["show_activation"] = True
        _set_view("account")
    elif result == "payment_failed":
        st.session_state["payment_error"] = True


def main() -> None:
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    configure_logging()
    st.set_page_config(page_title="Shoot.Edit.Release", layout="wide")
    _sync_env_from_secrets()

    gate = _gate()
    _handle_payment_query(gate)

    if not gate.state.authenticated:
        _render_auth(gate)
        return

    if st.session_state.pop("payment_error", False):
        st.error("Payment was not completed. No charges were made.")

    with st.sidebar:
        st.markdown("### Shoot.Edit.Release")
        if gate.state.pro:
            st.caption("Pro member")
        choice = st.radio("Navigate", list(VIEWS), index=list(VIEWS).index(_current_view()), format_func=VIEWS.get)
        if choice != _current_view():
            _set_view(choice)  # type: ignore[arg-type]
            st.rerun()

    view = _current_view()
    if view == "editor":
        _render_editor(gate)
    elif view == "invoice":
        _render_invoice()
    elif view == "guide":
        _render_guide(gate)
    elif view == "partners":
        _render_partners()
    elif view == "subscription":
        _render_subscription(gate)
    elif view == "account":
        _render_account(gate)
    else:
        _render_dashboard(gate)


if __name__ == "__main__":
    main()
