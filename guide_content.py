from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

MANUAL_TITLE = "The Manual"
MANUAL_TAGLINE = "Standard operating procedures for the modern videographer. Elevate your craft. Respect the process."


@dataclass(frozen=True)
class ManualTip:
    head: str
    text: str


@dataclass(frozen=True)
class ManualSection:
    title: str
    tips: Tuple[ManualTip, ...]
    pro_only: bool = False
    # Production assistant attached to a Pro section ("shot_list" / "call_sheet").
    assistant: Optional[str] = None


@dataclass(frozen=True)
class ManualEntry:
    section: ManualSection
    locked: bool


# region sections

MANUAL_SECTIONS: Tuple[ManualSection, ...] = (
    ManualSection(
        title="The Craft: Quality Content",
        tips=(
            ManualTip(
                "Story > Gear",
                "A generic story shot on an ARRI looks worse than a great story shot on an iPhone. "
                "Focus on the narrative arc before selecting the lens.",
            ),
            ManualTip(
                "Lighting is Language",
                "Don't just light for exposure; light for emotion. Use negative fill to create depth. "
                "Shadows tell as much story as the light.",
            ),
            ManualTip(
                "Audio is 51% of Video",
                "Bad visuals can be stylistic; bad audio is amateur. Always capture room tone and hire a "
                "dedicated sound mixer for dialogue.",
            ),
        ),
    ),
    ManualSection(
        title="The Crew: Hiring",
        tips=(
            ManualTip(
                "Define Rates Upfront",
                "Use the Estimator to calculate fair market rates. Never ask someone to work for 'exposure'. "
                "Clear rates create clear expectations.",
            ),
            ManualTip(
                "Feed Your Crew",
                "A well-fed crew is a happy crew. Pizza every day isn't enough. Good catering keeps morale "
                "high during 12-hour days.",
            ),
            ManualTip(
                "Hire for Attitude",
                "Skills can be taught; attitude cannot. On a high-pressure set, a calm demeanor is more "
                "valuable than a slightly better reel.",
            ),
        ),
    ),
    ManualSection(
        title="The Client: Relations",
        tips=(
            ManualTip(
                "Under-promise, Over-deliver",
                "Set a delivery date you can beat. Surprising a client with an early delivery builds immense trust.",
            ),
            ManualTip(
                "The Power of 'No'",
                "If a request is out of scope, refer to the original estimate. Scope creep kills profit. "
                "Charge for the extra work or politely decline.",
            ),
            ManualTip(
                "Communication Cadence",
                "Update the client before they ask. Weekly status reports during post-production prevent anxiety.",
            ),
        ),
    ),
    ManualSection(
        title="The Code: Professionalism",
        tips=(
            ManualTip(
                "Early is On Time",
                "Call time is 8:00 AM? Be there at 7:45 AM. If you're on time, you're late. "
                "Punctuality is the first sign of respect.",
            ),
            ManualTip(
                "File Management",
                "Your data is your lifeblood. Follow the 3-2-1 rule: 3 copies, 2 different media types, "
                "1 offsite. Naming conventions matter.",
            ),
            ManualTip(
                "The Exit",
                "Leave the location cleaner than you found it. The impression you leave during wrap is the "
                "one they remember.",
            ),
        ),
    ),
    ManualSection(
        title="The Template: Shot List",
        pro_only=True,
        assistant="shot_list",
        tips=(
            ManualTip(
                "Scene Breakdown",
                "Organize by Scene/Segment. Define Description, Location, and Notes. Grouping shots by "
                "location saves hours of setup time.",
            ),
            ManualTip(
                "Shot Spec & Storyboards",
                "Shot #, Type (WS/MS/CU), Movement. Be specific. SER.0 automatically generates classic line "
                "art storyboards for visual reference.",
            ),
            ManualTip(
                "Logistics",
                "Gear Needs (Lens/Rig), Lighting (Key/Fill), Audio (Boom/Lav). Don't arrive without the "
                "right batteries or permits.",
            ),
        ),
    ),
    ManualSection(
        title="The Template: Call Sheet",
        pro_only=True,
        assistant="call_sheet",
        tips=(
            ManualTip(
                "Logistics First",
                "Parking, weather, and nearest hospital. Safety and accessibility are priority #1. Never let "
                "a crew member arrive confused.",
            ),
            ManualTip(
                "The Grid",
                "Call times for every crew member. Verify receipt. If they didn't confirm via email or text, "
                "assume they aren't coming.",
            ),
            ManualTip(
                "Schedule",
                "Realistic timing blocks. Pad your moves. A call sheet is a promise of a wrap time. "
                "Respect the 12-hour turn.",
            ),
        ),
    ),
)

# endregion sections


def manual_entries(is_pro: bool) -> Tuple[ManualEntry, ...]:
    """
    Every manual section in display order; Pro sections are locked for free users.
    """
    return tuple(ManualEntry(section=s, locked=s.pro_only and not is_pro) for s in MANUAL_SECTIONS)
