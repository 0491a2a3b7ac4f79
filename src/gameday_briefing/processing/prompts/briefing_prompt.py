"""Prompt templates for the optional bullet enhancer."""

from __future__ import annotations

from typing import Sequence

from gameday_briefing.core.constants import CATEGORY_BREAKING, CATEGORY_INJURIES, CATEGORY_ROSTER
from gameday_briefing.models.news import Excerpt

_COMMON_RULES = """Use ONLY the provided excerpts. Do not add facts, context, or knowledge beyond them.
Write one bullet per line, starting with "- ".
Each bullet is one or two short factual sentences and ends with its source in parentheses, e.g. (ESPN).
No headings, no commentary, no markdown beyond the leading dash."""

CATEGORY_INSTRUCTIONS = {
    CATEGORY_INJURIES: f"""You are an NFL injury desk editor.
Turn the excerpts into injury status bullets: player, team, injury, and status
(out, doubtful, questionable, IR, returned to practice).
Skip anything that is not an injury update.
{_COMMON_RULES}""",
    CATEGORY_ROSTER: f"""You are an NFL transactions editor.
Turn the excerpts into roster move bullets: signings, releases, trades, waivers,
practice squad elevations and IR activations. Include contract terms only when stated.
{_COMMON_RULES}""",
    CATEGORY_BREAKING: f"""You are an NFL news editor.
Turn the excerpts into bullets for significant announcements that are not injuries
or roster transactions: suspensions, coaching changes, league announcements.
{_COMMON_RULES}""",
}

MERGE_INSTRUCTION = f"""You are deduplicating an NFL news briefing.
Some bullets below describe the same event in different words.
Merge bullets that describe the same event into one, keeping the clearer phrasing
and the citation of the kept bullet. Keep distinct events as separate bullets, in the original order.
Return every remaining bullet.
{_COMMON_RULES}"""


def format_excerpt_batch(excerpts: Sequence[Excerpt]) -> list[str]:
    blocks = []
    for i, excerpt in enumerate(excerpts, start=1):
        title = f"{excerpt.title}: " if excerpt.title else ""
        blocks.append(f"[{i}] ({excerpt.source or 'Unknown'}) {title}{excerpt.text}")
    return blocks


def format_bullet_batch(bullets: Sequence[str]) -> list[str]:
    return [f"[{i}] {b}" for i, b in enumerate(bullets, start=1)]
