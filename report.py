"""
Silver Ravens Engine v1.0 — Weekly Journal
Markdown journal of the rebellion: current sheet, week-by-week history,
live events and the recent action log. Host-side rendering only; the
engine itself never formats markup.
"""

from datetime import datetime

from modifiers import compute_all_bonuses
from roster import ALLIES, OFFICER_ROLES, get_team_definition
from tables import CHECKS


def generate_weekly_report(faction, action_log: list = None, weeks: int = None) -> str:
    """Full journal as a Markdown string. `weeks` limits the history section."""
    parts = []
    parts.append(_head(faction))
    parts.append(_sheet(faction))
    parts.append(_checks(faction))
    parts.append(_teams(faction))
    parts.append(_officers_and_allies(faction))
    parts.append(_live_events(faction))
    parts.append(_history(faction, weeks))
    parts.append(_log(faction, action_log or []))
    return "\n".join(p for p in parts if p)


# ─────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────

def _row(*cells) -> str:
    return "| " + " | ".join(str(c) for c in cells) + " |"


def _table(header: list, rows: list) -> str:
    lines = [_row(*header), _row(*["---"] * len(header))]
    lines.extend(_row(*r) for r in rows)
    return "\n".join(lines)


def _signed(value) -> str:
    return f"{value:+d}" if isinstance(value, int) else str(value)


def _duration(event) -> str:
    if event.is_persistent:
        return "persistent"
    end = event.week_started + event.duration - 1
    return f"week {event.week_started}" if end == event.week_started else \
        f"weeks {event.week_started}-{end}"


# ─────────────────────────────────────────────────────
# SECTIONS
# ─────────────────────────────────────────────────────

def _head(faction) -> str:
    stamp = datetime.now().strftime("%Y-%m-%d %H:%M")
    return f"# Silver Ravens, Week {faction.week}\n\n_Generated {stamp}_\n"


def _sheet(faction) -> str:
    rows = [
        ("Rank", f"{faction.rank} / {faction.max_rank}"),
        ("Focus", faction.focus.capitalize()),
        ("Supporters", faction.supporters),
        ("Population", faction.population),
        ("Notoriety", faction.notoriety),
        ("Treasury", f"{faction.treasury:g} gp"),
        ("Danger", faction.danger),
        ("Caches", sum(1 for c in faction.caches if c.active)),
    ]
    return "## Sheet\n\n" + _table(["", "Value"], rows) + "\n"


def _checks(faction) -> str:
    bonuses = compute_all_bonuses(faction)
    lines = ["## Checks", ""]
    for check in CHECKS:
        info = bonuses[check]
        parts = ", ".join(f"{p['label']} {_signed(p['value'])}" for p in info["parts"]) or "none"
        lines.append(f"- **{check.capitalize()} {_signed(info['total'])}**: {parts}")
    chance = bonuses["event_chance"]
    lines.append("")
    lines.append(f"Actions {faction.actions_used_this_week}/{bonuses['max_actions']}. "
                 f"Effective danger {bonuses['effective_danger']['total']}. "
                 f"Event chance {chance['chance']}%"
                 + (" (doubled)" if chance["doubled"] else "") + ".")
    return "\n".join(lines) + "\n"


def _teams(faction) -> str:
    if not faction.teams:
        return "## Teams\n\nNone.\n"
    rows = []
    for i, team in enumerate(faction.teams):
        definition = get_team_definition(team.type)
        state = "disabled" if team.disabled else "missing" if team.missing else "ready"
        rows.append((i, team.label or definition["label"], definition["category"],
                     team.manager_ref or "-", team.current_action or "-", state))
    return "## Teams\n\n" + _table(["#", "Team", "Category", "Manager", "Action", "State"],
                                   rows) + "\n"


def _officers_and_allies(faction) -> str:
    lines = ["## Officers", ""]
    if faction.officers:
        for officer in faction.officers:
            label = OFFICER_ROLES.get(officer.role, {}).get("label", officer.role)
            flag = "" if officer.is_available() else " _(unavailable)_"
            lines.append(f"- {label}: {officer.actor_ref or 'NPC'}{flag}")
    else:
        lines.append("None.")

    lines.extend(["", "## Allies", ""])
    if faction.allies:
        for ally in faction.allies:
            name = ALLIES.get(ally.slug, {}).get("name", ally.slug)
            if ally.captured:
                state = "captured"
            elif ally.missing:
                state = "missing"
            elif not ally.enabled:
                state = "gone"
            else:
                state = "active"
            lines.append(f"- {name} ({state})")
    else:
        lines.append("None.")
    return "\n".join(lines) + "\n"


def _live_events(faction) -> str:
    live = [e for e in faction.events if e.is_live(faction.week)]
    if not live:
        return "## Events\n\nNo live events.\n"
    rows = []
    for event in live:
        status = "mitigated" if event.mitigated else \
            "active" if event.is_active(faction.week) else "scheduled"
        rows.append((event.name, event.kind, _duration(event), status,
                     event.description or "-"))
    return "## Events\n\n" + _table(["Event", "Kind", "When", "Status", "Effect"], rows) + "\n"


def _history(faction, weeks: int = None) -> str:
    entries = faction.history[-weeks:] if weeks else faction.history
    if not entries:
        return ""
    rows = []
    for h in entries:
        rows.append((h.get("week"), h.get("rank"), h.get("supporters"), h.get("notoriety"),
                     f"{h.get('treasury', 0):g}", h.get("actions_used", 0),
                     ", ".join(h.get("events", [])) or "-"))
    return "## History\n\n" + _table(
        ["Week", "Rank", "Supporters", "Notoriety", "Treasury", "Actions", "Events"], rows) + "\n"


def _log(faction, action_log: list) -> str:
    entries = [e for e in faction.log if e.get("week") == faction.week - 1 or
               e.get("week") == faction.week]
    lines = ["## Recent", ""]
    for entry in entries:
        summary = entry.get("summary")
        if summary:
            lines.append(f"- Week {entry['week']}: {summary}")
    for entry in action_log[-20:]:
        if entry.get("type") == "REJECTED":
            lines.append(f"- _Rejected_: {entry['detail']}")
    if len(lines) == 2:
        return ""
    return "\n".join(lines) + "\n"
