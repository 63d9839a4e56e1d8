"""
Silver Ravens Engine v1.0 — Rule Tables
Fixed numeric tables: rank progression, treasury minimums, cache sizes,
earn income, and the d100 + Danger event table.
"""

from dice import _matches_range


CHECKS = ("loyalty", "security", "secrecy")


# ─────────────────────────────────────────────────────
# RANK PROGRESSION
# ─────────────────────────────────────────────────────

# rank -> (min_supporters, focus_bonus, secondary_bonus, actions, max_teams, gift)
_PROGRESSION_ROWS = {
    1: (0, 2, 0, 1, 2, None),
    2: (10, 3, 0, 2, 2, "Training: +1 skill rank"),
    3: (15, 3, 1, 2, 3, "Potion (up to 25 gp)"),
    4: (20, 4, 1, 2, 3, "Title: Defender"),
    5: (30, 4, 1, 2, 4, "40 gp"),
    6: (40, 5, 2, 2, 4, "55 gp"),
    7: (55, 5, 2, 3, 4, "Training: +2 skill ranks"),
    8: (75, 6, 2, 3, 5, "Armor or wand (up to 75 gp)"),
    9: (105, 6, 3, 3, 5, "Title: Guardian"),
    10: (160, 7, 3, 3, 5, "95 gp"),
    11: (235, 7, 3, 4, 6, "170 gp"),
    12: (330, 8, 4, 4, 6, "Training: +3 skill ranks"),
    13: (475, 8, 4, 4, 6, "Wand or weapon (up to 290 gp)"),
    14: (665, 9, 4, 4, 6, "Title: Warden"),
    15: (955, 9, 5, 5, 7, "185 gp"),
    16: (1350, 10, 5, 5, 7, "460 gp"),
    17: (1900, 10, 5, 5, 7, "Training: +4 skill ranks"),
    18: (2700, 11, 6, 5, 7, "Magic item (up to 570 gp)"),
    19: (3850, 11, 6, 6, 7, "Title: Savior"),
    20: (5350, 12, 6, 6, 8, "750 gp"),
}

PROGRESSION = {
    rank: {
        "min_supporters": row[0],
        "focus_bonus": row[1],
        "secondary_bonus": row[2],
        "actions": row[3],
        "max_teams": row[4],
        "gift": row[5],
    }
    for rank, row in _PROGRESSION_ROWS.items()
}

MAX_RANK = 20

TITLE_FEATS = {
    "Defender": ["Alertness", "Deceitful", "Persuasive", "Stealthy"],
    "Guardian": ["Great Fortitude", "Iron Will", "Lightning Reflexes"],
    "Warden": ["Fleet", "Improved Initiative", "Toughness"],
    "Savior": ["Any feat whose prerequisites are met"],
}


# ─────────────────────────────────────────────────────
# FOCUS
# ─────────────────────────────────────────────────────

FOCUS_TYPES = {
    "loyalty": {"loyalty": "focus", "security": "secondary", "secrecy": "secondary"},
    "security": {"loyalty": "secondary", "security": "focus", "secrecy": "secondary"},
    "secrecy": {"loyalty": "secondary", "security": "secondary", "secrecy": "focus"},
}


# ─────────────────────────────────────────────────────
# TREASURY
# ─────────────────────────────────────────────────────

MIN_TREASURY = {
    1: 2, 2: 3, 3: 4, 4: 5, 5: 7, 6: 9, 7: 12, 8: 15, 9: 18, 10: 22,
    11: 26, 12: 29, 13: 32, 14: 35, 15: 38, 16: 40, 17: 42, 18: 43,
    19: 44, 20: 45,
}
DEFAULT_MIN_TREASURY = 19


# ─────────────────────────────────────────────────────
# CACHES
# ─────────────────────────────────────────────────────

CACHE_LIMITS = {
    "small": {"weight": 5, "max_value": 62, "dc": 15},
    "medium": {"weight": 10, "max_value": 143, "dc": 20},
    "large": {"weight": 20, "max_value": None, "dc": 30},
}

CACHE_SIZE_ORDER = ["small", "medium", "large"]


# ─────────────────────────────────────────────────────
# EARN INCOME (copper pieces per week)
# ─────────────────────────────────────────────────────

# level -> (dc, failure, trained, expert, master, legendary)
_INCOME_ROWS = {
    0: (14, 7, 35, 35, 35, 35),
    1: (15, 14, 140, 140, 140, 140),
    2: (16, 28, 210, 210, 210, 210),
    3: (18, 56, 350, 350, 350, 350),
    4: (19, 70, 490, 560, 560, 560),
    5: (20, 140, 630, 700, 700, 700),
    6: (22, 210, 1050, 1400, 1400, 1400),
    7: (23, 280, 1400, 1750, 1750, 1750),
    8: (24, 350, 1750, 2100, 2100, 2100),
    9: (26, 420, 2100, 2800, 2800, 2800),
    10: (27, 490, 2800, 3500, 4200, 4200),
    11: (28, 560, 3500, 4200, 5600, 5600),
    12: (30, 630, 4200, 5600, 7000, 7000),
    13: (31, 700, 4900, 7000, 10500, 10500),
    14: (32, 1050, 5600, 10500, 14000, 14000),
    15: (34, 1400, 7000, 14000, 19600, 19600),
    16: (35, 1750, 9100, 17500, 25200, 28000),
    17: (36, 2100, 10500, 21000, 31500, 38500),
    18: (38, 2800, 14000, 31500, 49000, 63000),
    19: (39, 4200, 21000, 42000, 70000, 91000),
    20: (40, 5600, 28000, 52500, 105000, 140000),
    21: (40, 5600, 35000, 63000, 122500, 210000),    # critical success at level 20
}

EARN_INCOME_TABLE = {
    level: {
        "dc": row[0], "failure": row[1], "trained": row[2],
        "expert": row[3], "master": row[4], "legendary": row[5],
    }
    for level, row in _INCOME_ROWS.items()
}

# team rank tier -> (proficiency, bonus)
TEAM_PROFICIENCY = {
    1: ("trained", 2),
    2: ("expert", 4),
    3: ("master", 6),
}


# ─────────────────────────────────────────────────────
# SETTLEMENT (Kintargo modifiers touched by protests)
# ─────────────────────────────────────────────────────

SETTLEMENT_MODIFIERS = ["Corruption", "Crime", "Economy", "Law", "Lore", "Society"]


# ─────────────────────────────────────────────────────
# STACKING
# ─────────────────────────────────────────────────────

STACK_CAPS = {
    "safehouse": 5,
}


# ─────────────────────────────────────────────────────
# EVENT TABLE (d100 + Danger)
# ─────────────────────────────────────────────────────
# escalates: a repeat occurrence promotes the scheduled entry to persistent.
# mitigate/dc: the one-time skill check that softens the live event.

EVENT_TABLE = [
    {"range": "1-4", "name": "Week of Secrecy", "positive": True,
     "desc": "+6 to all checks next week. Recruitment doubled."},
    {"range": "5-8", "name": "Successful Protest", "positive": True,
     "desc": "+2d6 supporters. A random settlement modifier gains +4 for a week."},
    {"range": "9-14", "name": "Reduced Threat", "positive": True,
     "desc": "-10 Danger next week."},
    {"range": "15-20", "name": "Donation", "positive": True,
     "desc": "Treasury gains (Loyalty check x 20) gp."},
    {"range": "21-28", "name": "Rising Support", "positive": True,
     "desc": "+2d6 supporters."},
    {"range": "29-38", "name": "Market Boom", "positive": True,
     "desc": "New magic items reach the market."},
    {"range": "39-48", "name": "All Quiet", "positive": True, "escalates": True,
     "desc": "+1 Security next week. No event next week."},
    {"range": "49-51", "name": "Roll Twice", "positive": False,
     "desc": "Two events occur."},
    {"range": "52-59", "name": "Snitch", "positive": False,
     "desc": "Loyalty DC 15. Failure: lose a supporter, +1d6 Notoriety."},
    {"range": "60-63", "name": "Rivalry", "positive": False, "escalates": True,
     "mitigate": "diplomacy", "dc": 20,
     "desc": "Two teams cannot act next week. Diplomacy DC 20 ends it."},
    {"range": "64-67", "name": "Dangerous Times", "positive": False, "escalates": True,
     "mitigate": "intimidation", "dc": 20,
     "desc": "+10 Danger. Intimidation DC 20 lowers it to +5."},
    {"range": "68-71", "name": "Missing in Action", "positive": False,
     "desc": "A team that acted this week goes missing."},
    {"range": "72-75", "name": "Cache Discovered", "positive": False,
     "desc": "Lose a cache, or -1d6 supporters and population."},
    {"range": "76-79", "name": "Increased Patrols", "positive": False, "escalates": True,
     "mitigate": "survival", "dc": 20,
     "desc": "-4 Secrecy. Survival DC 20 lowers it to -2."},
    {"range": "80-83", "name": "Low Morale", "positive": False, "escalates": True,
     "mitigate": "performance", "dc": 20,
     "desc": "-4 Loyalty. Performance DC 20 lowers it to -2."},
    {"range": "84-87", "name": "Sickness", "positive": False, "escalates": True,
     "mitigate": "medicine", "dc": 20,
     "desc": "-4 Security. Medicine DC 20 lowers it to -2."},
    {"range": "88-91", "name": "Disabled Team", "positive": False,
     "desc": "A random team is disabled."},
    {"range": "92-95", "name": "Discord in the Ranks", "positive": False, "escalates": True,
     "mitigate": "diplomacy", "dc": 20,
     "desc": "-4 to all checks. Diplomacy DC 20 lowers it to -2."},
    {"range": "96-99", "name": "Invasion", "positive": False,
     "desc": "A dangerous creature invades. If ignored, 1d4 teams are lost, "
             "1d4 are disabled and Low Morale becomes persistent."},
    {"range": "100-103", "name": "Failed Protest", "positive": False,
     "desc": "Security DC 25. Failure: -2d6 supporters and population. "
             "A random settlement modifier suffers -4 for a week."},
    {"range": "104-107", "name": "Ally in Danger", "positive": False,
     "desc": "Security DC 20 - ally level (min 10). Success: missing a week. Failure: captured."},
    {"range": "108-111", "name": "Catastrophic Mission", "positive": False,
     "desc": "Security DC 20: success disables the team, failure destroys it. "
             "+1d6 Notoriety either way."},
    {"range": "112-115", "name": "Traitor", "positive": False,
     "desc": "A team is disabled. Loyalty DC 20 catches the traitor; failure +2d6 Notoriety."},
    {"range": "116-119", "name": "Devil Infiltration", "positive": False,
     "mitigate": "perception", "dc": 20,
     "desc": "1d6 weeks (reroll 6) of +1d6 Notoriety. Loyalty DC 15 halves each gain. "
             "Perception DC 20 halves the weeks."},
    {"range": "120-999", "name": "Inquisition", "positive": False, "escalates": True,
     "mitigate": "secrecy", "dc": 20,
     "desc": "Supporter losses doubled. Secrecy DC 20 while lying low ends a persistent Inquisition."},
]

EVENT_INDEX = {row["name"]: row for row in EVENT_TABLE}


def lookup_event_row(total: int) -> dict:
    for row in EVENT_TABLE:
        if _matches_range(total, row["range"]):
            return row
    # Below 1 cannot happen with d100 + non-negative danger
    return EVENT_TABLE[0] if total < 1 else EVENT_TABLE[-1]
