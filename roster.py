"""
Silver Ravens Engine v1.0 — Roster Catalogs
Officer roles, team types and the named allies of the Silver Ravens.
Static data only; nothing here mutates a faction.
"""


# ─────────────────────────────────────────────────────
# OFFICER ROLES
# ─────────────────────────────────────────────────────

OFFICER_ROLES = {
    "demagogue": {
        "label": "Demagogue",
        "abilities": ["con", "cha"],
        "target": "loyalty",
    },
    "partisan": {
        "label": "Partisan",
        "abilities": ["str", "wis"],
        "target": "security",
    },
    "recruiter": {
        "label": "Recruiter",
        "abilities": ["level"],
        "target": "recruitment",     # adds officer level to recruited supporters (stacks)
    },
    "sentinel": {
        "label": "Sentinel",
        "abilities": [],
        "target": "secondary",       # +1 to two chosen checks
    },
    "spymaster": {
        "label": "Spymaster",
        "abilities": ["dex", "int"],
        "target": "secrecy",
    },
    "strategist": {
        "label": "Strategist",
        "abilities": [],
        "target": "action",          # +1 action; chosen team +2 on its check
    },
}

# Which attributes a team manager contributes to each check
CHECK_ATTRIBUTES = {
    "loyalty": ["con", "cha"],
    "security": ["str", "wis"],
    "secrecy": ["dex", "int"],
}


# ─────────────────────────────────────────────────────
# ACTION LABELS
# ─────────────────────────────────────────────────────

# Actions the faction itself can take without a specialised team
UNIVERSAL_ACTIONS = {
    "changeOfficer": "Change Officer Role",
    "dismiss": "Dismiss Team",
    "guarantee": "Guarantee Event",
    "lieLow": "Lie Low",
    "recruitSupporters": "Recruit Supporters",
    "recruitTeam": "Recruit Team",
    "special": "Special Action",
    "upgrade": "Upgrade Team",
}

SPECIFIC_ACTIONS = {
    "blackMarket": "Activate Black Market",
    "safehouse": "Activate Safehouse",
    "covert": "Covert Action",
    "earnGold": "Earn Gold",
    "gatherInfo": "Gather Information",
    "knowledge": "Knowledge Check",
    "manipulate": "Manipulate Events",
    "reduceDanger": "Reduce Danger",
    "refreshMarket": "Refresh Market",
    "rescue": "Rescue Character",
    "restore": "Restore Character",
    "sabotage": "Sabotage",
    "cache": "Create Cache",
    "specialOrder": "Special Order",
    "disinformation": "Spread Disinformation",
    "urbanInfluence": "Urban Influence",
}


# ─────────────────────────────────────────────────────
# TEAMS
# ─────────────────────────────────────────────────────

TEAMS = {
    "silverRavens": {
        "label": "Silver Ravens", "rank": 0, "category": "core", "core": True,
        "caps": ["recruitSupporters", "lieLow", "guarantee", "changeOfficer", "special"],
    },

    # Advisors
    "streetPerformers": {
        "label": "Street Performers", "rank": 1, "category": "advisors",
        "hire_dc": 10, "hire_check": "secrecy",
        "caps": ["gatherInfo"], "next": ["rumormongers"],
    },
    "rumormongers": {
        "label": "Rumormongers", "rank": 2, "category": "advisors", "upgrade_cost": 8,
        "caps": ["gatherInfo", "disinformation"], "next": ["agitators", "cognoscenti"],
    },
    "agitators": {
        "label": "Agitators", "rank": 3, "category": "advisors", "upgrade_cost": 19,
        "caps": ["gatherInfo", "disinformation", "urbanInfluence"],
    },
    "cognoscenti": {
        "label": "Cognoscenti", "rank": 3, "category": "advisors", "upgrade_cost": 19,
        "caps": ["gatherInfo", "disinformation", "knowledge"],
    },

    # Outlaws
    "sneaks": {
        "label": "Sneaks", "rank": 1, "category": "outlaws",
        "hire_dc": 15, "hire_check": "secrecy",
        "caps": ["cache"], "cache_size": "small", "next": ["thieves"],
    },
    "thieves": {
        "label": "Thieves", "rank": 2, "category": "outlaws", "upgrade_cost": 21,
        "caps": ["cache", "safehouse"], "cache_size": "medium",
        "next": ["saboteurs", "smugglers"],
    },
    "saboteurs": {
        "label": "Saboteurs", "rank": 3, "category": "outlaws", "upgrade_cost": 67,
        "caps": ["cache", "safehouse", "sabotage"], "cache_size": "large",
    },
    "smugglers": {
        "label": "Smugglers", "rank": 3, "category": "outlaws", "upgrade_cost": 67,
        "caps": ["cache", "safehouse", "covert"], "cache_size": "large",
    },

    # Rebels
    "freedomFighters": {
        "label": "Freedom Fighters", "rank": 1, "category": "rebels",
        "hire_dc": 15, "hire_check": "security",
        "caps": ["reduceDanger"], "next": ["infiltrators"],
    },
    "infiltrators": {
        "label": "Infiltrators", "rank": 2, "category": "rebels", "upgrade_cost": 21,
        "caps": ["reduceDanger", "rescue"], "next": ["cabalists", "spellcasters"],
    },
    "cabalists": {
        "label": "Cabalists", "rank": 3, "category": "rebels", "upgrade_cost": 67,
        "caps": ["reduceDanger", "rescue", "manipulate"],
    },
    "spellcasters": {
        "label": "Spellcasters", "rank": 3, "category": "rebels", "upgrade_cost": 67,
        "caps": ["reduceDanger", "rescue", "restore"],
    },

    # Traders
    "peddlers": {
        "label": "Peddlers", "rank": 1, "category": "traders",
        "hire_dc": 10, "hire_check": "security",
        "caps": ["earnGold"], "next": ["merchants"],
    },
    "merchants": {
        "label": "Merchants", "rank": 2, "category": "traders", "upgrade_cost": 8,
        "caps": ["earnGold", "refreshMarket"], "next": ["blackMarketers", "merchantLords"],
    },
    "blackMarketers": {
        "label": "Black Marketers", "rank": 3, "category": "traders", "upgrade_cost": 19,
        "caps": ["earnGold", "refreshMarket", "blackMarket"],
    },
    "merchantLords": {
        "label": "Merchant Lords", "rank": 3, "category": "traders", "upgrade_cost": 19,
        "caps": ["earnGold", "refreshMarket", "specialOrder"],
    },

    # Unique teams (never count toward max teams, never upgrade)
    "fushiSisters": {
        "label": "Fushi Sisters", "rank": 2, "category": "unique", "unique": True,
        "caps": ["earnGold", "gatherInfo"],
    },
    "torrentArmigers": {
        "label": "Torrent Armigers", "rank": 2, "category": "unique", "unique": True,
        "caps": ["reduceDanger", "rescue"], "no_failure_notoriety": True,
    },
    "acisaziScouts": {
        "label": "Acisazi Scouts", "rank": 3, "category": "unique", "unique": True,
        "caps": ["cache", "safehouse", "covert"], "cache_size": "large",
        "passive": {"secrecy": 1},
    },
    "bellflower": {
        "label": "Bellflower Network", "rank": 3, "category": "unique", "unique": True,
        "caps": ["covert", "rescue", "sabotage"],
        "action_bonus": {"sabotage": ("secrecy", 2)},
    },
    "lacunafex": {
        "label": "Lacunafex", "rank": 3, "category": "unique", "unique": True,
        "caps": ["covert", "gatherInfo", "disinformation", "sabotage"],
        "action_bonus": {"covert": ("secrecy", 2)},
    },
    "orderTorrent": {
        "label": "Order of the Torrent", "rank": 3, "category": "unique", "unique": True,
        "caps": ["reduceDanger", "rescue", "sabotage"],
        "action_bonus": {"rescue": ("security", 4)},
    },

    "unknown": {
        "label": "Unknown Team", "rank": 1, "category": "unknown", "caps": [],
    },
}


def get_team_definition(slug: str) -> dict:
    if not slug:
        return TEAMS["unknown"]
    return TEAMS.get(slug, TEAMS["unknown"])


def upgrade_options(slug: str) -> list:
    return list(get_team_definition(slug).get("next", []))


def can_upgrade(slug: str) -> bool:
    definition = get_team_definition(slug)
    return bool(definition.get("next")) and not definition.get("unique", False)


def hireable_teams() -> list:
    return [slug for slug, d in TEAMS.items() if "hire_dc" in d]


# ─────────────────────────────────────────────────────
# ALLIES
# ─────────────────────────────────────────────────────

ALLIES = {
    # Adventure 1: In Hell's Bright Shadow
    "laria": {
        "name": "Laria Longroad", "level": 3, "adventure": 1,
        "action_bonus": {"recruitSupporters": ("loyalty", 2)},
    },
    "rexus": {
        "name": "Rexus Victocora", "level": 2, "adventure": 1,
        "notoriety_reduction": 1,
    },
    "vendalfek": {
        "name": "Vendalfek", "level": 4, "adventure": 1,
        "enables_disinformation": True,
        "action_bonus": {"disinformation": ("secrecy", 4)},
    },
    "blosodriette": {
        "name": "Blosodriette", "level": 6, "adventure": 1,
        "bonuses": {"secrecy": 1, "loyalty": -1},
    },

    # Adventure 2: Turn of the Torrent
    "cassius": {
        "name": "Captain Cassius Sargaeta", "level": 7, "adventure": 2,
        "immune_to": "Increased Patrols", "immunity_supporters": "3d6",
    },
    "octavio": {
        "name": "Lictor Octavio Sabinus", "level": 8, "adventure": 2,
        "action_bonus": {"rescue": ("security", 4)},
        "immune_to": "Low Morale",
    },
    "hetamon": {
        "name": "Hetamon Haas", "level": 6, "adventure": 2,
        "notoriety_reduction_dice": "1d6",
        "immune_to": "Sickness",
        "free_cache_monthly": True,
    },

    # Adventure 3: Dance of the Damned
    "jilia": {
        "name": "Jilia Bainillus", "level": 9, "adventure": 3, "can_be_officer": True,
        "bonuses": {"security": 2, "loyalty": 2},
    },
    "mialari": {
        "name": "Mialari Docur", "level": 10, "adventure": 3, "can_be_officer": True,
        "selected_bonus": 1,
    },
    "manticce": {
        "name": "Queen Manticce Calliokiiah", "level": 12, "adventure": 3,
        "immune_to_treasury_shortage": True,
        "bonus_earn_gold": True,
    },
    "tayacet": {
        "name": "Tayacet Tiora", "level": 8, "adventure": 3,
        "revealed_bonuses": {"loyalty": 2},
        "hidden_bonuses": {"secrecy": 2, "security": 2},
    },

    # Adventure 4: A Song of Silver
    "chuko": {
        "name": "Chuko", "level": 11, "adventure": 4, "can_be_officer": True,
        "reroll": "security",
    },
    "jackdaw": {
        "name": "Jackdaw", "level": 13, "adventure": 4, "can_be_officer": True,
        "bonuses": {"loyalty": 1, "security": 1, "secrecy": 1},
    },
    "molly": {
        "name": "Molly Mayapple", "level": 10, "adventure": 4, "can_be_officer": True,
        "grants_caps": ["covert", "sabotage"],
    },
    "shensen": {
        "name": "Shensen", "level": 12, "adventure": 4, "can_be_officer": True,
        "reroll": "loyalty",
    },
    "strea": {
        "name": "Strea Vestori", "level": 11, "adventure": 4, "can_be_officer": True,
        "reroll": "secrecy",
    },
}


def get_ally_definition(slug: str) -> dict:
    return ALLIES.get(slug)


def reroll_ally_for(check: str) -> str:
    """Slug of the ally granting a weekly reroll for a check, or None."""
    for slug, definition in ALLIES.items():
        if definition.get("reroll") == check:
            return slug
    return None
