"""
Silver Ravens Engine v1.0 — Command Line
Run weeks of the rebellion without the web sheet.

Usage:
    python main.py              # Run the rest of the current week (no team actions)
    python main.py --week 3     # Run 3 weeks
    python main.py --status     # Show current sheet
    python main.py --report     # Print the Markdown journal
    python main.py --save       # Save state to the data directory
"""

import argparse

from config import load_config, configure_logging
from game_loop import RebellionLoop
from modifiers import compute_all_bonuses
from roster import ALLIES, get_team_definition
from tables import CHECKS


def show_status(faction):
    """Print the current rebellion sheet."""
    bonuses = compute_all_bonuses(faction)
    print(f"\n{'═'*60}")
    print(f"  SILVER RAVENS — WEEK {faction.week}")
    print(f"{'═'*60}")
    print(f"  Rank: {faction.rank}/{faction.max_rank}   Focus: {faction.focus}")
    print(f"  Supporters: {faction.supporters}   Population: {faction.population}")
    print(f"  Notoriety: {faction.notoriety}   Treasury: {faction.treasury:g} gp")
    print(f"  Danger: {faction.danger} (effective {bonuses['effective_danger']['total']})")
    print(f"{'─'*60}")

    for check in CHECKS:
        print(f"  {check.capitalize():<9} {bonuses[check]['total']:+d}")
    print(f"  Actions: {faction.actions_used_this_week}/{bonuses['max_actions']}   "
          f"Event chance: {bonuses['event_chance']['chance']}%")

    print(f"\n  TEAMS ({len(faction.teams)}):")
    for i, team in enumerate(faction.teams):
        state = "disabled" if team.disabled else "missing" if team.missing else "ready"
        print(f"  {i}. {team.label or get_team_definition(team.type)['label']} [{state}]")

    if faction.allies:
        print(f"\n  ALLIES:")
        for ally in faction.allies:
            state = "active" if ally.is_active() else "unavailable"
            print(f"  - {ALLIES.get(ally.slug, {}).get('name', ally.slug)} [{state}]")

    live = [e for e in faction.events if e.is_live(faction.week)]
    if live:
        print(f"\n  EVENTS:")
        for event in live:
            tag = " (persistent)" if event.is_persistent else ""
            print(f"  - {event.name}{tag}")

    print(f"\n{'═'*60}")


def main():
    parser = argparse.ArgumentParser(description="Silver Ravens rebellion engine")
    parser.add_argument("--config", default=None, help="JSON config file")
    parser.add_argument("--week", type=int, default=1, metavar="N",
                        help="weeks to run; stops at a pending event choice")
    parser.add_argument("--status", action="store_true", help="show the sheet and exit")
    parser.add_argument("--report", action="store_true", help="print the journal and exit")
    parser.add_argument("--save", action="store_true", help="save after running")
    args = parser.parse_args()

    config = load_config(args.config)
    configure_logging(config.log_level)
    game = RebellionLoop(config)
    game.init(config.data_dir)

    if args.status:
        show_status(game.faction)
        return
    if args.report:
        print(game.report())
        return

    for _ in range(args.week):
        print(f"\n{'═'*60}")
        print(f"  WEEK {game.faction.week}")
        print(f"{'═'*60}")
        for result in game.run_week():
            if result.get("success"):
                print(f"  {result.get('step', 'event'):<18} {result.get('summary', '')}")
            else:
                print(f"  ✖ {result.get('error')}")
                return

    show_status(game.faction)

    if args.save:
        result = game.save_game()
        print(f"  State saved to {result.get('filename', result.get('error'))}")


if __name__ == "__main__":
    main()
