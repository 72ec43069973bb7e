#!/usr/bin/env python3
"""
sabo/cli.py - Command line interface for SABO Arena

Usage:
    sabo arena [--host HOST] [--port PORT] [--db PATH]
    sabo ranks
    sabo rewards <rank>
    sabo prizes --tier G --fee 200000 --players 32 [--format 9_ball]
    sabo elo <player_elo> <opponent_elo> --result win|draw|loss
    sabo steps
    sabo wizard open | show <sid> | complete <sid> <step> [--results JSON] | goto <sid> <step> | reset <sid>
"""

import argparse
import logging
import sys

from sabo.config import load_config, resolve_db_path

logger = logging.getLogger(__name__)

RESULTS = {"win": 1.0, "draw": 0.5, "loss": 0.0}


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_arena(args):
    """Start the arena server."""
    try:
        import uvicorn
    except ImportError:
        logger.error("Arena requires extra dependencies: pip install sabo-arena[arena]")
        return 1

    from arena.server import app

    config = load_config()

    # Set DB path + gating policy on app state so lifespan picks them up
    app.state.db_path = args.db or resolve_db_path(config)
    app.state.workflow_config = config.workflow
    host = args.host or config.arena.host
    port = args.port or config.arena.port

    logger.info(f"Starting arena server on {host}:{port} (db: {app.state.db_path})")
    uvicorn.run(app, host=host, port=port, log_level="info")
    return 0


def cmd_ranks(args):
    """Print the rank table."""
    from sabo.ranks import FIXED_K_FACTOR, RANK_ELO, RANK_ORDER

    print(f"\n🎱 Ranks (K-factor {FIXED_K_FACTOR})\n")
    for rank in RANK_ORDER:
        print(f"   {rank:<3} {RANK_ELO[rank]:>5}+")
    print()
    return 0


def cmd_rewards(args):
    """Print ELO/SPA for every tournament finish at a given rank."""
    from sabo.ranking import format_position, tournament_rewards
    from sabo.ranks import TOURNAMENT_POSITIONS, parse_rank

    try:
        rank = parse_rank(args.rank)
    except ValueError as e:
        logger.error(str(e))
        return 1

    print(f"\n🏆 Tournament rewards for rank {rank}\n")
    print(f"   {'Finish':<15} {'ELO':>5} {'SPA':>6}")
    for position in TOURNAMENT_POSITIONS:
        reward = tournament_rewards(position, rank)
        print(f"   {format_position(position):<15} {reward.elo_points:>5} {reward.spa_points:>6}")
    print()
    return 0


def cmd_prizes(args):
    """Print the default prize structure for a tournament."""
    from sabo.rewards import GameFormat, TournamentTier, calculate_rewards, validate_rewards

    try:
        tier = TournamentTier[args.tier.upper()]
        game_format = GameFormat(args.format)
    except (KeyError, ValueError):
        logger.error(f"Unknown tier or format: {args.tier} / {args.format}")
        return 1

    rewards = calculate_rewards(tier, args.fee, args.players, game_format)

    print(f"\n💰 Tier {tier.name}, {args.players} players, fee {args.fee:,} ({game_format.value})")
    print(f"   Prize pool: {rewards.total_prize:,}\n")
    print(f"   {'Place':<14} {'Cash':>12} {'ELO':>5} {'SPA':>6}")
    for pos in rewards.positions:
        print(f"   {pos.name:<14} {pos.cash_prize:>12,} {pos.elo_points:>5} {pos.spa_points:>6}")
    for award in rewards.special_awards:
        print(f"   ★ {award.name}: {award.cash_prize:,}")

    report = validate_rewards(rewards, args.players)
    for warning in report.warnings:
        logger.warning(warning)
    for error in report.errors:
        logger.error(error)
    print()
    return 0 if report.is_valid else 1


def cmd_elo(args):
    """Print the ELO change for a single match."""
    from sabo.ranking import calculate_match_elo, rank_by_elo

    new_elo = calculate_match_elo(args.player_elo, args.opponent_elo, RESULTS[args.result])
    change = new_elo - args.player_elo
    print(
        f"{args.player_elo} ({rank_by_elo(args.player_elo)}) -> {new_elo} "
        f"({rank_by_elo(new_elo)}), {change:+d}"
    )
    return 0


def cmd_steps(args):
    """List the tournament setup wizard steps."""
    from tournaments.workflow import step_catalog

    print("\n🧭 Tournament setup steps\n")
    for step in step_catalog():
        deps = ", ".join(str(d) for d in step["depends_on"]) or "-"
        print(f"   {step['step']}. {step['title']:<46} needs: {deps}")
    print()
    return 0


def cmd_wizard(args):
    """Drive a setup wizard session on a running arena server."""
    import json
    import urllib.error
    import urllib.request

    server = (args.server or load_config().arena.server).rstrip("/")

    # --- Helper: HTTP calls via stdlib ---
    def _call(method: str, path: str, body: dict | None = None) -> dict:
        data = json.dumps(body).encode() if body is not None else None
        req = urllib.request.Request(
            f"{server}{path}",
            data=data,
            headers={"Content-Type": "application/json"},
            method=method,
        )
        with urllib.request.urlopen(req) as resp:
            return json.loads(resp.read())

    sid = getattr(args, "session_id", None)
    results = None
    if getattr(args, "results", None):
        try:
            results = json.loads(args.results)
        except json.JSONDecodeError as e:
            logger.error(f"--results must be JSON: {e}")
            return 1

    try:
        if args.action == "open":
            state = _call("POST", "/workflows")
        elif args.action == "show":
            state = _call("GET", f"/workflows/{sid}")
        elif args.action == "complete":
            state = _call(
                "POST", f"/workflows/{sid}/steps/{args.step}/complete", {"results": results}
            )["state"]
        elif args.action == "goto":
            reply = _call("POST", f"/workflows/{sid}/goto", {"step": args.step})
            if not reply["moved"]:
                logger.warning(f"Step {args.step} is locked")
            state = reply["state"]
        else:
            state = _call("POST", f"/workflows/{sid}/reset")
    except urllib.error.HTTPError as e:
        try:
            detail = json.loads(e.read()).get("detail", e.reason)
        except ValueError:
            detail = e.reason
        if isinstance(detail, dict):
            detail = f"{detail['message']} (missing: {', '.join(map(str, detail['missing']))})"
        logger.error(f"Arena refused {args.action}: {detail}")
        return 1
    except urllib.error.URLError as e:
        logger.error(f"Cannot reach arena server at {server}: {e}")
        return 1

    _print_wizard(state)
    return 0


def _print_wizard(state: dict) -> None:
    from tournaments.workflow import step_catalog

    done = set(state["completed_steps"])
    print(f"\n🧭 Wizard {state['session_id']} [{state['workflow_status']}]")
    if state["selected_tournament"]:
        print(f"   Tournament: {state['selected_tournament']}")
    print()
    for step in step_catalog():
        mark = "✓" if step["step"] in done else " "
        pointer = "→" if step["step"] == state["current_step"] else " "
        print(f"  {pointer}[{mark}] {step['step']}. {step['title']}")
    print()


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="sabo",
        description="SABO Arena pool club and tournament tools",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # arena command
    arena_parser = subparsers.add_parser("arena", help="Start the arena server")
    arena_parser.add_argument("--host", default=None, help="Bind address (default: from config, 0.0.0.0)")
    arena_parser.add_argument("--port", "-p", type=int, default=None, help="Server port (default: from config, 8000)")
    arena_parser.add_argument("--db", default=None, help="SQLite database path (default: $SABO_DB or config)")
    arena_parser.set_defaults(func=cmd_arena)

    # ranks command
    ranks_parser = subparsers.add_parser("ranks", help="Show the rank table")
    ranks_parser.set_defaults(func=cmd_ranks)

    # rewards command
    rewards_parser = subparsers.add_parser("rewards", help="Show tournament ELO/SPA for a rank")
    rewards_parser.add_argument("rank", help="Rank code (e.g. G+)")
    rewards_parser.set_defaults(func=cmd_rewards)

    # prizes command
    prizes_parser = subparsers.add_parser("prizes", help="Show a tournament's prize structure")
    prizes_parser.add_argument("--tier", "-t", required=True, help="Tournament tier: K, I, H or G")
    prizes_parser.add_argument("--fee", "-f", type=int, required=True, help="Entry fee")
    prizes_parser.add_argument("--players", "-n", type=int, required=True, help="Max participants")
    prizes_parser.add_argument("--format", default="9_ball", help="Game format (default: 9_ball)")
    prizes_parser.set_defaults(func=cmd_prizes)

    # elo command
    elo_parser = subparsers.add_parser("elo", help="ELO after one match")
    elo_parser.add_argument("player_elo", type=int, help="Player ELO before the match")
    elo_parser.add_argument("opponent_elo", type=int, help="Opponent ELO")
    elo_parser.add_argument("--result", "-r", choices=sorted(RESULTS), required=True, help="Match result")
    elo_parser.set_defaults(func=cmd_elo)

    # steps command
    steps_parser = subparsers.add_parser("steps", help="List tournament setup wizard steps")
    steps_parser.set_defaults(func=cmd_steps)

    # wizard command
    wizard_parser = subparsers.add_parser("wizard", help="Drive a setup wizard on a running arena")
    wizard_parser.add_argument("--server", default=None, help="Arena URL (default: from config)")
    wizard_actions = wizard_parser.add_subparsers(dest="action", required=True)
    wizard_actions.add_parser("open", help="Open a new wizard session")
    for action in ("show", "reset"):
        action_parser = wizard_actions.add_parser(action, help=f"{action.capitalize()} a session")
        action_parser.add_argument("session_id")
    complete_parser = wizard_actions.add_parser("complete", help="Record a step's results")
    complete_parser.add_argument("session_id")
    complete_parser.add_argument("step", type=int)
    complete_parser.add_argument("--results", default=None, help="Step results as JSON")
    goto_parser = wizard_actions.add_parser("goto", help="Jump to an unlocked step")
    goto_parser.add_argument("session_id")
    goto_parser.add_argument("step", type=int)
    wizard_parser.set_defaults(func=cmd_wizard)

    args = parser.parse_args(argv)
    _setup_logging("DEBUG" if args.verbose else load_config().log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
