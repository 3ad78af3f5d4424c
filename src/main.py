# Command line entry point for the court rotation

import argparse
import logging
import os
import sys

from rotation.engine import GameManager
from rotation.errors import NotFoundError, RotationError
from rotation.models import skill_level_name
from rotation.settings import load_settings
from rotation.storage import YamlStateStore


def default_data_dir():
    script_dir = os.path.dirname(__file__)
    base_dir = os.path.dirname(script_dir)
    return os.environ.get('ROTATION_DATA_DIR', os.path.join(base_dir, 'data'))


def build_manager(args):
    data_dir = args.data_dir or default_data_dir()
    settings_file = args.settings or os.path.join(data_dir, 'settings.yaml')
    state_file = args.state or os.path.join(data_dir, 'state.yaml')
    return GameManager(storage=YamlStateStore(state_file), settings=load_settings(settings_file))


def find_player(manager, name_or_id):
    if name_or_id in manager.players:
        return manager.players[name_or_id]
    for player in manager.players.values():
        if player.name.lower() == name_or_id.lower():
            return player
    raise NotFoundError(f"Player {name_or_id} not found")


def print_players(manager):
    players = manager.get_available_players()
    if not players:
        print("No players.")
        return
    for player in sorted(players, key=lambda p: p.name):
        print(f"{player.name:<24} L{player.skill_level} {skill_level_name(player.skill_level):<13} "
              f"{player.games_played} games  {manager.describe_player_status(player.id)}")


def print_courts(manager):
    now = manager.now()
    for court in manager.courts.values():
        line = f"{court.id}: {court.status.value}"
        elapsed = court.elapsed_time(now)
        if elapsed:
            line += f" ({elapsed[0]}m {elapsed[1]:02d}s)"
        print(line)
        if court.players:
            team_a, team_b = court.teams()
            print(f"  {' & '.join(p.name for p in team_a)} vs {' & '.join(p.name for p in team_b)}")
        for index, group in enumerate(court.queued_groups()):
            print(f"  queue #{index + 1}: {', '.join(p.name for p in group)}")


def cmd_import(manager, args):
    with open(args.file, mode='r', encoding='utf-8') as file:
        count = manager.import_players(file.read())
    print(f"Added {count} new players")


def cmd_add(manager, args):
    player = manager.add_player(args.name, args.level)
    print(f"Added {player.name} ({player.id})")


def cmd_list(manager, args):
    print_players(manager)


def cmd_courts(manager, args):
    print_courts(manager)


def cmd_assign(manager, args):
    for name in args.players:
        manager.assign_player_to_court(find_player(manager, name).id, args.court)
    print_courts(manager)


def cmd_start(manager, args):
    manager.start_game(args.court)
    print_courts(manager)


def cmd_complete(manager, args):
    record = manager.complete_game(args.court)
    print(f"Recorded game {record.id}")
    print_courts(manager)


def cmd_queue(manager, args):
    player_ids = [find_player(manager, name).id for name in args.players]
    added = manager.add_to_queue(args.court, player_ids)
    print(f"Queued {len(added)} players on {args.court}")


def cmd_magic(manager, args):
    teams = manager.handle_magic_queue(args.court) if args.court else manager.magic_queue()
    if teams is not None:
        print(f"{' & '.join(p.name for p in teams.team_a)} vs {' & '.join(p.name for p in teams.team_b)}")
    print_courts(manager)


def cmd_level(manager, args):
    player = manager.adjust_player_level(find_player(manager, args.player).id, args.level)
    print(f"{player.name}'s level updated to {skill_level_name(player.skill_level)} ({player.skill_level})")


def cmd_reset(manager, args):
    manager.reset()
    print("All data has been reset")


def build_parser():
    parser = argparse.ArgumentParser(description='Doubles court rotation')
    parser.add_argument('--data-dir', help='Directory holding settings.yaml and state.yaml')
    parser.add_argument('--settings', help='Settings YAML file')
    parser.add_argument('--state', help='State YAML file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Show engine debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('import', help='Import player names, one per line')
    p.add_argument('file')
    p.set_defaults(func=cmd_import)

    p = sub.add_parser('add', help='Add one player')
    p.add_argument('name')
    p.add_argument('--level', type=int, default=1)
    p.set_defaults(func=cmd_add)

    sub.add_parser('list', help='List players').set_defaults(func=cmd_list)
    sub.add_parser('courts', help='Show courts').set_defaults(func=cmd_courts)

    p = sub.add_parser('assign', help='Assign players to a court')
    p.add_argument('court')
    p.add_argument('players', nargs='+')
    p.set_defaults(func=cmd_assign)

    p = sub.add_parser('start', help='Start the game on a ready court')
    p.add_argument('court')
    p.set_defaults(func=cmd_start)

    p = sub.add_parser('complete', help='Complete the game on a court')
    p.add_argument('court')
    p.set_defaults(func=cmd_complete)

    p = sub.add_parser('queue', help='Queue players on a court')
    p.add_argument('court')
    p.add_argument('players', nargs='+')
    p.set_defaults(func=cmd_queue)

    p = sub.add_parser('magic', help='Pick the next game automatically')
    p.add_argument('court', nargs='?', help='Court id (default: first empty court)')
    p.set_defaults(func=cmd_magic)

    p = sub.add_parser('level', help='Set a player skill level (1-10)')
    p.add_argument('player')
    p.add_argument('level', type=int)
    p.set_defaults(func=cmd_level)

    sub.add_parser('reset', help='Remove all players, courts and history').set_defaults(func=cmd_reset)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')
    manager = build_manager(args)
    try:
        args.func(manager, args)
    except (RotationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
