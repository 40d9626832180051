"""recolor: replace colours in raster images within an RGB tolerance.

Usage: recolor <command> <image> [options]

Commands live in recolor/commands/.
Each command module's docstring is its documentation.
Run `recolor help <command>` for full module docs.

Environment variables / .env loading:
  OS environment variables are always used first.
  If a variable is not set, recolor looks for a .env file starting from
  the current directory and walking up, stopping at the nearest .git boundary.
  Use --env-file to override the .env location explicitly.
"""

import argparse
import logging
import os
import sys
from typing import NoReturn

from recolor import commands as command_set
from recolor.core.engine import BitmapError
from recolor.core.env import Settings, load_env
from recolor.core.imageio import ImageLoadError, load_bitmap
from recolor.core.report import format_json, format_text
from recolor.core.rules_parser import RuleSyntaxError, build_rules
from recolor.core.types import Report


def _short_doc(name: str, fallback: str) -> str:
    doc = command_set.docs(name)
    return doc.splitlines()[0] if doc else fallback


def _build_parser() -> argparse.ArgumentParser:
    commands = command_set.all_commands()

    epilog = (
        'Examples:\n'
        "  recolor apply photo.png -o out.png -r '#ff0000:#00ff00:30'\n"
        "  recolor apply logo.jpg -o logo.png -r 'ffffff:transparent:12'\n"
        '  recolor check photo.png -f rules.json --json\n'
        '  recolor pick photo.png --at 10,20\n'
        '  recolor watch photo.png -f rules.json -o preview.png\n'
        '  recolor help apply\n'
        '\n'
        'Settings (set in .env or environment):\n'
        '  RECOLOR_CHUNK_SIZE   pixels per incremental slice (default 10000)\n'
        '  RECOLOR_DEBOUNCE_MS  watch debounce in ms (default 300)\n'
        '  RECOLOR_TOLERANCE    default rule tolerance (default 30)\n'
        '  RECOLOR_OUTPUT       default output path\n'
    )
    parser = argparse.ArgumentParser(
        prog='recolor',
        description='Replace colours in raster images within an RGB tolerance.',
        epilog=epilog,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        '--env-file',
        metavar='PATH',
        default=None,
        help='Path to .env file (default: walk up from cwd to .git boundary)',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging to stderr')
    sub = parser.add_subparsers(dest='command', help='Command to run')

    # Auto-register each command as a subcommand using module docstring
    for name, cmd in sorted(commands.items()):
        p = sub.add_parser(name, help=_short_doc(name, cmd.help))
        p.add_argument('image', help='Path to input image')
        p.add_argument(
            '-r',
            '--rule',
            action='append',
            default=[],
            metavar='FROM:TO[:TOL]',
            help="Colour rule, repeatable. TO may be 'transparent'.",
        )
        p.add_argument('-f', '--rules-file', metavar='PATH', help='JSON rule preset (applied before -r rules)')
        p.add_argument('-j', '--json', action='store_true', help='Output JSON instead of text')
        p.add_argument(
            '--chunk-size',
            type=int,
            default=None,
            metavar='N',
            help='Pixels per slice (default: $RECOLOR_CHUNK_SIZE or 10000)',
        )
        if cmd.configure is not None:
            cmd.configure(p)

    help_parser = sub.add_parser('help', help='Print full docs for a command')
    help_parser.add_argument('topic', nargs='?', help='Command name')

    return parser


def _print_help(topic: str | None) -> None:
    """Print full module docstring for a command."""
    commands = command_set.all_commands()

    if topic is None:
        print('Available commands:\n')
        for name, cmd in sorted(commands.items()):
            print(f'  {name:<8} {_short_doc(name, cmd.help)}')
        print('\nRun: recolor help <command> for full docs.')
        return

    if topic not in commands:
        print(f'Unknown command: {topic}', file=sys.stderr)
        print(f'Available: {", ".join(sorted(commands))}', file=sys.stderr)
        sys.exit(1)

    doc = command_set.docs(topic)
    print(doc if doc else f'(No module docs for {topic!r})')


def _fail(message: str) -> NoReturn:
    print(f'recolor: {message}', file=sys.stderr)
    sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    # Load .env before anything else; OS env vars always win
    env_path = load_env(env_file=args.env_file)
    if env_path:
        print(f'recolor: loaded {env_path}', file=sys.stderr)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == 'help':
        _print_help(args.topic)
        return

    try:
        settings = Settings.from_env()
    except ValueError as exc:
        _fail(str(exc))
    args.settings = settings
    if args.chunk_size is None:
        args.chunk_size = settings.chunk_size
    elif args.chunk_size <= 0:
        _fail(f'--chunk-size must be positive, got {args.chunk_size}')

    if not os.path.isfile(args.image):
        _fail(f'image not found: {args.image}')

    try:
        bitmap = load_bitmap(args.image)
    except ImageLoadError as exc:
        _fail(f'no image loaded: {exc}')

    try:
        rules = build_rules(args.rule, args.rules_file, settings.tolerance)
    except (OSError, RuleSyntaxError) as exc:
        _fail(str(exc))

    report = Report(
        image_path=args.image,
        image_width=bitmap.width,
        image_height=bitmap.height,
        command=args.command,
    )

    cmd = command_set.get(args.command)
    try:
        cmd.execute(bitmap, rules, report, args)
    except (BitmapError, IndexError, OSError) as exc:
        _fail(f'{args.command}: {exc}')

    if args.json:
        print(format_json(report))
    else:
        print(format_text(report))


if __name__ == '__main__':
    main()
