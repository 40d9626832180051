"""Print the colour under a pixel coordinate, as hex and RGBA.

Handy for finding the FROM colour of a rule. Coordinates are zero-based,
x to the right and y down.

Example:
    recolor pick photo.png --at 10,20
"""

import argparse

from recolor.core.colour import rgb_to_hex
from recolor.core.imageio import BitmapPicker
from recolor.core.types import Bitmap, ColorPicker, Command, Report, RuleList


def _coordinate(text: str) -> tuple[int, int]:
    try:
        x, y = (int(v) for v in text.split(','))
    except ValueError:
        raise argparse.ArgumentTypeError(f'expected X,Y, got {text!r}') from None
    return x, y


def _configure(p) -> None:
    p.add_argument('--at', type=_coordinate, required=True, metavar='X,Y', help='Pixel coordinate')


command = Command(
    name='pick',
    help='Print the colour under a pixel coordinate.',
    configure=_configure,
)


def pick(picker: ColorPicker, x: int, y: int) -> str:
    return rgb_to_hex(*picker.pick_color_at(x, y))


@command.run
def run(bitmap: Bitmap, rules: RuleList, report: Report, args) -> None:
    x, y = args.at
    report.add('at', [x, y])
    report.add('hex', pick(BitmapPicker(bitmap), x, y))
    report.add('rgba', list(bitmap.pixel(x, y)))
