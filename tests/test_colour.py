"""Tests for recolor.core.colour: hex parsing, distance, rule validity."""

import math

from recolor.core.colour import MAX_DISTANCE, is_valid_rule, parse_color, rgb_distance, rgb_to_hex
from recolor.core.types import ColorRule


class TestParseColor:
    def test_with_hash(self):
        assert parse_color('#2563eb') == (37, 99, 235)

    def test_without_hash(self):
        assert parse_color('ff0000') == (255, 0, 0)

    def test_uppercase(self):
        assert parse_color('#FFFFFF') == (255, 255, 255)

    def test_mixed_case(self):
        assert parse_color('#aBcDeF') == (0xAB, 0xCD, 0xEF)

    def test_short_hex_rejected(self):
        assert parse_color('#fff') is None

    def test_eight_digits_rejected(self):
        assert parse_color('#ffffffff') is None

    def test_named_colour_rejected(self):
        assert parse_color('red') is None

    def test_partial_rejected(self):
        assert parse_color('#ff00zz') is None
        assert parse_color('##ff0000') is None

    def test_whitespace_rejected(self):
        assert parse_color(' #ff0000') is None

    def test_non_string(self):
        assert parse_color(None) is None
        assert parse_color(0xFF0000) is None


class TestRgbDistance:
    def test_same_colour(self):
        assert rgb_distance((12, 34, 56), (12, 34, 56)) == 0.0

    def test_black_white(self):
        assert math.isclose(rgb_distance((0, 0, 0), (255, 255, 255)), MAX_DISTANCE)
        assert 441.6 < MAX_DISTANCE < 441.7

    def test_pythagorean(self):
        assert rgb_distance((0, 0, 0), (3, 4, 0)) == 5.0

    def test_symmetry(self):
        a = (100, 50, 200)
        b = (120, 60, 180)
        assert rgb_distance(a, b) == rgb_distance(b, a)

    def test_ignores_alpha(self):
        assert rgb_distance((1, 2, 3, 0), (1, 2, 3, 255)) == 0.0

    def test_no_uint8_wraparound(self):
        import numpy as np

        a = tuple(np.array([0, 0, 0], dtype=np.uint8))
        b = tuple(np.array([200, 200, 200], dtype=np.uint8))
        assert rgb_distance(a, b) > 300


class TestRgbToHex:
    def test_lowercase_padded(self):
        assert rgb_to_hex(0, 10, 255) == '#000aff'


class TestIsValidRule:
    def test_valid_replacement(self):
        assert is_valid_rule(ColorRule('#ff0000', '#00ff00', 10))

    def test_bad_source(self):
        assert not is_valid_rule(ColorRule('notacolor', '#00ff00', 10))

    def test_bad_target(self):
        assert not is_valid_rule(ColorRule('#ff0000', '#0f0', 10))

    def test_transparent_ignores_target(self):
        assert is_valid_rule(ColorRule('#ff0000', 'whatever', 10, make_transparent=True))

    def test_transparent_still_needs_source(self):
        assert not is_valid_rule(ColorRule('', '', 10, make_transparent=True))
