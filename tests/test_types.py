"""Tests for core types: tiles, boards and level specs."""

from dataclasses import replace

import pytest

from zzle_synth.core.types import (
    Board,
    Color,
    Direction,
    LevelSpec,
    LevelValidationError,
    make_tile,
    tile_color,
    tile_has_star,
    is_walkable,
    validate_level,
)


def make_level_data(**overrides):
    """A small valid level in the JSON level format."""
    data = {
        "board": [
            [1, 1, 1],
            [1, 2, 5],
            [0, 1, 1],
        ],
        "player": {"x": 0, "y": 0, "direction": 2},
        "stars": 1,
        "activeInstructions": ["FW", "TL", "TR", "F0"],
        "functions": [{"length": 4}, {"length": 2}],
    }
    data.update(overrides)
    return data


class TestDirection:
    """Tests for robot headings."""

    def test_turn_left_cycles(self):
        """Four left turns return to the start, going LEFT -> DOWN."""
        assert Direction.LEFT.turn_left() == Direction.DOWN
        assert Direction.UP.turn_left() == Direction.LEFT
        d = Direction.RIGHT
        for _ in range(4):
            d = d.turn_left()
        assert d == Direction.RIGHT

    def test_turn_right(self):
        assert Direction.LEFT.turn_right() == Direction.UP
        assert Direction.DOWN.turn_right() == Direction.LEFT

    def test_deltas(self):
        """Up decreases the row, right increases the column."""
        assert Direction.UP.delta == (0, -1)
        assert Direction.RIGHT.delta == (1, 0)
        assert Direction.DOWN.delta == (0, 1)
        assert Direction.LEFT.delta == (-1, 0)


class TestTiles:
    """Tests for tile encoding."""

    def test_make_tile(self):
        assert make_tile(Color.GREEN) == 2
        assert make_tile(Color.BLUE, star=True) == 7

    def test_void_star_rejected(self):
        with pytest.raises(ValueError):
            make_tile(Color.NONE, star=True)

    def test_color_and_star(self):
        assert tile_color(5) == 1
        assert tile_has_star(5)
        assert not tile_has_star(3)

    def test_walkable(self):
        assert not is_walkable(0)
        assert is_walkable(1)
        assert is_walkable(6)


class TestBoard:
    """Tests for the numpy-backed board."""

    def test_from_list(self):
        board = Board.from_list([[1, 0], [5, 2]])
        assert board.shape == (2, 2)
        assert board.is_square
        assert board.tile(0, 1) == 5
        assert board.star_count == 1

    def test_colors(self):
        board = Board.from_list([[1, 0], [7, 2]])
        assert board.colors == frozenset({1, 2, 3})

    def test_cells_row_major(self):
        board = Board.from_list([[1, 2], [3, 5]])
        assert board.cells() == (1, 2, 3, 5)
        assert Board.from_cells(board.cells(), 2) == board

    def test_in_bounds(self):
        board = Board.zeros(3, 3)
        assert board.in_bounds(2, 2)
        assert not board.in_bounds(3, 0)
        assert not board.in_bounds(0, -1)

    def test_copy_is_independent(self):
        board = Board.from_list([[1, 1], [1, 1]])
        copy = board.copy()
        copy[0, 0] = 3
        assert board.tile(0, 0) == 1

    def test_not_2d(self):
        with pytest.raises(ValueError):
            Board([1, 2, 3])


class TestLevelSpec:
    """Tests for loading and saving levels."""

    def test_from_dict(self):
        level = LevelSpec.from_dict("demo", make_level_data())
        assert level.level_id == "demo"
        assert level.start_position == (0, 0)
        assert level.start_direction == Direction.RIGHT
        assert level.star_count == 1
        assert level.function_budgets == (4, 2)
        assert level.total_budget == 6
        assert level.num_functions == 2
        assert "FW" in level.allowed_instructions

    def test_default_functions(self):
        """A level without functions gets one slot of 12."""
        data = make_level_data()
        del data["functions"]
        level = LevelSpec.from_dict("demo", data)
        assert level.function_budgets == (12,)

    def test_stars_default_to_board(self):
        data = make_level_data()
        del data["stars"]
        assert LevelSpec.from_dict("demo", data).star_count == 1

    def test_round_trip_dict(self):
        data = make_level_data()
        level = LevelSpec.from_dict("demo", data)
        again = LevelSpec.from_dict("demo", level.to_dict())
        assert again == level

    def test_missing_player(self):
        data = make_level_data()
        del data["player"]
        with pytest.raises(LevelValidationError):
            LevelSpec.from_dict("broken", data)

    def test_bad_direction(self):
        data = make_level_data(player={"x": 0, "y": 0, "direction": 7})
        with pytest.raises(LevelValidationError) as exc_info:
            LevelSpec.from_dict("broken", data)
        assert exc_info.value.errors[0]["loc"] == ["player", "direction"]

    @pytest.mark.parametrize("overrides", [
        {"functions": [{}]},
        {"functions": ["x"]},
        {"functions": [{"length": "many"}]},
        {"stars": "x"},
        {"activeInstructions": 3},
    ])
    def test_malformed_fields(self, overrides):
        with pytest.raises(LevelValidationError) as exc_info:
            LevelSpec.from_dict("broken", make_level_data(**overrides))
        assert exc_info.value.errors[0]["type"] == "parse_error"

    def test_not_an_object(self):
        with pytest.raises(LevelValidationError):
            LevelSpec.from_dict("broken", [[1, 5]])


class TestValidateLevel:
    """Tests for level precondition checks."""

    def _errors(self, data):
        level = LevelSpec.from_dict("bad", data)
        with pytest.raises(LevelValidationError) as exc_info:
            validate_level(level)
        return exc_info.value.errors

    def test_valid_level_passes(self):
        level = LevelSpec.from_dict("ok", make_level_data())
        assert validate_level(level) is level

    def test_non_square_board(self):
        errors = self._errors(make_level_data(board=[[1, 5, 1]], stars=1))
        assert any("square" in e["msg"] for e in errors)

    def test_tile_out_of_range(self):
        errors = self._errors(make_level_data(board=[[1, 9], [5, 1]]))
        assert any(e["loc"] == ["board"] for e in errors)

    def test_star_on_void(self):
        errors = self._errors(make_level_data(board=[[1, 4], [5, 1]], stars=1))
        assert any("void" in e["msg"] for e in errors)

    def test_start_out_of_bounds(self):
        errors = self._errors(make_level_data(player={"x": 5, "y": 0, "direction": 0}))
        assert any(e["loc"] == ["start_position"] for e in errors)

    def test_start_on_void(self):
        errors = self._errors(make_level_data(player={"x": 0, "y": 2, "direction": 0}))
        assert any("void" in e["msg"] for e in errors)

    def test_too_many_functions(self):
        errors = self._errors(make_level_data(functions=[{"length": 1}] * 4))
        assert any(e["loc"] == ["function_budgets"] for e in errors)

    def test_negative_budget(self):
        errors = self._errors(make_level_data(functions=[{"length": -1}]))
        assert any(e["loc"] == ["function_budgets", 0] for e in errors)

    def test_star_count_mismatch(self):
        errors = self._errors(make_level_data(stars=3))
        assert any(e["loc"] == ["star_count"] for e in errors)

    def test_unknown_instruction(self):
        errors = self._errors(make_level_data(activeInstructions=["FW", "JUMP"]))
        assert any("JUMP" in e["msg"] for e in errors)

    def test_collects_every_error(self):
        errors = self._errors(make_level_data(stars=3, activeInstructions=["XX"]))
        assert len(errors) == 2

    def test_direction_out_of_range(self):
        level = replace(LevelSpec.from_dict("bad", make_level_data()), start_direction=7)
        with pytest.raises(LevelValidationError) as exc_info:
            validate_level(level)
        assert [e["loc"] for e in exc_info.value.errors] == [["start_direction"]]
