"""
Win pattern catalogue and matcher.

Symbolic presets (any line, postage stamp) accept several alternative cell
sets; every other pattern requires exactly the cells flagged in its grid.
Matching is a subset check: extra marks never invalidate a win.
"""

from collections.abc import Iterable, Sequence

from bingo.logic.enums import PatternType
from bingo.logic.settings import GRID_SIZE
from bingo.logic.types import FREE, Card, Grid, Pattern

Cell = tuple[int, int]
CellSet = tuple[Cell, ...]


def grid_from_cells(cells: Iterable[Cell]) -> Grid:
    """Build a boolean grid with the given (row, col) cells set."""
    wanted = set(cells)
    return tuple(tuple((row, col) in wanted for col in range(GRID_SIZE)) for row in range(GRID_SIZE))


def cells_from_grid(grid: Grid) -> CellSet:
    return tuple((row, col) for row in range(GRID_SIZE) for col in range(GRID_SIZE) if grid[row][col])


_ROWS: tuple[CellSet, ...] = tuple(tuple((row, col) for col in range(GRID_SIZE)) for row in range(GRID_SIZE))
_COLUMNS: tuple[CellSet, ...] = tuple(tuple((row, col) for row in range(GRID_SIZE)) for col in range(GRID_SIZE))
_DIAGONAL_TL_BR: CellSet = tuple((i, i) for i in range(GRID_SIZE))
_DIAGONAL_TR_BL: CellSet = tuple((i, GRID_SIZE - 1 - i) for i in range(GRID_SIZE))
_STAMP_ANCHORS: tuple[Cell, ...] = ((0, 0), (0, 3), (3, 0), (3, 3))
_STAMPS: tuple[CellSet, ...] = tuple(
    ((r, c), (r, c + 1), (r + 1, c), (r + 1, c + 1)) for r, c in _STAMP_ANCHORS
)

# Alternatives in tie-break order: rows, columns, TL-BR diagonal, TR-BL diagonal, corners.
_SYMBOLIC_ALTERNATIVES: dict[str, tuple[CellSet, ...]] = {
    "horizontal-line": _ROWS,
    "vertical-line": _COLUMNS,
    "diagonal": (_DIAGONAL_TL_BR, _DIAGONAL_TR_BL),
    "any-line": (*_ROWS, *_COLUMNS, _DIAGONAL_TL_BR, _DIAGONAL_TR_BL),
    "postage-stamp": _STAMPS,
}

SYMBOLIC_PATTERN_IDS = frozenset(_SYMBOLIC_ALTERNATIVES)

_FULL_GRID = grid_from_cells((row, col) for row in range(GRID_SIZE) for col in range(GRID_SIZE))
_EMPTY_GRID = grid_from_cells(())


def _preset(pattern_id: str, name: str, name_es: str, grid: Grid, description: str, description_es: str) -> Pattern:
    return Pattern(
        id=pattern_id,
        name=name,
        name_es=name_es,
        type=PatternType.PRESET,
        grid=grid,
        description=description,
        description_es=description_es,
    )


PRESET_PATTERNS: tuple[Pattern, ...] = (
    _preset(
        "horizontal-line",
        "Horizontal Line",
        "Línea Horizontal",
        grid_from_cells(_ROWS[0]),
        "Complete any horizontal row",
        "Completa cualquier fila horizontal",
    ),
    _preset(
        "vertical-line",
        "Vertical Line",
        "Línea Vertical",
        grid_from_cells(_COLUMNS[0]),
        "Complete any vertical column",
        "Completa cualquier columna vertical",
    ),
    _preset(
        "diagonal",
        "Diagonal Line",
        "Línea Diagonal",
        grid_from_cells(_DIAGONAL_TL_BR),
        "Complete either diagonal",
        "Completa cualquier diagonal",
    ),
    _preset(
        "any-line",
        "Any Line",
        "Cualquier Línea",
        grid_from_cells(_ROWS[0]),
        "Complete any horizontal, vertical, or diagonal line",
        "Completa cualquier línea horizontal, vertical o diagonal",
    ),
    _preset(
        "four-corners",
        "Four Corners",
        "Cuatro Esquinas",
        grid_from_cells([(0, 0), (0, 4), (4, 0), (4, 4)]),
        "Mark all four corners",
        "Marca las cuatro esquinas",
    ),
    _preset(
        "blackout",
        "Blackout",
        "Cartón Lleno",
        _FULL_GRID,
        "Mark every cell on the card",
        "Marca todas las casillas del cartón",
    ),
    _preset(
        "letter-x",
        "Letter X",
        "Letra X",
        grid_from_cells(_DIAGONAL_TL_BR + _DIAGONAL_TR_BL),
        "Form an X shape with both diagonals",
        "Forma una X con ambas diagonales",
    ),
    _preset(
        "letter-t",
        "Letter T",
        "Letra T",
        grid_from_cells(_ROWS[0] + _COLUMNS[2]),
        "Form a T shape with top row and middle column",
        "Forma una T con la fila superior y la columna central",
    ),
    _preset(
        "letter-l",
        "Letter L",
        "Letra L",
        grid_from_cells(_COLUMNS[0] + _ROWS[4]),
        "Form an L shape with left column and bottom row",
        "Forma una L con la columna izquierda y la fila inferior",
    ),
    _preset(
        "plus",
        "Plus Sign",
        "Signo Más",
        grid_from_cells(_ROWS[2] + _COLUMNS[2]),
        "Form a plus sign with middle row and column",
        "Forma un signo más con la fila y columna central",
    ),
    _preset(
        "picture-frame",
        "Picture Frame",
        "Marco",
        grid_from_cells(_ROWS[0] + _ROWS[4] + _COLUMNS[0] + _COLUMNS[4]),
        "Mark all cells on the outer edge",
        "Marca todas las casillas del borde exterior",
    ),
    _preset(
        "postage-stamp",
        "Postage Stamp",
        "Estampilla",
        grid_from_cells(_STAMPS[0]),
        "Complete a 2x2 square in any corner",
        "Completa un cuadrado 2x2 en cualquier esquina",
    ),
    _preset(
        "chevron-up",
        "Chevron",
        "Flecha",
        grid_from_cells([(2, 2), (3, 1), (3, 3), (4, 0), (4, 4)]),
        "Form a V or arrow shape",
        "Forma una V o flecha",
    ),
)

_PRESETS_BY_ID = {pattern.id: pattern for pattern in PRESET_PATTERNS}

DEFAULT_PATTERN = _PRESETS_BY_ID["any-line"]


def get_pattern_by_id(pattern_id: str) -> Pattern | None:
    return _PRESETS_BY_ID.get(pattern_id)


def resolve_pattern(pattern: Pattern) -> Pattern:
    """Replace a pattern carrying a preset id with the canonical preset.

    Keeps clients from redefining the cells of a well-known pattern.
    """
    return _PRESETS_BY_ID.get(pattern.id, pattern)


def _alternatives(pattern: Pattern) -> Sequence[CellSet]:
    symbolic = _SYMBOLIC_ALTERNATIVES.get(pattern.id)
    if symbolic is not None:
        return symbolic
    return (cells_from_grid(pattern.grid),)


def _complete(marked: Grid, cells: CellSet) -> bool:
    return all(marked[row][col] for row, col in cells)


def matches(marked: Grid, pattern: Pattern) -> bool:
    """Whether the marked grid satisfies the pattern."""
    return any(_complete(marked, cells) for cells in _alternatives(pattern))


def winning_cells(marked: Grid, pattern: Pattern) -> Grid:
    """
    The first cell set that satisfies the pattern.

    For symbolic patterns only the first complete alternative in tie-break
    order is reported; fixed patterns report their required cells. Returns
    an empty grid when nothing matches.
    """
    if pattern.id not in _SYMBOLIC_ALTERNATIVES:
        return pattern.grid
    for cells in _SYMBOLIC_ALTERNATIVES[pattern.id]:
        if _complete(marked, cells):
            return grid_from_cells(cells)
    return _EMPTY_GRID


def validate_marks(card: Card, marked: Grid, called_numbers: Iterable[int]) -> bool:
    """Every marked non-FREE cell must hold a number that has been called."""
    called = set(called_numbers)
    for row in range(GRID_SIZE):
        for col in range(GRID_SIZE):
            value = card.grid[row][col]
            if value == FREE:
                continue
            if marked[row][col] and value not in called:
                return False
    return True
