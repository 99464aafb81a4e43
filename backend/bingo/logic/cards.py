"""
Bingo card and draw-order generation.

All functions take an optional random source so callers (and tests) can
make generation reproducible. Production code uses the OS entropy pool.
"""

import random
import secrets
from collections.abc import Sequence

from bingo.logic.enums import BingoColumn
from bingo.logic.exceptions import CardGenerationError
from bingo.logic.settings import CARD_POOL_SIZE, CENTER, GRID_SIZE, NUMBERS_PER_COLUMN, TOTAL_NUMBERS
from bingo.logic.types import FREE, Card, CardGrid, Grid

# Generous bound on rejected duplicates; collisions are astronomically rare.
_MAX_ATTEMPTS_PER_CARD = 100

_system_random = secrets.SystemRandom()


def _rng_or_default(rng: random.Random | None) -> random.Random:
    return rng if rng is not None else _system_random


def shuffle(items: Sequence[int], rng: random.Random | None = None) -> list[int]:
    """Return a Fisher-Yates shuffled copy of ``items``."""
    rng = _rng_or_default(rng)
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randrange(i + 1)
        result[i], result[j] = result[j], result[i]
    return result


def column_range(col: int) -> range:
    """Numeric range for a column: B=1-15, I=16-30, N=31-45, G=46-60, O=61-75."""
    low = col * NUMBERS_PER_COLUMN + 1
    return range(low, low + NUMBERS_PER_COLUMN)


def generate_card(rng: random.Random | None = None) -> Card:
    rng = _rng_or_default(rng)
    columns = [shuffle(column_range(col), rng)[:GRID_SIZE] for col in range(GRID_SIZE)]
    grid = tuple(
        tuple(FREE if (row == CENTER and col == CENTER) else columns[col][row] for col in range(GRID_SIZE))
        for row in range(GRID_SIZE)
    )
    return Card(id=f"card_{rng.getrandbits(64):016x}", grid=grid)


def card_signature(grid: CardGrid) -> str:
    """Flattened grid used to detect duplicate cards."""
    return ",".join(str(cell) for row in grid for cell in row)


def generate_card_pool(count: int = CARD_POOL_SIZE, rng: random.Random | None = None) -> tuple[Card, ...]:
    """
    Generate ``count`` cards with pairwise distinct grids.

    Raises CardGenerationError if the attempt bound is exhausted, which
    indicates a broken random source rather than bad luck.
    """
    rng = _rng_or_default(rng)
    cards: list[Card] = []
    seen: set[str] = set()
    max_attempts = max(count, 1) * _MAX_ATTEMPTS_PER_CARD
    attempts = 0
    while len(cards) < count:
        if attempts >= max_attempts:
            raise CardGenerationError(f"could not generate {count} unique cards in {max_attempts} attempts")
        attempts += 1
        card = generate_card(rng)
        signature = card_signature(card.grid)
        if signature in seen:
            continue
        seen.add(signature)
        cards.append(card)
    return tuple(cards)


def generate_shuffled_numbers(rng: random.Random | None = None) -> tuple[int, ...]:
    """A full draw order: a permutation of 1..75."""
    return tuple(shuffle(range(1, TOTAL_NUMBERS + 1), rng))


def empty_marked_grid() -> Grid:
    """All cells unmarked except the FREE center."""
    return tuple(tuple(row == CENTER and col == CENTER for col in range(GRID_SIZE)) for row in range(GRID_SIZE))


_COLUMN_LETTERS = tuple(BingoColumn)


def column_for_number(number: int) -> BingoColumn:
    """Column letter for a drawn number (1-15 is B, 61-75 is O)."""
    if not 1 <= number <= TOTAL_NUMBERS:
        raise ValueError(f"number out of range: {number}")
    return _COLUMN_LETTERS[(number - 1) // NUMBERS_PER_COLUMN]


def format_number(number: int) -> str:
    return f"{column_for_number(number)}-{number}"
