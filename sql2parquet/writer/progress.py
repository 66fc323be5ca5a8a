# ==============================================
# Write Progress
# ==============================================
#
# PURPOSE:
#   Progress is what the coordinator hands its callback after every
#   column. ProgressPrinter is the callback the CLI uses to redraw a
#   single status line on stderr.
#
# CLASSES / FUNCTIONS:
# --------------------
# - Progress(n_cols, n_rows, n_groups)    frozen
#     expected(n_cols, n_rows, group_size) -> Progress   (final totals)
# - percent_done(written, total, group_size) -> float
# - format_progress(written, total, group_size, elapsed, finished=False) -> str
#     "[60.00%] Wrote 2 of 5 rows as 1 group in 1.2s..."
# - ProgressPrinter(total, group_size, stream=None)   (None means stderr)
#     __call__(written), finish(n_rows, n_groups)
#
# ==============================================

import sys
import time
from dataclasses import dataclass
from typing import Optional, TextIO


@dataclass(frozen=True)
class Progress:
    """
    Cumulative write position.

    Attributes:
        n_cols: Columns written within the current (incomplete) row group
        n_rows: Rows in fully written row groups
        n_groups: Row groups fully written
    """
    n_cols: int = 0
    n_rows: int = 0
    n_groups: int = 0

    @classmethod
    def expected(cls, n_cols: int, n_rows: int, group_size: int) -> "Progress":
        """Totals for a table of ``n_rows`` rows split into ``group_size`` groups."""
        group_size = max(1, group_size)
        return cls(n_cols=n_cols, n_rows=n_rows, n_groups=(n_rows + group_size - 1) // group_size)


def percent_done(written: Progress, total: Progress, group_size: int) -> float:
    """
    Fraction of the table written, counting partially written groups by
    the share of their columns already flushed.
    """
    if total.n_rows == 0 or total.n_cols == 0:
        return 100.0
    this_group = min(total.n_rows - written.n_rows, max(1, group_size))
    done = written.n_rows + this_group * written.n_cols / total.n_cols
    return done / total.n_rows * 100.0


def format_elapsed(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, seconds = divmod(seconds, 60)
    return f"{int(minutes)}m{seconds:04.1f}s"


def format_progress(
    written: Progress,
    total: Progress,
    group_size: int,
    elapsed: float,
    finished: bool = False,
) -> str:
    pc = percent_done(written, total, group_size)
    of_total = "" if finished else f" of {total.n_rows}"
    plural = "" if written.n_groups == 1 else "s"
    tail = "" if finished else "..."
    return (
        f"[{pc:.2f}%] Wrote {written.n_rows}{of_total} rows as "
        f"{written.n_groups} group{plural} in {format_elapsed(elapsed)}{tail}"
    )


class ProgressPrinter:
    """
    Progress callback that redraws one status line in place.

    Args:
        total: Expected totals (see ``Progress.expected``)
        group_size: Rows per group
        stream: Where to draw; stderr by default
    """

    def __init__(self, total: Progress, group_size: int, stream: Optional[TextIO] = None):
        self.total = total
        self.group_size = max(1, group_size)
        self.stream = stream if stream is not None else sys.stderr
        self.started = time.monotonic()

    def __call__(self, written: Progress) -> None:
        self._draw(format_progress(written, self.total, self.group_size, self.elapsed))

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def finish(self, n_rows: int, n_groups: int) -> None:
        """Draw the final line, with the counts taken from the written file."""
        final = Progress(n_cols=self.total.n_cols, n_rows=n_rows, n_groups=n_groups)
        self._draw(format_progress(final, final, self.group_size, self.elapsed, finished=True))
        self.stream.write("\n")
        self.stream.flush()

    def _draw(self, line: str) -> None:
        # \r + clear-to-end-of-line overwrites the previous status
        self.stream.write("\r" + line + "\x1b[K")
        self.stream.flush()
