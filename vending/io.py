from collections.abc import Iterable, Sequence
import io
import logging
import shlex

logger = logging.getLogger(__name__)


def each_command_of(to_read: io.TextIOBase) -> Iterable[tuple[int, Sequence[str]]]:
    """Reads a command script one line at a time, splitting each line into
    words with shell-style quoting. Blank lines and # comments are skipped,
    as are lines with unbalanced quotes.

    Args:
        to_read (io.TextIOBase): The stream of commands.

    Returns:
        Iterable[tuple[int, Sequence[str]]]: Each line number with its words.
    """
    for line_number, line in enumerate(iter(to_read.readline, ''), start=1):
        try:
            words = shlex.split(line, comments=True)
        except ValueError as e:
            logger.error('Skipping line %d: %s', line_number, e)
            continue
        if words:
            yield line_number, words
