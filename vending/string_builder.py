from __future__ import annotations
from contextlib import AbstractContextManager
import io


class StringBuilder(AbstractContextManager):
    """Accumulates display text line by line before it is written out in one
    go. Use with the with statement so the buffer is released.

    Usage:
        with StringBuilder() as sb:
            sb.append_line('~ Welcome ~').append('Notice - ').append_line(message)
            stream.write(sb.build())
    """
    __slots__ = ('string_io',)

    def __init__(self, initial_value: str = None) -> None:
        self.string_io = io.StringIO(initial_value=initial_value)
        self.string_io.seek(0, io.SEEK_END)

    def __enter__(self) -> StringBuilder:
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.string_io.close()

    def __len__(self) -> int:
        return self.string_io.tell()

    def __str__(self) -> str:
        return self.string_io.getvalue()

    def append(self, to_append: str) -> StringBuilder:
        self.string_io.write(to_append)
        return self

    def append_line(self, line: str = '') -> StringBuilder:
        """Appends the given text followed by a newline.

        Args:
            line (str, optional): The text to append. Defaults to ''.

        Returns:
            StringBuilder: The current instance.
        """
        self.string_io.write(line)
        self.string_io.write('\n')
        return self

    def build(self) -> str:
        return str(self)

    def clear(self) -> StringBuilder:
        self.string_io.seek(0)
        self.string_io.truncate()
        return self
