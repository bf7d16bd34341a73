import io
import os

__all__ = (
    "File",
)


class File:
    """
    An emoji image to upload, from a path or an open binary buffer.

    A path is opened here and `close` closes it again. A buffer stays
    the caller's, `close` leaves it open and it is only ever rewound.
    """
    def __init__(
        self,
        fp: str | os.PathLike | io.IOBase,
        filename: str | None = None
    ):
        if isinstance(fp, io.IOBase):
            if not (fp.readable() and fp.seekable()):
                raise ValueError(f"File buffer {fp!r} must be readable and seekable")

            self.fp = fp
            self.filename: str = filename or getattr(fp, "name", None) or "image"
            self._owned = False
        else:
            self.fp = open(fp, "rb")  # noqa: SIM115
            self.filename = filename or os.path.basename(fp)
            self._owned = True

        self._start: int = self.fp.tell()

    def __repr__(self) -> str:
        return f"<File filename='{self.filename}'>"

    @property
    def closed(self) -> bool:
        return self.fp.closed

    def read(self) -> bytes:
        """ Reads the image from where it started, then rewinds for the next read. """
        self.fp.seek(self._start)
        try:
            return self.fp.read()
        finally:
            self.fp.seek(self._start)

    def close(self) -> None:
        """ Closes the file, unless it is a buffer the caller opened. """
        if self._owned:
            self.fp.close()
