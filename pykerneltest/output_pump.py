#
# Copyright (c) 2026 The kerneltest-runner authors
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions
# are met:
# 1. Redistributions of source code must retain the above copyright
#    notice, this list of conditions and the following disclaimer.
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE AUTHOR AND CONTRIBUTORS ``AS IS'' AND
# ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED.  IN NO EVENT SHALL THE AUTHOR OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS
# OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION)
# HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT
# LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY
# OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF
# SUCH DAMAGE.
#
import threading
import typing

from .ansi_filter import AnsiStrippingWriter
from .errors import StreamIOError

__all__ = ["OutputPump"]


class OutputPump(threading.Thread):
    """
    Copy one output stream of the emulator to a destination stream, removing terminal escape sequences.

    ``prefix`` is written before the first byte of the source and ``suffix`` after the source has been closed.
    Any error raised while reading or writing is recorded and re-raised as :class:`StreamIOError` by
    :meth:`join_checked`.
    """

    def __init__(self, source: "typing.BinaryIO", destination: "typing.BinaryIO", *, name: str,
                 prefix: bytes = b"", suffix: bytes = b"", chunk_size: int = 4096) -> None:
        super().__init__(name=name)
        self.source = source
        self.destination = destination
        self.prefix = prefix
        self.suffix = suffix
        self.chunk_size = chunk_size
        self.error: "typing.Optional[BaseException]" = None
        self.bytes_read = 0

    def _read_chunk(self) -> bytes:
        # read1() returns as soon as some data is available instead of waiting for a full chunk
        read1 = getattr(self.source, "read1", None)
        if read1 is not None:
            return read1(self.chunk_size)
        return self.source.read(self.chunk_size)

    def run(self) -> None:
        writer = AnsiStrippingWriter(self.destination)
        try:
            if self.prefix:
                writer.write(self.prefix)
                writer.flush()
            while True:
                data = self._read_chunk()
                if not data:
                    break
                self.bytes_read += len(data)
                writer.write(data)
                writer.flush()
            if self.suffix:
                writer.write(self.suffix)
            writer.flush()
        except Exception as e:
            # Reported by join_checked(), closing the source makes further writes by the emulator fail
            self.error = e
        finally:
            try:
                self.source.close()
            except OSError as e:
                if self.error is None:
                    self.error = e

    def join_checked(self) -> None:
        self.join()
        if self.error is not None:
            kind = "I/O error" if isinstance(self.error, OSError) else type(self.error).__name__
            raise StreamIOError(kind + " while copying " + self.name + ": " + str(self.error),
                                stream_name=self.name) from self.error
