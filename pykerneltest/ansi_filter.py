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
"""
Removal of ANSI/VT terminal escape sequences from a byte stream.

QEMU and the firmware it runs may colour their console output or move the cursor around. The
:class:`AnsiStrippingWriter` removes those sequences before forwarding the output so that captured logs
render cleanly. The parser is a byte-level state machine following the ECMA-48 structure (ESC sequences,
CSI sequences and OSC/DCS/SOS/PM/APC strings). The parser state is kept across :meth:`write` calls, so a
sequence that is split across two reads from a pipe is still removed. No input is buffered beyond that
state: every byte that is not part of an escape sequence is forwarded by the same ``write()`` call.
"""
import io
import typing
from enum import Enum

__all__ = ["AnsiStrippingWriter", "strip_ansi_escapes"]

ESC = 0x1b
BEL = 0x07
CAN = 0x18
SUB = 0x1a
DEL = 0x7f


class _State(Enum):
    GROUND = 0
    ESCAPE = 1
    ESCAPE_INTERMEDIATE = 2
    CSI = 3
    OSC = 4
    CONTROL_STRING = 5  # DCS, SOS, PM and APC: terminated by ST only
    STRING_ESCAPE = 6  # ESC seen inside a string, expecting '\' (ST)


class AnsiStrippingWriter(object):
    def __init__(self, destination: "typing.BinaryIO") -> None:
        self.destination = destination
        self._state = _State.GROUND

    @property
    def in_escape_sequence(self) -> bool:
        return self._state is not _State.GROUND

    def write(self, data: bytes) -> int:
        output = bytearray()
        for byte in data:
            self._process(byte, output)
        if output:
            self.destination.write(bytes(output))
        return len(data)

    def flush(self) -> None:
        self.destination.flush()

    def _process(self, byte: int, output: bytearray) -> None:
        state = self._state
        if state is _State.GROUND:
            if byte == ESC:
                self._state = _State.ESCAPE
            else:
                output.append(byte)
        elif state is _State.OSC or state is _State.CONTROL_STRING:
            if byte == ESC:
                self._state = _State.STRING_ESCAPE
            elif byte == BEL and state is _State.OSC:
                self._state = _State.GROUND
            elif byte in (CAN, SUB):
                self._state = _State.GROUND
            # everything else is part of the string payload
        elif state is _State.STRING_ESCAPE:
            if byte == ord("\\"):
                self._state = _State.GROUND
            else:
                # Not a string terminator: the ESC started a new sequence.
                self._state = _State.ESCAPE
                self._process(byte, output)
        elif byte == ESC:
            # An ESC inside an unfinished sequence cancels it and starts a new one.
            self._state = _State.ESCAPE
        elif byte in (CAN, SUB):
            self._state = _State.GROUND
        elif byte < 0x20:
            # C0 controls (e.g. newlines) are executed within a sequence: keep them.
            output.append(byte)
        elif byte == DEL:
            pass
        elif state is _State.ESCAPE:
            if byte == ord("["):
                self._state = _State.CSI
            elif byte == ord("]"):
                self._state = _State.OSC
            elif byte in b"PX^_":
                self._state = _State.CONTROL_STRING
            elif 0x20 <= byte <= 0x2f:
                self._state = _State.ESCAPE_INTERMEDIATE
            else:
                self._state = _State.GROUND
        elif state is _State.ESCAPE_INTERMEDIATE:
            if not 0x20 <= byte <= 0x2f:
                self._state = _State.GROUND
        elif state is _State.CSI:
            # Parameter bytes are 0x30-0x3f, intermediates 0x20-0x2f and the final byte is 0x40-0x7e
            if byte >= 0x40:
                self._state = _State.GROUND
        else:
            raise ValueError("Unknown parser state " + str(state))


def strip_ansi_escapes(data: bytes) -> bytes:
    result = io.BytesIO()
    AnsiStrippingWriter(result).write(data)
    return result.getvalue()
