class PrsError(Exception):
    def __init__(self, msg: str, *args, position: int=None):
        s = "PRS Error"
        if position is not None:
            s += " at offset {:#x}".format(position)
        s += ": " + msg
        super().__init__(s)
        self.position = position


class InputTooSmallError(PrsError, ValueError):
    """Raised when a buffer is too short to be compressed or to hold a PRS stream"""
    pass


class AllocationError(PrsError, MemoryError):
    """Raised when output storage cannot be sized"""
    pass


class MalformedStreamError(PrsError, ValueError):
    """Raised when a stream is truncated or references data before the start of the output"""
    pass


class EncodingError(PrsError, ValueError):
    """Raised when the encoder is asked to write something a PRS stream cannot hold"""
    pass
