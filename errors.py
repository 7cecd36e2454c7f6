"""Error taxonomy for the MonMaster snapshot pipeline."""

from __future__ import annotations


class MonMasterError(RuntimeError):
    """Base class for every failure raised by the pipeline."""


class TransportError(MonMasterError):
    """The endpoint could not be reached or returned an undecodable body."""


class RequestTimeoutError(TransportError, TimeoutError):
    """A single request attempt exceeded its deadline."""


class UpstreamError(MonMasterError):
    """The endpoint answered with a non-success HTTP status."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"HTTP {status_code} from {url}")
        self.status_code = status_code
        self.url = url


class RecordMergeError(MonMasterError):
    """One formation could not be merged into an output row."""

    def __init__(self, uai: str, ifc: str | None, reason: str) -> None:
        super().__init__(f"Cannot merge formation uai={uai} ifc={ifc}: {reason}")
        self.uai = uai
        self.ifc = ifc
        self.reason = reason
