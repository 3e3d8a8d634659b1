from __future__ import annotations


class CareLogError(Exception):
    status_code = 400
    code = "carelog_error"
    title = "Request failed"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class LookupMiss(CareLogError):
    status_code = 404
    code = "lookup_miss"
    title = "Not found"


class BedVacant(CareLogError):
    status_code = 409
    code = "bed_vacant"
    title = "Bed vacant"

    def __init__(self, bed_number: str):
        super().__init__(f"bed {bed_number} has no resident")
        self.bed_number = bed_number


class InvalidScan(CareLogError):
    status_code = 400
    code = "invalid_scan"
    title = "Invalid QR code"


class EmptySelection(CareLogError):
    status_code = 422
    code = "empty_selection"
    title = "Nothing selected"


class ConflictingSelection(CareLogError):
    status_code = 422
    code = "conflicting_selection"
    title = "Conflicting selection"


class UnknownSlot(CareLogError):
    status_code = 422
    code = "unknown_slot"
    title = "Unknown slot"


class BackendFailure(CareLogError):
    status_code = 503
    code = "backend_failure"
    title = "Backend unavailable"


class MissingRecorder(CareLogError):
    status_code = 422
    code = "recorder_required"
    title = "Recorder required"


class InvalidPayload(CareLogError):
    status_code = 422
    code = "invalid_payload"
    title = "Invalid payload"
