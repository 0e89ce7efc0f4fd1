"""
Exceptions raised by the tournament core.

Every failure is a rejected call; the Flask layer maps each class to an
HTTP status through ``status_code``.
"""


class TournamentError(Exception):
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(TournamentError):
    status_code = 400


class NotFoundError(TournamentError):
    status_code = 404


class DuplicateError(TournamentError):
    status_code = 409


class IntegrityError(TournamentError):
    status_code = 409


class ResultAlreadyRecordedError(TournamentError):
    status_code = 409
