import logging

from flask import jsonify

logger = logging.getLogger(__name__)


class BookingError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed or out-of-policy request."""
    status_code = 400


class NotFoundError(BookingError):
    status_code = 404


class ConflictError(BookingError):
    """Port already booked for the requested interval."""
    status_code = 409


class IllegalStateError(BookingError):
    """Transition attempted from a terminal state or outside its guard."""
    status_code = 400


class DownstreamUnavailable(BookingError):
    """A sibling service (auth/station) could not be reached."""
    status_code = 503


def register_error_handlers(app):
    @app.errorhandler(BookingError)
    def _handle_booking_error(exc: BookingError):
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        return jsonify(error=exc.message), exc.status_code

    @app.errorhandler(404)
    def _handle_not_found(_exc):
        return jsonify(error="Not found"), 404

    @app.errorhandler(405)
    def _handle_method_not_allowed(_exc):
        return jsonify(error="Method not allowed"), 405
