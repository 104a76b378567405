from flask import Blueprint, request, jsonify, current_app, g

from models.booking import BookingStatus
from services.booking_service import BookingPatch, BookingRequest
from utils.auth_context import login_required
from utils.clock import parse_iso
from utils.errors import ValidationError

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _service():
    return current_app.extensions["booking_service"]


def _parse_time(value, field: str, required: bool = True):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 string")
    try:
        return parse_iso(value)
    except ValueError:
        raise ValidationError(f"Invalid {field}. Use ISO e.g. 2026-01-20T18:00:00")


def _parse_int(value, field: str, required: bool = True, positive: bool = True):
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field} must be an integer")
    if positive and number <= 0:
        raise ValidationError(f"{field} must be positive")
    return number


def _parse_status(value, required: bool = True):
    if value is None:
        if required:
            raise ValidationError("status is required")
        return None
    status = str(value).strip().upper()
    if status not in BookingStatus.ALL:
        raise ValidationError(f"Unknown booking status: {value}")
    return status


def _date_range_args(start_key="startDate", end_key="endDate"):
    start = _parse_time(request.args.get(start_key), start_key)
    end = _parse_time(request.args.get(end_key), end_key)
    return start, end


def _respond(bookings):
    service = _service()
    return jsonify([service.to_response(b) for b in bookings]), 200


# ---------- create / read ----------
@booking_bp.post("")
def create_booking():
    data = request.get_json(silent=True) or {}
    user_id = g.user_id if g.user_id is not None else data.get("user_id")

    req = BookingRequest(
        user_id=_parse_int(user_id, "user_id"),
        station_id=_parse_int(data.get("station_id"), "station_id"),
        port_id=_parse_int(data.get("port_id"), "port_id"),
        start_time=_parse_time(data.get("start_time"), "start_time"),
        end_time=_parse_time(data.get("end_time"), "end_time"),
        duration=_parse_int(data.get("duration"), "duration"),
    )
    booking = _service().create_booking(req)
    return jsonify(_service().to_response(booking)), 201


@booking_bp.get("")
def list_all_bookings():
    return _respond(_service().list_all_bookings())


@booking_bp.get("/me")
@login_required
def my_bookings():
    return _respond(_service().list_user_bookings(g.user_id))


@booking_bp.get("/<int:booking_id>")
def get_booking(booking_id: int):
    booking = _service().get_booking(booking_id)
    return jsonify(_service().to_response(booking)), 200


# ---------- per user ----------
@booking_bp.get("/user/<int:user_id>")
def user_bookings(user_id: int):
    return _respond(_service().list_user_bookings(user_id))


@booking_bp.get("/user/<int:user_id>/upcoming")
def upcoming_user_bookings(user_id: int):
    return _respond(_service().list_upcoming_user_bookings(user_id))


@booking_bp.get("/user/<int:user_id>/completed")
def completed_user_bookings(user_id: int):
    return _respond(_service().list_completed_user_bookings(user_id))


@booking_bp.get("/user/<int:user_id>/recent")
def recent_user_bookings(user_id: int):
    # plain rows, no station lookups
    rows = _service().list_recent_user_bookings(user_id)
    return jsonify([b.to_dict() for b in rows]), 200


@booking_bp.get("/user/<int:user_id>/stats")
def user_booking_stats(user_id: int):
    return jsonify(_service().user_statistics(user_id)), 200


@booking_bp.get("/user/<int:user_id>/date-range")
def user_bookings_in_range(user_id: int):
    start, end = _date_range_args()
    return _respond(_service().list_bookings_in_range(start, end, user_id=user_id))


# ---------- per station / port ----------
@booking_bp.get("/station/<int:station_id>")
def station_bookings(station_id: int):
    return _respond(_service().list_station_bookings(station_id))


@booking_bp.get("/port/<int:port_id>/availability")
def port_availability(port_id: int):
    start, end = _date_range_args("startTime", "endTime")
    available = _service().is_port_available(port_id, start, end)
    return jsonify(port_id=port_id, available=available), 200


# ---------- admin views ----------
@booking_bp.get("/admin/status/<status>")
def bookings_by_status(status: str):
    return _respond(_service().list_by_status(_parse_status(status)))


@booking_bp.get("/admin/active")
def active_bookings():
    return _respond(_service().list_active_bookings())


@booking_bp.get("/admin/date-range")
def bookings_in_range():
    start, end = _date_range_args()
    return _respond(_service().list_bookings_in_range(start, end))


@booking_bp.get("/admin/earnings/<int:station_id>")
def station_earnings(station_id: int):
    return jsonify(station_id=station_id, total_earning=_service().station_earnings(station_id)), 200


# ---------- lifecycle ----------
@booking_bp.put("/<int:booking_id>")
def update_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    patch = BookingPatch(
        start_time=_parse_time(data.get("start_time"), "start_time", required=False),
        end_time=_parse_time(data.get("end_time"), "end_time", required=False),
        duration=_parse_int(data.get("duration"), "duration", required=False),
        status=_parse_status(data.get("status"), required=False),
    )
    booking = _service().update_booking(booking_id, patch)
    return jsonify(_service().to_response(booking)), 200


@booking_bp.put("/<int:booking_id>/cancel")
def cancel_booking(booking_id: int):
    booking = _service().cancel_booking(booking_id)
    return jsonify(_service().to_response(booking)), 200


@booking_bp.put("/admin/<int:booking_id>/complete")
def complete_booking(booking_id: int):
    booking = _service().complete_booking(booking_id)
    return jsonify(_service().to_response(booking)), 200
