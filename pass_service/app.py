"""
Satellite Pass HTTP API

Flask application exposing the satellite catalog, pass predictions,
current overhead status and viewing weather as JSON.

Run with:
    flask --app pass_service.app:create_app run --port 5001
"""

import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from logging_config import get_logger
from pass_service import __version__
from pass_service.catalog import search_satellites
from pass_service.geometry import azimuth_to_cardinal
from pass_service.models import ObserverLocation, PassFilters, SatellitePass
from pass_service.pass_predictor import format_pass_duration, pass_quality, pass_quality_score
from pass_service.tle_parser import describe_elements
from pass_service.weather import get_weather_at_time, weather_for_pass

logger = get_logger(__name__)

MAX_PREDICTION_DAYS = 14


class BadRequest(ValueError):
    """Invalid query parameter."""


def _float_arg(name: str, default: Optional[float] = None) -> float:
    raw = request.args.get(name)
    if raw is None or raw == "":
        if default is None:
            raise BadRequest(f"Missing required parameter: {name}")
        return default
    try:
        return float(raw)
    except ValueError:
        raise BadRequest(f"Parameter {name} must be a number")


def _int_arg(name: str) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise BadRequest(f"Parameter {name} must be an integer")


def _bool_arg(name: str) -> bool:
    return request.args.get(name, "false").lower() in ("1", "true", "yes")


def _time_arg(name: str) -> Optional[datetime]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise BadRequest(f"Parameter {name} must be an ISO 8601 timestamp")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _observer() -> ObserverLocation:
    return ObserverLocation(
        latitude=_float_arg("lat"),
        longitude=_float_arg("lon"),
        altitude=_float_arg("alt", 0.0),
    )


def _check_norad_id(norad_id: str) -> str:
    if not norad_id.isdigit():
        raise BadRequest("Catalog number must be numeric")
    return norad_id


def serialize_pass(pass_: SatellitePass, include_trajectory: bool = True) -> Dict[str, Any]:
    data = pass_.model_dump(mode="json", exclude=None if include_trajectory else {"trajectory"})
    data.update({
        "quality": pass_quality(pass_.max_elevation),
        "quality_score": pass_quality_score(pass_.max_elevation),
        "duration_formatted": format_pass_duration(pass_.duration),
        "start_direction": azimuth_to_cardinal(pass_.start_azimuth),
        "max_direction": azimuth_to_cardinal(pass_.max_azimuth),
        "end_direction": azimuth_to_cardinal(pass_.end_azimuth),
    })
    return data


def create_app(service=None) -> Flask:
    """
    Build the Flask application.

    Args:
        service: SatellitePassService; one is built from the environment
            when omitted
    """
    if service is None:
        from pass_service.service import SatellitePassService
        service = SatellitePassService()

    app = Flask(__name__)
    CORS(app)
    app.config["PASS_SERVICE"] = service

    @app.route("/health", methods=["GET"])
    def health_check():
        """Service and cache status"""
        bulk_age = service.bulk_store.cache_age()
        return jsonify({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "services": {
                "cache": "healthy" if service.cache.backend.ping() else "unhealthy",
                "cache_backend": type(service.cache.backend).__name__,
                "bulk_elements_age_seconds": bulk_age,
            },
        }), 200

    @app.route("/satellites", methods=["GET"])
    def list_satellites():
        """Satellite catalog with optional search"""
        catalog = service.build_satellite_catalog()
        satellites = catalog.satellites

        query = request.args.get("q")
        if query:
            satellites = search_satellites(satellites, query)

        return jsonify({
            "satellites": [s.model_dump(mode="json", exclude={"transmitters"}) for s in satellites],
            "count": len(satellites),
            "error": catalog.error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    @app.route("/satellites/<norad_id>", methods=["GET"])
    def get_satellite(norad_id: str):
        """Catalog entry with orbit summary"""
        satellite = service.get_satellite_by_norad_id(_check_norad_id(norad_id))
        if satellite is None:
            return jsonify({"error": "Satellite not found"}), 404

        data = satellite.model_dump(mode="json")
        elements = service.bulk_store.get_elements(satellite.norad_id)
        data["orbit"] = describe_elements(elements) if elements is not None else None
        return jsonify(data)

    @app.route("/satellites/<norad_id>/passes", methods=["GET"])
    def predict_satellite_passes(norad_id: str):
        """Predict passes over an observer"""
        norad_id = _check_norad_id(norad_id)
        observer = _observer()

        days = _float_arg("days", 7.0)
        if not 0 < days <= MAX_PREDICTION_DAYS:
            raise BadRequest(f"Parameter days must be in (0, {MAX_PREDICTION_DAYS}]")

        filters = PassFilters(
            min_elevation=_float_arg("min_elevation", 0.0),
            visible_only=_bool_arg("visible_only"),
            max_results=_int_arg("max_results"),
        )
        include_trajectory = request.args.get("trajectory", "true").lower() != "false"

        result = service.predict_passes(norad_id, observer, _time_arg("start"), days, filters)
        if result.error and not result.passes and not result.cached:
            logger.warning("Elements unavailable", norad_id=norad_id, error=result.error)
            return jsonify({"error": result.error}), 404

        passes = [serialize_pass(p, include_trajectory) for p in result.passes]

        if _bool_arg("weather"):
            forecast = service.weather.fetch_forecast(observer)
            for data, pass_ in zip(passes, result.passes):
                conditions = weather_for_pass(forecast, pass_) if forecast is not None else None
                data["weather"] = conditions.model_dump() if conditions is not None else None

        logger.info("Passes predicted", norad_id=norad_id, count=len(passes))
        return jsonify({
            "norad_id": norad_id,
            "observer": observer.model_dump(),
            "passes": passes,
            "count": len(passes),
            "cached_elements": result.cached,
            "warning": result.error,
        })

    @app.route("/satellites/<norad_id>/overhead", methods=["GET"])
    def satellite_overhead(norad_id: str):
        """Whether the satellite is above the horizon now"""
        norad_id = _check_norad_id(norad_id)
        observer = _observer()
        now = _time_arg("time") or datetime.now(timezone.utc)

        overhead, angles = service.is_currently_overhead(norad_id, observer, now)
        until = service.get_time_until_next_pass(norad_id, observer, now)

        return jsonify({
            "norad_id": norad_id,
            "timestamp": now.isoformat(),
            "overhead": overhead,
            "look_angles": angles.model_dump() if angles is not None else None,
            "direction": azimuth_to_cardinal(angles.azimuth) if angles is not None else None,
            "seconds_until_next_pass": until.total_seconds() if until is not None else None,
        })

    @app.route("/weather", methods=["GET"])
    def weather():
        """Viewing conditions at a location and time"""
        observer = _observer()
        target = _time_arg("time") or datetime.now(timezone.utc)

        forecast = service.weather.fetch_forecast(observer)
        if forecast is None:
            return jsonify({"error": "Weather forecast unavailable"}), 503

        conditions = get_weather_at_time(forecast, target)
        return jsonify({
            "timestamp": target.isoformat(),
            "conditions": conditions.model_dump() if conditions is not None else None,
        })

    @app.errorhandler(BadRequest)
    def handle_bad_request(error):
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        return jsonify({"error": "Invalid parameters", "details": error.errors(include_url=False, include_context=False)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_error(error):
        """Global error handler"""
        logger.error(f"Unhandled error: {error}\n{traceback.format_exc()}")
        return jsonify({
            "error": "Internal server error",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }), 500

    return app
