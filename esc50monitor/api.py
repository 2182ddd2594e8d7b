# api.py
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from .database import get_db
from .errors import MalformedMessage, StorageUnavailable, UnknownLabel
from . import queries

api_bp = Blueprint('api', __name__)


def _service():
    return current_app.extensions["prediction_service"]


@api_bp.errorhandler(MalformedMessage)
def _malformed(e):
    return jsonify(error=str(e)), 400


@api_bp.errorhandler(UnknownLabel)
def _unknown_label(e):
    return jsonify(error=str(e)), 500


@api_bp.errorhandler(StorageUnavailable)
def _storage_unavailable(e):
    print(f"❌ Storage unavailable: {e}")
    return jsonify(error="Storage unavailable"), 503


@api_bp.route('/health', methods=['GET'])
def health():
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        get_db().fetch_one("SELECT COUNT(*) AS count FROM labels")
    except StorageUnavailable:
        return jsonify(status="DEGRADED", timestamp=timestamp, database="unavailable"), 503
    return jsonify(status="OK", timestamp=timestamp, database="ESC-50 Ready")


@api_bp.route('/predictions', methods=['GET'])
def get_predictions():
    max_limit = current_app.config["PREDICTIONS_LIMIT"]
    limit = request.args.get('limit', default=max_limit, type=int)
    limit = max(1, min(limit, max_limit))
    predictions = queries.list_recent_predictions(get_db(), limit=limit)
    print(f"📄 Returned {len(predictions)} predictions")
    return jsonify(predictions)


@api_bp.route('/predictions', methods=['POST'])
def add_prediction():
    """Store a prediction and broadcast it to every streaming observer."""
    body = request.get_json(silent=True)
    if body is None:
        raise MalformedMessage("Request body must be JSON")

    event = _service().submit_message(body).result()
    return jsonify(
        id=event.id,
        message="Prediction added",
        predicted_class=event.label.name,
        superclass=event.label.category.name,
    )


@api_bp.route('/stats', methods=['GET'])
def get_stats():
    return jsonify(queries.stats(get_db()))


@api_bp.route('/classes', methods=['GET'])
def get_classes():
    return jsonify(queries.list_labels(get_db()))


@api_bp.route('/esc50-info', methods=['GET'])
def get_esc50_info():
    return jsonify(queries.taxonomy_info(get_db()))


def init_app(app):
    # register the Blueprint
    app.register_blueprint(api_bp, url_prefix='/api')
