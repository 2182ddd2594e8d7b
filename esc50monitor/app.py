# app.py
from flask import Flask
from flask_cors import CORS

from . import config
from .api import init_app
from .database import Database, close_db, init_db
from .ingest import PredictionService
from .stream import start_stream_server


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_mapping(
        DATABASE_URL=config.DATABASE_URL,
        CORS_ORIGINS=config.CORS_ORIGINS,
        PREDICTIONS_LIMIT=config.PREDICTIONS_LIMIT,
        BROADCAST_QUEUE_SIZE=config.BROADCAST_QUEUE_SIZE,
    )
    if test_config:
        app.config.update(test_config)

    CORS(
        app,
        origins=app.config["CORS_ORIGINS"],
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    database = Database(app.config["DATABASE_URL"])
    app.extensions["database"] = database
    app.extensions["prediction_service"] = PredictionService(
        database, queue_size=app.config["BROADCAST_QUEUE_SIZE"]
    )
    app.teardown_appcontext(close_db)

    # 1) Register the REST routes on /api
    init_app(app)

    # 2) `flask --app esc50monitor.app init-db`
    @app.cli.command("init-db")
    def init_db_command():
        """Create tables and seed the ESC-50 taxonomy."""
        with database.connect() as conn:
            categories, labels = init_db(conn)
        print(f"✅ Database ready ({categories} new categories, {labels} new labels)")

    return app


def main():
    app = create_app()

    # Initialize DB and seed the taxonomy
    with app.extensions["database"].connect() as conn:
        init_db(conn)
    print("✅ Database ready")

    service = app.extensions["prediction_service"]
    start_stream_server(service, config.HOST, config.STREAM_PORT)

    print("=" * 60)
    print(f"REST API:    http://localhost:{config.PORT}/api")
    print(f"Streaming:   ws://localhost:{config.STREAM_PORT}")
    print(f"ESC-50 info: http://localhost:{config.PORT}/api/esc50-info")
    print("=" * 60)

    app.run(host=config.HOST, port=config.PORT, threaded=True)


if __name__ == '__main__':
    main()
