"""Flask app factory."""

from flask import Flask

from ta_assistant.config import Config


def create_app(history=None, analyzer=None, price=None):
    """
    Create and configure the Flask application.

    The history store, analysis service and price worker default to the
    process-wide instances; tests pass their own.
    """
    from ta_assistant.analysis.pipeline import ANALYZER, AnalysisService
    from ta_assistant.history import HISTORY
    from ta_assistant.workers import PRICE

    app = Flask(__name__)
    app.secret_key = Config.SECRET_KEY

    history = history if history is not None else HISTORY
    if analyzer is None:
        analyzer = ANALYZER if history is HISTORY else AnalysisService(history=history)
    app.config["HISTORY"] = history
    app.config["ANALYZER"] = analyzer
    app.config["PRICE"] = price if price is not None else PRICE

    if not history.loaded:
        history.load()

    # Register blueprints
    from ta_assistant.backend.routes import analysis, history as history_routes, market, status

    app.register_blueprint(market.bp)
    app.register_blueprint(analysis.bp)
    app.register_blueprint(history_routes.bp)
    app.register_blueprint(status.bp)

    return app
