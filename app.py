import os
import logging
from dotenv import load_dotenv
load_dotenv()
from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from config import config_dict
from models import db
from manage import register_commands
from routes.learners import learner_bp
from routes.educators import educator_bp
from routes.tasks import tasks_bp
from routes.assessments import assessments_bp

migrate = Migrate()


def create_app(config_name=None):
    """Build the Flask application for the given FLASK_ENV name."""
    config_name = (config_name or os.environ.get("FLASK_ENV", "production")).lower()

    app = Flask(__name__)
    app.config.from_object(config_dict.get(config_name, config_dict["production"]))

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.info("Environment: %s", config_name)

    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"], "supports_credentials": True}})

    db.init_app(app)
    migrate.init_app(app, db)

    app.register_blueprint(learner_bp, url_prefix='/api/learner')
    app.register_blueprint(educator_bp, url_prefix='/api/educator')
    app.register_blueprint(tasks_bp, url_prefix='/api/tasks')
    app.register_blueprint(assessments_bp, url_prefix='/api/assessments')
    register_commands(app)

    @app.route('/')
    def home():
        return "Welcome to DigiGyan!"

    @app.route('/api/health')
    def health():
        return jsonify({"status": "ok"}), 200

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    return app


app = create_app()

if __name__ == '__main__':
    app.run(debug=app.config['DEBUG'])
