# /carehome/utils/error_handlers.py
from flask import jsonify, current_app
from carehome.extensions import db
from carehome.utils.errors import AppError

def register_error_handlers(app):
    @app.errorhandler(AppError)
    def app_error(error):
        if error.status_code >= 500:
            db.session.rollback()
            current_app.logger.error(f"Application error: {error.message}")
            return jsonify({'error': 'Internal server error'}), error.status_code
        return jsonify({'error': error.message}), error.status_code

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({'error': 'Bad request'}), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(429)
    def too_many_requests(error):
        return jsonify({'error': 'Too many requests, please try again later'}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        original = getattr(error, 'original_exception', None) or error
        current_app.logger.error(f"Internal server error: {original!r}")
        return jsonify({'error': 'Internal server error'}), 500
