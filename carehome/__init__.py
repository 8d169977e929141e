import os
from flask import Flask, jsonify
from carehome.extensions import db, bcrypt, migrate, jwt, limiter, cors
from carehome.utils.encryption_util import encryptor
from carehome.utils.error_handlers import register_error_handlers
from carehome.utils.token_util import TokenCodec, TokenSettings
from carehome.utils.principal_util import PrincipalResolver
from carehome.utils.permission_util import DEFAULT_POLICY
from carehome.utils.audit_util import AuditRecorder, build_sink
from carehome.utils.decorators import RequestGate
from carehome.commands import register_commands
from config import config


def create_app(config_name=None):
    app = Flask(__name__)
    config_name = config_name or os.environ.get('FLASK_CONFIG', 'default')
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    cors.init_app(
        app,
        origins=app.config['ALLOWED_ORIGINS'],
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-Requested-With'],
        methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'],
    )

    # Initialize custom utilities
    encryptor.init_app(app)

    # Initialize app with config (logging, audit logger)
    config_class.init_app(app)

    # Authentication, authorization and audit pipeline
    from carehome.models.staff_models import StaffRepository
    codec = TokenCodec(TokenSettings.from_config(app.config))
    resolver = PrincipalResolver(codec, StaffRepository())
    recorder = AuditRecorder(
        build_sink(app.config),
        retention_class=app.config['AUDIT_RETENTION_CLASS'],
        logger=app.logger,
        audit_logger=app.audit_logger,
    )
    app.extensions['token_codec'] = codec
    app.extensions['principal_resolver'] = resolver
    app.extensions['audit_recorder'] = recorder
    app.extensions['request_gate'] = RequestGate(codec, resolver, DEFAULT_POLICY, recorder)

    # Register blueprints
    from carehome.api import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    # Register error handlers and commands
    register_error_handlers(app)
    register_commands(app)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'}), 200

    return app
