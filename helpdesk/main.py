import os
import logging
from flask import Flask, jsonify
from flask_cors import CORS

from helpdesk.config import config
from helpdesk.extensions import db, jwt


def create_app(config_name=None):
    """Application factory pattern."""
    app = Flask(__name__)
    
    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')
    
    app.config.from_object(config[config_name])
    
    # Validate production configuration if needed
    if config_name == 'production':
        config[config_name].validate_config()
    
    # Configure CORS
    CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
    
    # Initialize extensions
    db.init_app(app)
    jwt.init_app(app)
    
    # Configure logging first so we can see route registration errors
    if not app.debug:
        if not os.path.exists('logs'):
            os.mkdir('logs')
        file_handler = logging.FileHandler('logs/helpdesk.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
        app.logger.addHandler(file_handler)
        app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
        logging.getLogger('helpdesk').addHandler(file_handler)
        logging.getLogger('helpdesk').setLevel(app.config.get('LOG_LEVEL', 'INFO'))
        app.logger.info('Helpdesk sequence API startup')
    
    # Register blueprints
    from helpdesk.routes.sequence import sequence_bp
    app.register_blueprint(sequence_bp, url_prefix='/api/v1')
    app.logger.info("Registered sequence blueprint")
    
    # Sequence engine and scheduler share one wake notifier
    from helpdesk.services.wake import WakeNotifier
    from helpdesk.services.sequence_engine import SequenceEngine
    from helpdesk.services.scheduler import SequenceScheduler
    
    notifier = WakeNotifier(
        redis_url=app.config.get('REDIS_URL'),
        channel=app.config.get('SEQUENCE_WAKE_CHANNEL', 'sequence:execute')
    )
    SequenceEngine(app, wake_notifier=notifier)
    scheduler = SequenceScheduler(app, notifier=notifier)
    
    # Create database tables (avoid fatal boot failures in production)
    try:
        with app.app_context():
            # In production, only run if explicitly enabled
            if config_name != 'production' or os.environ.get('STARTUP_DB_CREATE_ALL', 'false').lower() == 'true':
                db.create_all()
                app.logger.info("Database tables created/verified")
            else:
                app.logger.info("Skipping db.create_all() on startup in production")
    except Exception as e:
        app.logger.error(f"Failed to create/verify database tables on startup: {str(e)}")
    
    # Start scheduler in production or when explicitly requested
    if config_name == 'production' or app.config.get('START_SCHEDULER', False):
        try:
            scheduler.start()
            app.logger.info("Sequence scheduler started automatically")
        except Exception as e:
            app.logger.error(f"Failed to start scheduler: {str(e)}")
    
    # Register global error handlers
    from helpdesk.utils.error_handlers import register_error_handlers
    register_error_handlers(app)
    app.logger.info("Registered global error handlers")
    
    # Simple health check endpoint
    @app.route('/')
    def index():
        return jsonify({'status': 'ok', 'message': 'Helpdesk sequence API is running'})
    
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5001, debug=True)
