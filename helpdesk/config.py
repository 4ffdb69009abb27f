import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Base configuration class."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = 86400  # 24 hours

    # Messaging gateway used to deliver sequence steps
    CHANNEL_GATEWAY_URL = os.environ.get('CHANNEL_GATEWAY_URL', 'http://localhost:3001/api/v1')
    CHANNEL_GATEWAY_API_KEY = os.environ.get('CHANNEL_GATEWAY_API_KEY')
    CHANNEL_GATEWAY_TIMEOUT = int(os.environ.get('CHANNEL_GATEWAY_TIMEOUT', '30'))

    # Redis pub/sub used to wake the sequence scheduler early
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    SEQUENCE_WAKE_CHANNEL = os.environ.get('SEQUENCE_WAKE_CHANNEL', 'sequence:execute')

    # Sequence scheduler configuration
    SEQUENCE_POLL_INTERVAL = int(os.environ.get('SEQUENCE_POLL_INTERVAL', '10'))  # seconds
    SEQUENCE_BATCH_SIZE = int(os.environ.get('SEQUENCE_BATCH_SIZE', '100'))
    SEQUENCE_CLAIM_LEASE_SECONDS = int(os.environ.get('SEQUENCE_CLAIM_LEASE_SECONDS', '300'))
    START_SCHEDULER = os.environ.get('START_SCHEDULER', 'false').lower() == 'true'

    # CORS configuration
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

    # Logging configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///helpdesk.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = True

    # Development-specific settings
    TESTING = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False

    # Production database (PostgreSQL)
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Production security settings
    SECRET_KEY = os.environ.get('SECRET_KEY')
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY')

    # Production gateway
    CHANNEL_GATEWAY_URL = os.environ.get('CHANNEL_GATEWAY_URL')

    # Production CORS (more restrictive)
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '').split(',')

    @classmethod
    def validate_config(cls):
        """Validate production configuration."""
        if not cls.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL environment variable is required for production")

        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable is required for production")

        if not cls.JWT_SECRET_KEY:
            raise ValueError("JWT_SECRET_KEY environment variable is required for production")

        if not cls.CHANNEL_GATEWAY_URL:
            raise ValueError("CHANNEL_GATEWAY_URL environment variable is required for production")

        if not cls.CORS_ORIGINS or cls.CORS_ORIGINS == ['']:
            raise ValueError("CORS_ORIGINS environment variable is required for production")


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
    REDIS_URL = None  # Wake-ups stay in-process during tests
    CHANNEL_GATEWAY_URL = 'https://gateway.test/api/v1'
    CHANNEL_GATEWAY_API_KEY = 'test-gateway-key'


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
