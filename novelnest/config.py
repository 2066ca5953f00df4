import os


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///novelnest.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie is the only credential, keep it away from scripts
    SESSION_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_HTTPONLY = True

    # Bounded retries for optimistic-concurrency conflicts (rating, novel edit)
    NOVELNEST_MAX_WRITE_ATTEMPTS = int(os.environ.get('NOVELNEST_MAX_WRITE_ATTEMPTS', 3))
    NOVELNEST_MIN_PASSWORD_LENGTH = int(os.environ.get('NOVELNEST_MIN_PASSWORD_LENGTH', 6))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_LEVEL = 'WARNING'
