# Import important modules and create the booking package
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()

def create_app(config=None):
    # Initialize app
    app = Flask(__name__)

    # Configure app from the environment, then apply explicit overrides
    from booking.config import load_config
    app.config.update(load_config())
    if config:
        app.config.update(config)

    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)

    # Register models before creating tables
    from booking import models  # noqa: F401

    # Create database tables
    with app.app_context():
        db.create_all()
        app.logger.info(f"Booking tables ready on {app.config['SQLALCHEMY_DATABASE_URI']}")

    return app
