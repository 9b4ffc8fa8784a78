# ==============================================================================
# config.py
# ------------------------------------------------------------------------------
# Configuration settings for the fleet incentive application.
# Uses environment variables for sensitive data to keep them out of version control.
# ==============================================================================

import os
from dotenv import load_dotenv

# Determine the absolute path of the project directory
basedir = os.path.abspath(os.path.dirname(__file__))

# Load environment variables from a .env file located in the project root
load_dotenv(os.path.join(basedir, '.env'))

class Config:
    """
    Base configuration class. Contains default settings that can be overridden
    by environment-specific configurations.
    """
    # --- Security ---
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-should-really-set-a-secret-key-in-your-env-file'

    # --- Database Configuration ---
    # SQLite by default; any SQLAlchemy URL can be supplied through DATABASE_URL.
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance/app.db')

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Logging ---
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'

    # --- Workflow ---
    # Recorded as changed_by / created_by when the caller does not name an actor.
    DEFAULT_ACTOR = os.environ.get('DEFAULT_ACTOR') or 'system'
    # Stamped into approved_by when an approval is made without an actor.
    APPROVER_NAME = os.environ.get('APPROVER_NAME') or 'admin'

    # --- Performance Import ---
    ALLOWED_EXTENSIONS = {'.xlsx'}
