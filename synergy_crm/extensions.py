"""
Central place for Flask extensions.

This avoids circular imports and keeps create_app clean.
Extensions are initialized in create_app() in __init__.py, where the app context is available.
The database belongs to the hosted backend (see backend.py), so there is no ORM here.
"""


from flask_login import LoginManager
from flask_wtf import CSRFProtect

# Global extension instances - these are imported and initialized in create_app() in __init__.py with the app context.
login_manager = LoginManager()
csrf = CSRFProtect()
