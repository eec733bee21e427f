"""
Entry point for Flask.

Usage (from project root):

    export SUPABASE_URL=... SUPABASE_ANON_KEY=... SUPABASE_SERVICE_ROLE_KEY=...
    flask --app run.py --debug run

"""

from synergy_crm import create_app

# WSGI application object. `flask run` looks for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only). Use `flask run` or a WSGI server otherwise.
    app.run(debug=True)
