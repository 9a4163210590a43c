"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py seed-admin
    flask --app run.py --debug run

"""

from nexaproc import create_app

# WSGI application object. `flask run` and WSGI servers look for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # Direct `python run.py` usage is for development only.
    app.run(debug=True)
