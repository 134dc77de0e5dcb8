# main.py
import os

from prep_admin.main import create_app

# Create the app instance for Gunicorn to find
app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=app.config.get("DEBUG", False))
