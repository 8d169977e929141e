# /run.py
import os

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

# Now, import the app factory
from carehome import create_app

# Create the app instance
app = create_app(os.environ.get('FLASK_CONFIG'))

if __name__ == '__main__':
    app.run(host='127.0.0.1', port=int(os.environ.get('PORT', 5000)), debug=app.debug)
