#!/usr/bin/env python3
"""
Main entry point for the gym operations ledger
"""
import os
from gymledger import create_app

# Create the Flask application
app = create_app(os.getenv('FLASK_ENV', 'development'))


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5001, debug=True, use_reloader=False)
