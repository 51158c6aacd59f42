# WSGI entry point
import os

from gymledger import create_app

# Ensure instance directory exists
instance_dir = os.path.join(os.path.abspath(os.path.dirname(__file__)), 'instance')
if not os.path.exists(instance_dir):
    os.makedirs(instance_dir, exist_ok=True)

application = create_app('production')
