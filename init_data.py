#!/usr/bin/env python3
"""
Initialize database with default data for testing
"""
import os
os.environ.setdefault('FLASK_APP', 'run.py')

from gymledger import create_app, db
from gymledger.seed import seed_demo_data, DEMO_OWNER

app = create_app('development')

with app.app_context():
    db.create_all()

    seeded = seed_demo_data()
    if seeded is None:
        print("Database already initialized!")
    else:
        gym, owner, plans = seeded
        print(f"Created gym: {gym.name}")
        print(f"Created owner: {owner.email}")
        print(f"Created {len(plans)} membership plans")

        print("\n" + "="*50)
        print("Database initialized successfully!")
        print("="*50)
        print("\nLogin credentials:")
        print(f"  Email: {DEMO_OWNER['owner_email']}")
        print(f"  Password: {DEMO_OWNER['owner_password']}")
        print("\nYou can now run: flask sweep-memberships")
