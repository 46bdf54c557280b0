"""
Simple script to create the threads and messages tables.
Run this once to set up the tables in your database.

Usage: python create_tables.py
"""

from sqlalchemy import create_engine, inspect
from models import Base
from database import DATABASE_URL

if __name__ == "__main__":
    print("Creating database tables...")
    engine = create_engine(DATABASE_URL)
    
    # Create all tables
    Base.metadata.create_all(bind=engine)
    
    # Verify tables were created
    existing = set(inspect(engine).get_table_names())
    for table in ("threads", "messages"):
        if table in existing:
            print(f"✓ {table.capitalize()} table created successfully!")
        else:
            print(f"✗ Failed to create {table} table")
    
    engine.dispose()
