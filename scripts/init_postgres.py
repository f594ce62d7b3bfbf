"""
Check the PostgreSQL database for the auth service.
Run once before migrating: python scripts/init_postgres.py

Requires: PostgreSQL installed and running. Create user and database:

  sudo -u postgres psql
  CREATE USER internship WITH PASSWORD 'internship';
  CREATE DATABASE internship_db OWNER internship;
  GRANT ALL PRIVILEGES ON DATABASE internship_db TO internship;
  \q
"""

import sys

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from internship_auth.config import settings


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("Database URL is not PostgreSQL. Skipping.")
        return
    try:
        engine = create_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("PostgreSQL connection OK. Database exists.")
    except SQLAlchemyError as e:
        print(f"Cannot connect to PostgreSQL: {e}")
        print("\nCreate database first:")
        print("  psql -U postgres -c \"CREATE USER internship WITH PASSWORD 'internship';\"")
        print("  psql -U postgres -c \"CREATE DATABASE internship_db OWNER internship;\"")
        print("  psql -U postgres -c \"GRANT ALL PRIVILEGES ON DATABASE internship_db TO internship;\"")
        sys.exit(1)


if __name__ == "__main__":
    main()
