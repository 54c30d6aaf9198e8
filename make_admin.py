# make_admin.py
# Usage: python make_admin.py partner@example.com

import sys

from app import create_app
from extensions import db
from models import User
from logger import app_logger
from partners.audit import AuditHelper


def make_admin(email):
    app = create_app()
    with app.app_context():
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            raise SystemExit(f"No partner with email {email} found. Sign up first.")

        if user.role == "admin":
            print(f"User id={user.id} ({user.email}) is already an admin.")
            return

        user.role = "admin"
        AuditHelper.log_event('admin_granted', 'user', user.id, details={'email': user.email})
        db.session.commit()
        app_logger.info(f"User {user.id} promoted to admin")
        print(f"User (id={user.id}, email={user.email}) is now admin.")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        raise SystemExit("Usage: python make_admin.py <email>")
    make_admin(sys.argv[1])
