import re
import secrets
import string
import time
from decimal import Decimal, InvalidOperation
from models import User


def validate_email(email):
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email or "") is not None


def validate_phone(phone):
    return re.match(r'^\+?\d{9,15}$', phone or "") is not None


def clean_text(value):
    """Stripped string from JSON input; numbers keep their text, None and containers become empty"""
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def parse_decimal(value):
    """Decimal from JSON input (number or numeric string), None when unparseable"""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def generate_referral_code(length=8):
    chars = string.ascii_uppercase + string.digits
    while True:
        code = ''.join(secrets.choice(chars) for _ in range(length))
        if not User.query.filter_by(referral_code=code).first():
            return code


def generate_partner_id(user):
    """
    Display identifier PC-<initials>-<last 6 digits of a millisecond timestamp>,
    e.g. PC-JS-482913 for Jane Smith
    """
    first_initial = (user.first_name or user.email or "X")[0].upper()
    last_initial = (user.last_name or "X")[0].upper()

    while True:
        suffix = str(int(time.time() * 1000))[-6:]
        partner_id = f"PC-{first_initial}{last_initial}-{suffix}"
        if not User.query.filter_by(partner_id=partner_id).first():
            return partner_id
        time.sleep(0.001)
