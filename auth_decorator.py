import os
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import request, jsonify

JWT_ALGORITHM = "HS256"


def _secret():
    return os.environ.get("JWT_SECRET", "your-secret-key")


def issue_token(user_id):
    """Sign a token for the given user id"""
    hours = int(os.environ.get("JWT_EXPIRES_HOURS", 24))
    payload = {
        "userId": user_id,
        "exp": datetime.now(timezone.utc) + timedelta(hours=hours)
    }
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


# ================================================
# Decorator to require a signed bearer token
# ================================================
def token_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = None

        # Check for Authorization header (expected format: "Bearer <token>")
        if 'Authorization' in request.headers:
            token = request.headers['Authorization'].split("Bearer ")[-1].strip()

        if not token:
            return jsonify({'message': 'Missing token'}), 401

        try:
            decoded_token = jwt.decode(token, _secret(), algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError:
            return jsonify({'message': 'Invalid token'}), 401

        # Attach the authenticated user's id to the request object
        request.user_id = decoded_token.get('userId')

        return f(*args, **kwargs)

    return decorated_function
