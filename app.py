from flask import Flask, request, jsonify, abort
from flask_cors import CORS
from sqlalchemy import func, desc
from werkzeug.security import generate_password_hash, check_password_hash
from auth_decorator import token_required, issue_token
from datetime import date, time, timedelta, datetime
import logging
import os
from dotenv import load_dotenv
from models import db, User, Habit, Chat, PREFERENCE_OPTIONS, DEFAULT_PREFERENCES
from carbon import (
    HABIT_CATEGORIES,
    COMPLETION_POINTS,
    InvalidFootprintInput,
    calculate_footprint,
    badges_earned,
    next_sustainability_score
)
from dashboard import build_dashboard, round_carbon
import ai_service
from ai_service import AIServiceError

# Load environment variables from .env (for local dev)
load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

app = Flask(__name__)


def database_uri():
    """DATABASE_URL wins, then the DB_* MySQL settings, then a local SQLite file"""
    if os.environ.get("DATABASE_URL"):
        return os.environ["DATABASE_URL"]

    DB_HOST = os.environ.get("DB_HOST")
    if DB_HOST:
        import pymysql

        # Setup MySQL driver
        pymysql.install_as_MySQLdb()

        DB_USER = os.environ.get("DB_USER")
        DB_PASS = os.environ.get("DB_PASS")
        DB_PORT = os.environ.get("DB_PORT", "3306")
        DB_NAME = os.environ.get("DB_NAME")
        SSL_PATH = os.environ.get("SSL_PATH")
        uri = f"mysql+pymysql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}?charset=utf8mb4"
        if SSL_PATH:
            uri += f"&ssl_ca={SSL_PATH}"
        return uri

    return "sqlite:///ecohabits.db"


app.config['SQLALCHEMY_DATABASE_URI'] = database_uri()
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

# Initialize database
db.init_app(app)

with app.app_context():
    db.create_all()


# ============================
# CORS & security headers
# ============================
DEFAULT_CLIENT_ORIGINS = ["http://localhost:4200", "http://localhost:3000"]


def client_origins():
    """Origins allowed to call the API: CLIENT_ORIGINS, else the local dev clients"""
    allowed = os.environ.get("CLIENT_ORIGINS")
    if allowed:
        return [o.strip() for o in allowed.split(",") if o.strip()]
    return DEFAULT_CLIENT_ORIGINS


CORS(
    app,
    origins=client_origins(),
    supports_credentials=True,
    methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["Authorization"],
    max_age=86400
)


@app.after_request
def set_security_headers(resp):
    resp.headers['X-Content-Type-Options'] = 'nosniff'
    resp.headers['X-Frame-Options'] = 'DENY'
    return resp


# ============================
# Error handlers
# ============================
@app.errorhandler(400)
def bad_request(e):
    return jsonify({'message': e.description}), 400


@app.errorhandler(404)
def not_found(e):
    return jsonify({'message': 'Not found'}), 404


@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify({'message': 'Method not allowed'}), 405


@app.errorhandler(500)
def server_error(e):
    original = getattr(e, 'original_exception', None) or e
    app.logger.error("Unhandled error: %s", original, exc_info=original)
    return jsonify({'message': 'Something went wrong!'}), 500


# ============================
# Helpers
# ============================
def find_user(user_id):
    """Look up a user by id; ids that are not integers never match"""
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def find_habit(habit_id):
    try:
        return db.session.get(Habit, int(habit_id))
    except (TypeError, ValueError):
        return None


def json_body():
    """Request JSON as a dict; an empty body reads as {}"""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data():
            abort(400, description='Request body must be valid JSON')
        return {}
    if not isinstance(data, dict):
        abort(400, description='Request body must be a JSON object')
    return data


def text_field(data, key):
    """Stripped string value of key, '' when missing"""
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        abort(400, description=f'{key} must be a string')
    return value.strip()


def request_user_id(data=None):
    """userId from the body or query string, else the token's user"""
    if data and data.get('userId') is not None:
        return data.get('userId')
    return request.args.get('userId') or request.user_id


def parse_datetime(value):
    """Parse an ISO-8601 string into a naive local datetime"""
    if not value:
        return None
    if isinstance(value, str) and value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def validate_habit_fields(data, partial=False):
    """
    Validate editable habit fields

    Returns:
        tuple: (fields dict, error message or None)
    """
    fields = {}

    if 'description' in data or not partial:
        description = text_field(data, 'description')
        if not description:
            return None, 'Description is required'
        if len(description) > 500:
            return None, 'Description is too long (max 500 characters)'
        fields['description'] = description

    if 'category' in data or not partial:
        category = data.get('category')
        if category not in HABIT_CATEGORIES:
            return None, f"Category must be one of: {', '.join(HABIT_CATEGORIES)}"
        fields['category'] = category

    if 'carbonFootprint' in data or not partial:
        value = data.get('carbonFootprint', 0)
        if isinstance(value, bool):
            return None, 'Carbon footprint must be a number'
        try:
            footprint = float(value)
        except (TypeError, ValueError):
            return None, 'Carbon footprint must be a number'
        if footprint < 0:
            return None, 'Carbon footprint value must be positive'
        fields['carbonFootprint'] = footprint

    if 'sustainableAlternative' in data:
        fields['sustainableAlternative'] = text_field(data, 'sustainableAlternative') or None

    return fields, None


# ============================
# ROUTE: Register
# ============================
@app.route('/api/users/register', methods=['POST'])
def register_user():
    data = json_body()
    username = text_field(data, 'username')
    email = text_field(data, 'email').lower()
    password = data.get('password') or ''
    if not isinstance(password, str):
        abort(400, description='password must be a string')

    if not username or not email or not password:
        return jsonify({'message': 'Username, email and password are required'}), 400

    existing = User.query.filter((User.email == email) | (User.username == username)).first()
    if existing:
        return jsonify({'message': 'User already exists'}), 400

    user = User(
        username=username,
        email=email,
        password=generate_password_hash(password),
        firstName=text_field(data, 'firstName') or None,
        lastName=text_field(data, 'lastName') or None,
        badges=[],
        goalPreferences=dict(DEFAULT_PREFERENCES)
    )
    db.session.add(user)
    db.session.commit()
    app.logger.info("Registered user %s", user.id)

    return jsonify(user.to_dict()), 201


# ============================
# ROUTE: Login
# ============================
@app.route('/api/users/login', methods=['POST'])
def login_user():
    data = json_body()
    email = text_field(data, 'email').lower()
    password = data.get('password') or ''
    if not isinstance(password, str):
        abort(400, description='password must be a string')

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({'message': 'User not found'}), 404

    if not check_password_hash(user.password, password):
        return jsonify({'message': 'Invalid credentials'}), 401

    user.lastActive = datetime.now()
    db.session.commit()

    return jsonify({
        'user': user.to_dict(),
        'token': issue_token(user.id)
    }), 200


# ============================
# ROUTE: Users
# ============================
@app.route('/api/users', methods=['GET'])
@token_required
def get_all_users():
    users = User.query.order_by(User.id).all()
    return jsonify([u.to_dict() for u in users]), 200


@app.route('/api/users/<user_id>', methods=['GET'])
@token_required
def get_user(user_id):
    user = find_user(user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404
    return jsonify(user.to_dict()), 200


@app.route('/api/users/<user_id>', methods=['PUT'])
@token_required
def update_user(user_id):
    user = find_user(user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404

    data = json_body()
    if 'email' in data:
        email = text_field(data, 'email').lower()
        if not email:
            return jsonify({'message': 'Email cannot be empty'}), 400
        taken = User.query.filter(User.email == email, User.id != user.id).first()
        if taken:
            return jsonify({'message': 'Email already in use'}), 400
        user.email = email
    if 'firstName' in data:
        user.firstName = text_field(data, 'firstName') or None
    if 'lastName' in data:
        user.lastName = text_field(data, 'lastName') or None

    db.session.commit()
    return jsonify(user.to_dict()), 200


@app.route('/api/users/<user_id>/stats', methods=['GET'])
@token_required
def get_user_stats(user_id):
    user = find_user(user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404

    return jsonify({
        'sustainabilityScore': user.sustainabilityScore,
        'greenPoints': user.greenPoints,
        'badges': list(user.badges or [])
    }), 200


@app.route('/api/users/<user_id>/badges', methods=['GET'])
@token_required
def get_user_badges(user_id):
    user = find_user(user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404
    return jsonify({'badges': list(user.badges or [])}), 200


@app.route('/api/users/<user_id>/preferences', methods=['POST'])
@token_required
def update_user_preferences(user_id):
    user = find_user(user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404

    data = json_body()
    preferences = data.get('goalPreferences')
    if not isinstance(preferences, dict):
        return jsonify({'message': 'No goalPreferences provided'}), 400

    for key, value in preferences.items():
        if key not in PREFERENCE_OPTIONS:
            return jsonify({'message': f'Unknown preference: {key}'}), 400
        if value not in PREFERENCE_OPTIONS[key]:
            return jsonify({
                'message': f"{key} must be one of: {', '.join(PREFERENCE_OPTIONS[key])}"
            }), 400

    merged = dict(user.goalPreferences or DEFAULT_PREFERENCES)
    merged.update(preferences)
    user.goalPreferences = merged
    db.session.commit()

    return jsonify(user.to_dict()), 200


# ============================
# ROUTE: Dashboard
# ============================
@app.route('/api/users/<user_id>/dashboard', methods=['GET'])
@token_required
def get_dashboard_data(user_id):
    try:
        user = find_user(user_id)
        if not user:
            return jsonify({'message': 'User not found'}), 404

        habits = Habit.query \
            .filter_by(userId=user.id) \
            .order_by(desc(Habit.date)) \
            .all()

        return jsonify(build_dashboard(habits)), 200

    except Exception:
        app.logger.exception("Error getting dashboard data for user %s", user_id)
        return jsonify({'message': 'Server error'}), 500


# ============================
# ROUTE: Habits
# ============================
@app.route('/api/habits', methods=['GET'])
@token_required
def get_user_habits():
    user = find_user(request_user_id())
    if not user:
        return jsonify({'message': 'User not found'}), 404

    habits = Habit.query \
        .filter_by(userId=user.id) \
        .order_by(desc(Habit.date)) \
        .all()
    return jsonify([h.to_dict() for h in habits]), 200


@app.route('/api/habits', methods=['POST'])
@token_required
def create_habit():
    data = json_body()

    user = find_user(request_user_id(data))
    if not user:
        return jsonify({'message': 'User not found'}), 404

    fields, error = validate_habit_fields(data)
    if error:
        return jsonify({'message': error}), 400

    try:
        record_date = parse_datetime(data.get('date')) or datetime.now()
    except (TypeError, ValueError):
        return jsonify({'message': 'Invalid date'}), 400

    habit = Habit(userId=user.id, date=record_date, isCompleted=False, pointsEarned=0, **fields)
    db.session.add(habit)
    db.session.commit()

    return jsonify(habit.to_dict()), 201


@app.route('/api/habits/summary/weekly', methods=['GET'])
@token_required
def get_weekly_summary():
    user = find_user(request_user_id())
    if not user:
        return jsonify({'message': 'User not found'}), 404

    today = date.today()
    start_date = today - timedelta(days=6)
    window_start = datetime.combine(start_date, time.min)

    created = Habit.query.filter(
        Habit.userId == user.id,
        Habit.date >= window_start
    ).all()

    completed = Habit.query.filter(
        Habit.userId == user.id,
        Habit.isCompleted.is_(True),
        Habit.completedDate >= window_start
    ).all()

    by_category = dict(
        db.session.query(Habit.category, func.count(Habit.id))
        .filter(Habit.userId == user.id, Habit.date >= window_start)
        .group_by(Habit.category)
        .all()
    )

    daily = {start_date + timedelta(days=i): 0 for i in range(7)}
    for h in completed:
        day = h.completedDate.date()
        if day in daily:
            daily[day] += 1

    return jsonify({
        'startDate': start_date.isoformat(),
        'endDate': today.isoformat(),
        'totalHabits': len(created),
        'completedHabits': len(completed),
        'carbonSaved': round_carbon(h.carbonFootprint for h in completed),
        'byCategory': {c: int(by_category.get(c, 0)) for c in HABIT_CATEGORIES},
        'dailyCompletions': [
            {'date': day.isoformat(), 'count': count} for day, count in daily.items()
        ]
    }), 200


@app.route('/api/habits/categories/<category>', methods=['GET'])
@token_required
def get_habits_by_category(category):
    if category not in HABIT_CATEGORIES:
        return jsonify({'message': f"Category must be one of: {', '.join(HABIT_CATEGORIES)}"}), 400

    user = find_user(request_user_id())
    if not user:
        return jsonify({'message': 'User not found'}), 404

    habits = Habit.query \
        .filter_by(userId=user.id, category=category) \
        .order_by(desc(Habit.date)) \
        .all()
    return jsonify([h.to_dict() for h in habits]), 200


@app.route('/api/habits/<habit_id>', methods=['GET'])
@token_required
def get_habit(habit_id):
    habit = find_habit(habit_id)
    if not habit:
        return jsonify({'message': 'Habit not found'}), 404
    return jsonify(habit.to_dict()), 200


@app.route('/api/habits/<habit_id>', methods=['PUT'])
@token_required
def update_habit(habit_id):
    habit = find_habit(habit_id)
    if not habit:
        return jsonify({'message': 'Habit not found'}), 404

    fields, error = validate_habit_fields(json_body(), partial=True)
    if error:
        return jsonify({'message': error}), 400

    for key, value in fields.items():
        setattr(habit, key, value)
    db.session.commit()

    return jsonify(habit.to_dict()), 200


@app.route('/api/habits/<habit_id>', methods=['DELETE'])
@token_required
def delete_habit(habit_id):
    habit = find_habit(habit_id)
    if not habit:
        return jsonify({'message': 'Habit not found'}), 404

    db.session.delete(habit)
    db.session.commit()
    return jsonify({'message': 'Habit deleted'}), 200


@app.route('/api/habits/<habit_id>/complete', methods=['POST'])
@token_required
def complete_habit(habit_id):
    habit = find_habit(habit_id)
    if not habit:
        return jsonify({'message': 'Habit not found'}), 404

    if habit.isCompleted:
        return jsonify({'message': 'Habit already completed'}), 400

    user = habit.user
    habit.isCompleted = True
    habit.completedDate = datetime.now()
    habit.pointsEarned = COMPLETION_POINTS

    user.greenPoints = (user.greenPoints or 0) + COMPLETION_POINTS
    user.sustainabilityScore = next_sustainability_score(user.sustainabilityScore)
    db.session.flush()

    completed_count = Habit.query.filter_by(userId=user.id, isCompleted=True).count()
    new_badges = badges_earned(completed_count, user.badges)
    if new_badges:
        user.badges = list(user.badges or []) + new_badges

    db.session.commit()

    return jsonify({
        'message': 'Habit completed',
        'habit': habit.to_dict(),
        'pointsEarned': COMPLETION_POINTS,
        'greenPoints': user.greenPoints,
        'newBadges': new_badges
    }), 200


# ============================
# ROUTE: AI assistant
# ============================
@app.route('/api/ai/chat', methods=['POST'])
@token_required
def chat_with_ai():
    data = json_body()
    message = text_field(data, 'message')
    if not message:
        return jsonify({'message': 'Message is required'}), 400

    user = find_user(request_user_id(data))
    if not user:
        return jsonify({'message': 'User not found'}), 404

    chat = None
    if data.get('chatId'):
        try:
            chat = Chat.query.filter_by(id=int(data['chatId']), userId=user.id).first()
        except (TypeError, ValueError):
            chat = None
        if not chat:
            return jsonify({'message': 'Chat not found'}), 404

    history = chat.messages if chat else []
    try:
        reply = ai_service.generate_text(ai_service.chat_prompt(user, message, history))
    except AIServiceError:
        return jsonify({'message': 'AI service unavailable'}), 503

    if not chat:
        chat = Chat(userId=user.id, title=message[:50], messages=[])
        db.session.add(chat)
    chat.add_message('user', message)
    chat.add_message('ai', reply)
    db.session.commit()

    return jsonify({'message': reply, 'chatId': chat.id}), 200


@app.route('/api/ai/chats', methods=['GET'])
@token_required
def get_user_chats():
    user = find_user(request_user_id())
    if not user:
        return jsonify({'message': 'User not found'}), 404

    chats = Chat.query \
        .filter_by(userId=user.id) \
        .order_by(desc(Chat.updatedAt), desc(Chat.id)) \
        .all()
    return jsonify([c.to_dict() for c in chats]), 200


@app.route('/api/ai/chats/<chat_id>', methods=['GET'])
@token_required
def get_chat(chat_id):
    try:
        chat = db.session.get(Chat, int(chat_id))
    except (TypeError, ValueError):
        chat = None
    if not chat:
        return jsonify({'message': 'Chat not found'}), 404
    return jsonify(chat.to_dict()), 200


@app.route('/api/ai/analyze-habits', methods=['POST'])
@token_required
def analyze_habits():
    data = json_body()
    user = find_user(request_user_id(data))
    if not user:
        return jsonify({'message': 'User not found'}), 404

    habits = Habit.query.filter_by(userId=user.id).order_by(desc(Habit.date)).all()
    try:
        analysis = ai_service.generate_text(ai_service.analysis_prompt(user, habits))
    except AIServiceError:
        return jsonify({'message': 'AI service unavailable'}), 503

    return jsonify({
        'analysis': analysis,
        'userProfile': {
            'sustainabilityScore': user.sustainabilityScore,
            'greenPoints': user.greenPoints,
            'badges': list(user.badges or [])
        },
        'habitCount': len(habits)
    }), 200


@app.route('/api/ai/suggestions', methods=['POST'])
@token_required
def get_suggestions():
    data = json_body()
    category = data.get('category')
    if category is not None and category not in HABIT_CATEGORIES:
        return jsonify({'message': f"Category must be one of: {', '.join(HABIT_CATEGORIES)}"}), 400

    user = find_user(request_user_id(data))
    if not user:
        return jsonify({'message': 'User not found'}), 404

    try:
        suggestions = ai_service.generate_text(ai_service.suggestions_prompt(user, category))
    except AIServiceError:
        return jsonify({'message': 'AI service unavailable'}), 503

    return jsonify({
        'suggestions': suggestions,
        'category': category or 'all',
        'userProfile': {
            'sustainabilityScore': user.sustainabilityScore,
            'greenPoints': user.greenPoints
        }
    }), 200


@app.route('/api/ai/calculate-footprint', methods=['POST'])
@token_required
def ai_calculate_footprint():
    data = json_body()
    description = text_field(data, 'description')
    if not description:
        return jsonify({'message': 'Description is required'}), 400

    try:
        analysis = ai_service.generate_text(ai_service.footprint_prompt(description))
    except AIServiceError:
        return jsonify({'message': 'AI service unavailable'}), 503

    return jsonify({'description': description, 'analysis': analysis}), 200


# ============================
# ROUTE: Footprint calculator
# ============================
@app.route('/api/footprint/calculate', methods=['POST'])
def footprint_calculator():
    payload = json_body()
    try:
        result = calculate_footprint(payload)
    except InvalidFootprintInput as e:
        return jsonify({'message': str(e)}), 400
    return jsonify(result), 200


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get("PORT", 5000)), debug=True)
