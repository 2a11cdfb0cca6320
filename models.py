from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

DEFAULT_PREFERENCES = {
    "diet": "standard",
    "transport": "car",
    "energyUse": "standard",
    "wasteManagement": "standard"
}

PREFERENCE_OPTIONS = {
    "diet": ("standard", "flexitarian", "vegetarian", "vegan", "other"),
    "transport": ("car", "public_transport", "bike", "walk", "mixed"),
    "energyUse": ("standard", "conservative", "minimal", "renewable"),
    "wasteManagement": ("standard", "recycle", "compost", "zerowaste")
}


def _iso(value):
    return value.isoformat() if value else None


# USER
class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    username = db.Column(db.String(255), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    password = db.Column(db.String(255), nullable=False)
    firstName = db.Column(db.String(255), nullable=True)
    lastName = db.Column(db.String(255), nullable=True)
    sustainabilityScore = db.Column(db.Integer, nullable=False, default=0)
    greenPoints = db.Column(db.Integer, nullable=False, default=0)
    badges = db.Column(db.JSON, nullable=False, default=list)
    goalPreferences = db.Column(db.JSON, nullable=False, default=lambda: dict(DEFAULT_PREFERENCES))
    createdAt = db.Column(db.DateTime, nullable=False, default=datetime.now)
    lastActive = db.Column(db.DateTime, nullable=True)

    habits = db.relationship('Habit', backref='user', lazy=True, cascade='all, delete-orphan')
    chats = db.relationship('Chat', backref='user', lazy=True, cascade='all, delete-orphan')

    @property
    def name(self):
        if self.firstName and self.lastName:
            return f"{self.firstName} {self.lastName}"
        return self.firstName or self.username

    def to_dict(self):
        # password is never serialized
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "firstName": self.firstName,
            "lastName": self.lastName,
            "name": self.name,
            "sustainabilityScore": self.sustainabilityScore,
            "greenPoints": self.greenPoints,
            "badges": list(self.badges or []),
            "goalPreferences": dict(self.goalPreferences or DEFAULT_PREFERENCES),
            "createdAt": _iso(self.createdAt),
            "lastActive": _iso(self.lastActive)
        }


# HABIT
class Habit(db.Model):
    __tablename__ = 'habits'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    userId = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    description = db.Column(db.String(500), nullable=False)
    category = db.Column(db.String(20), nullable=False)
    carbonFootprint = db.Column(db.Float, nullable=False, default=0)
    sustainableAlternative = db.Column(db.String(500), nullable=True)
    isCompleted = db.Column(db.Boolean, nullable=False, default=False)
    completedDate = db.Column(db.DateTime, nullable=True)
    pointsEarned = db.Column(db.Integer, nullable=False, default=0)
    date = db.Column(db.DateTime, nullable=False, default=datetime.now)
    createdAt = db.Column(db.DateTime, nullable=False, default=datetime.now)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.userId,
            "description": self.description,
            "category": self.category,
            "carbonFootprint": self.carbonFootprint,
            "sustainableAlternative": self.sustainableAlternative,
            "isCompleted": self.isCompleted,
            "completedDate": _iso(self.completedDate),
            "pointsEarned": self.pointsEarned,
            "date": _iso(self.date),
            "createdAt": _iso(self.createdAt)
        }


# CHAT
class Chat(db.Model):
    __tablename__ = 'chats'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    userId = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False, default="New conversation")
    messages = db.Column(db.JSON, nullable=False, default=list)  # [{role, content, timestamp}]
    createdAt = db.Column(db.DateTime, nullable=False, default=datetime.now)
    updatedAt = db.Column(db.DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    def add_message(self, role, content):
        # reassign so the JSON column is flagged dirty
        self.messages = list(self.messages or []) + [{
            "role": role,
            "content": content,
            "timestamp": datetime.now().isoformat()
        }]

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.userId,
            "title": self.title,
            "messages": list(self.messages or []),
            "createdAt": _iso(self.createdAt),
            "updatedAt": _iso(self.updatedAt)
        }
