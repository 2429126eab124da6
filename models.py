from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime

db = SQLAlchemy()

DEFAULT_ICON = '⭐'
DEFAULT_COLOR = '#4CAF50'

class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    is_anonymous_account = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_seen = db.Column(db.DateTime, default=datetime.utcnow)

    habits = db.relationship('Habit', backref='user', lazy=True, cascade="all, delete-orphan")

class Habit(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    icon = db.Column(db.String(16), default=DEFAULT_ICON)
    description = db.Column(db.Text, default='')
    color = db.Column(db.String(7), default=DEFAULT_COLOR)
    position = db.Column(db.Integer, default=0) # display order, lowest first
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    completions = db.relationship('HabitCompletion', backref='habit', lazy=True, cascade="all, delete-orphan")

class HabitCompletion(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    habit_id = db.Column(db.Integer, db.ForeignKey('habit.id', ondelete='CASCADE'), nullable=False, index=True)
    completion_date = db.Column(db.Date, nullable=False) # The local calendar day it counts for
    completed_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint('habit_id', 'completion_date', name='_habit_date_uc'),)
