from flask import request, jsonify, abort, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import IntegrityError
from . import completions_bp
from .habits import get_own_habit
from models import db, Habit, HabitCompletion
from utils import parse_day_key, day_key

def completion_to_dict(completion):
    return {
        'id': completion.id,
        'habit_id': completion.habit_id,
        'completion_date': day_key(completion.completion_date),
    }

def _date_arg(name, required=False):
    value = request.args.get(name)
    if value is None:
        if required:
            abort(400, description=f'{name} is required')
        return None
    try:
        return parse_day_key(value)
    except ValueError:
        abort(400, description=f'{name} must be a YYYY-MM-DD date')

@completions_bp.route('', methods=['GET'])
@login_required
def list_completions():
    habit_ids = request.args.getlist('habit_id', type=int)
    if not habit_ids:
        return jsonify([])

    query = HabitCompletion.query.join(Habit).filter(
        Habit.user_id == current_user.id,
        HabitCompletion.habit_id.in_(habit_ids)
    )
    start = _date_arg('start')
    end = _date_arg('end')
    if start:
        query = query.filter(HabitCompletion.completion_date >= start)
    if end:
        query = query.filter(HabitCompletion.completion_date <= end)

    completions = query.order_by(HabitCompletion.completion_date.asc()).all()
    return jsonify([completion_to_dict(c) for c in completions])

@completions_bp.route('/find', methods=['GET'])
@login_required
def find_completion():
    habit_id = request.args.get('habit_id', type=int)
    if habit_id is None:
        abort(400, description='habit_id is required')
    habit = get_own_habit(habit_id)
    target_date = _date_arg('date', required=True)

    completion = HabitCompletion.query.filter_by(habit_id=habit.id, completion_date=target_date).first()
    if not completion:
        abort(404, description='Completion not found')
    return jsonify(completion_to_dict(completion))

@completions_bp.route('', methods=['POST'])
@login_required
def insert_completion():
    data = request.get_json(silent=True) or {}
    habit_id = data.get('habit_id')
    if not isinstance(habit_id, int):
        return jsonify({'error': 'habit_id is required'}), 400
    try:
        target_date = parse_day_key(data.get('completion_date'))
    except ValueError:
        return jsonify({'error': 'completion_date must be a YYYY-MM-DD date'}), 400

    habit = get_own_habit(habit_id)
    completion = HabitCompletion(habit_id=habit.id, completion_date=target_date)
    db.session.add(completion)
    try:
        db.session.commit()
    except IntegrityError:
        # Unique (habit, date): a concurrent toggle got there first
        db.session.rollback()
        current_app.logger.warning('Duplicate completion for habit %s on %s', habit_id, target_date)
        return jsonify({'error': 'Completion already exists'}), 409
    return jsonify(completion_to_dict(completion)), 201

@completions_bp.route('/<int:completion_id>', methods=['DELETE'])
@login_required
def delete_completion(completion_id):
    completion = db.session.get(HabitCompletion, completion_id)
    if not completion:
        abort(404, description='Completion not found')
    if completion.habit.user_id != current_user.id:
        abort(403)
    db.session.delete(completion)
    db.session.commit()
    return '', 204
