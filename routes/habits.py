from flask import request, jsonify, abort, current_app
from flask_login import login_required, current_user
from sqlalchemy import func
from . import habits_bp
from models import db, Habit, HabitCompletion
from utils import clean_habit_fields, parse_day_key, day_key, local_today, AVAILABLE_ICONS
from services.calendar_grid import build_grid, today_status, yearly_counts

def habit_to_dict(habit):
    return {
        'id': habit.id,
        'name': habit.name,
        'icon': habit.icon,
        'description': habit.description or '',
        'color': habit.color,
        'position': habit.position,
        'created_at': habit.created_at.isoformat() if habit.created_at else None,
    }

def get_own_habit(habit_id):
    habit = db.session.get(Habit, habit_id)
    if not habit:
        abort(404, description='Habit not found')
    if habit.user_id != current_user.id:
        abort(403)
    return habit

def _ordered_habits():
    return (Habit.query.filter_by(user_id=current_user.id)
            .order_by(Habit.position.asc(), Habit.created_at.asc(), Habit.id.asc())
            .all())

@habits_bp.route('', methods=['GET'])
@login_required
def list_habits():
    return jsonify([habit_to_dict(h) for h in _ordered_habits()])

@habits_bp.route('', methods=['POST'])
@login_required
def create_habit():
    try:
        fields = clean_habit_fields(request.get_json(silent=True))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    # New habits go to the end of the list
    last_position = (db.session.query(func.max(Habit.position))
                     .filter(Habit.user_id == current_user.id).scalar())
    habit = Habit(user_id=current_user.id,
                  position=0 if last_position is None else last_position + 1,
                  **fields)
    db.session.add(habit)
    db.session.commit()
    current_app.logger.info('User %s created habit %s', current_user.id, habit.id)
    return jsonify(habit_to_dict(habit)), 201

@habits_bp.route('/<int:habit_id>', methods=['PUT'])
@login_required
def update_habit(habit_id):
    habit = get_own_habit(habit_id)
    try:
        fields = clean_habit_fields(request.get_json(silent=True), partial=True)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    for name, value in fields.items():
        setattr(habit, name, value)
    db.session.commit()
    return jsonify(habit_to_dict(habit))

@habits_bp.route('/<int:habit_id>', methods=['DELETE'])
@login_required
def delete_habit(habit_id):
    habit = get_own_habit(habit_id)
    db.session.delete(habit)
    db.session.commit()
    current_app.logger.info('User %s deleted habit %s', current_user.id, habit_id)
    return '', 204

@habits_bp.route('/order', methods=['PUT'])
@login_required
def reorder_habits():
    data = request.get_json(silent=True) or {}
    habit_ids = data.get('habit_ids')
    habits = _ordered_habits()

    if not isinstance(habit_ids, list) or sorted(habit_ids, key=str) != sorted((h.id for h in habits), key=str):
        return jsonify({'error': 'habit_ids must list every habit exactly once'}), 400

    by_id = {h.id: h for h in habits}
    for position, habit_id in enumerate(habit_ids):
        by_id[habit_id].position = position
    db.session.commit()
    return jsonify([habit_to_dict(by_id[i]) for i in habit_ids])

@habits_bp.route('/<int:habit_id>/grid', methods=['GET'])
@login_required
def habit_grid(habit_id):
    habit = get_own_habit(habit_id)

    today_str = request.args.get('today')
    if today_str:
        try:
            today = parse_day_key(today_str)
        except ValueError:
            return jsonify({'error': 'today must be a YYYY-MM-DD date'}), 400
    else:
        today = local_today()

    completed_days = {day_key(c.completion_date) for c in habit.completions}
    try:
        grid = build_grid(today, completed_days, habit.color,
                          layout=request.args.get('layout', 'year'),
                          weeks=request.args.get('weeks', 52, type=int))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    data = grid.to_dict()
    data['habit_id'] = habit.id
    data['today_status'] = today_status(today, completed_days)
    return jsonify(data)

@habits_bp.route('/heatmap', methods=['GET'])
@login_required
def heatmap():
    year = request.args.get('year', local_today().year, type=int)

    completions = HabitCompletion.query.join(Habit).filter(Habit.user_id == current_user.id).all()
    per_habit = {}
    for c in completions:
        per_habit.setdefault(c.habit_id, set()).add(day_key(c.completion_date))

    return jsonify({'year': year, 'counts': yearly_counts(per_habit.values(), year)})

@habits_bp.route('/icons', methods=['GET'])
def icon_choices():
    return jsonify(AVAILABLE_ICONS)
