from flask import Blueprint, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from models import db, User
from extensions import limiter

auth = Blueprint('auth', __name__)

def user_to_dict(user):
    return {
        'id': user.id,
        'is_anonymous': user.is_anonymous_account,
        'created_at': user.created_at.isoformat() if user.created_at else None,
    }

def signin_rate_limit():
    return current_app.config['ANON_SIGNIN_RATE_LIMIT']

@auth.route('/anonymous', methods=['POST'])
@limiter.limit(signin_rate_limit)
def sign_in_anonymously():
    # An existing session keeps its user instead of minting a new one
    if current_user.is_authenticated:
        return jsonify(user_to_dict(current_user)), 200

    user = User(is_anonymous_account=True)
    db.session.add(user)
    db.session.commit()
    login_user(user, remember=True)
    current_app.logger.info('Anonymous user %s signed in', user.id)
    return jsonify(user_to_dict(user)), 201

@auth.route('/user', methods=['GET'])
def get_current_user():
    if not current_user.is_authenticated:
        return jsonify({'error': 'Not signed in'}), 401
    return jsonify(user_to_dict(current_user))

@auth.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return '', 204
