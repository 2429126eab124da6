import os
from datetime import datetime
import click
from flask import Flask, jsonify
from flask_login import current_user
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv
from models import db, User
from extensions import login_manager, limiter
from auth import auth
from routes import habits_bp, completions_bp

load_dotenv()

app = Flask(__name__)

app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev_key_change_in_prod')
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('SQLALCHEMY_DATABASE_URI', 'sqlite:///db.sqlite3')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['ANON_SIGNIN_RATE_LIMIT'] = os.environ.get('ANON_SIGNIN_RATE_LIMIT', '30/minute')

db.init_app(app)
migrate = Migrate(app, db)

login_manager.init_app(app)
limiter.init_app(app)

@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))

@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Not signed in'}), 401

@app.before_request
def update_last_seen():
    if current_user.is_authenticated:
        current_user.last_seen = datetime.utcnow()
        db.session.commit()

@app.errorhandler(HTTPException)
def handle_http_error(e):
    if e.code >= 500:
        app.logger.error('Request failed: %s', e)
    return jsonify({'error': e.description}), e.code

@app.cli.command('init-db')
def init_db_command():
    """Drop and recreate all habit tables."""
    click.echo('Dropping all tables...')
    db.drop_all()
    click.echo('Creating all tables...')
    db.create_all()
    click.echo('Database initialized.')

app.register_blueprint(auth, url_prefix='/auth')
app.register_blueprint(habits_bp, url_prefix='/habits')
app.register_blueprint(completions_bp, url_prefix='/completions')

if __name__ == '__main__':
    app.run(debug=True)
