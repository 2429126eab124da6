from flask import Blueprint

habits_bp = Blueprint('habits', __name__)
completions_bp = Blueprint('completions', __name__)

from . import habits, completions
