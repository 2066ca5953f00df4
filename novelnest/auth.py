from flask import Blueprint, jsonify
from flask_login import login_user, current_user, logout_user, login_required
from . import db, login_manager
from .errors import AuthError
from .identity import authenticate, change_password, register_user, update_profile
from .models.user import User
from .ratings import list_user_ratings
from .utils import json_body

auth = Blueprint('auth', __name__, url_prefix='/api')


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    # JSON API: answer 401 instead of redirecting to a login page
    raise AuthError()


@auth.route('/register', methods=['POST'])
def register():
    data = json_body()
    user = register_user(data.get('name'), data.get('email'), data.get('password'))
    login_user(user)
    return jsonify(user.to_dict()), 201


@auth.route('/login', methods=['POST'])
def login():
    data = json_body()
    user = authenticate(data.get('email'), data.get('password'))
    login_user(user, remember=bool(data.get('remember', False)))
    return jsonify(user.to_dict()), 200


@auth.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out'}), 200


@auth.route('/profile', methods=['GET'])
@login_required
def get_profile():
    return jsonify(current_user.to_dict())


@auth.route('/profile', methods=['PUT'])
@login_required
def put_profile():
    data = json_body()
    user = update_profile(current_user, name=data.get('name'), email=data.get('email'))
    return jsonify(user.to_dict()), 200


@auth.route('/profile/ratings', methods=['GET'])
@login_required
def profile_ratings():
    return jsonify(list_user_ratings(current_user))


@auth.route('/change-password', methods=['POST'])
@login_required
def post_change_password():
    data = json_body()
    change_password(current_user, data.get('currentPassword'), data.get('newPassword'))
    return jsonify({'message': 'Password changed successfully'}), 200
