from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from . import content
from .errors import ValidationError
from .models import GENRES
from .ratings import get_rating_summary, rate_novel
from .utils import genre_filter, json_body, novel_patch

api_bp = Blueprint('api', __name__, url_prefix='/api')


# --- Catalog ---
@api_bp.route('/genres', methods=['GET'])
def list_genres():
    return jsonify(list(GENRES))


@api_bp.route('/novels', methods=['GET'])
def list_novels():
    novels = content.search_novels(text=request.args.get('q'), genres=genre_filter(request.args))
    return jsonify([novel.to_dict(include_content=False) for novel in novels])


@api_bp.route('/my-works', methods=['GET'])
@login_required
def my_works():
    novels = content.list_author_novels(current_user)
    return jsonify([novel.to_dict(include_content=False) for novel in novels])


# --- Novels ---
@api_bp.route('/novels', methods=['POST'])
@login_required
def create_novel():
    data = json_body()
    novel = content.create_novel(
        current_user,
        title=data.get('title'),
        synopsis=data.get('synopsis'),
        genres=data.get('genres'),
        has_chapters=data.get('hasChapters', False),
        content=data.get('content'),
        chapters=data.get('chapters'),
    )
    return jsonify(novel.to_dict()), 201


@api_bp.route('/novels/<int:novel_id>', methods=['GET'])
def get_novel(novel_id):
    return jsonify(content.get_novel(novel_id).to_dict())


@api_bp.route('/novels/<int:novel_id>', methods=['PUT'])
@login_required
def update_novel(novel_id):
    data = json_body()
    novel = content.update_novel(novel_id, current_user, novel_patch(data))
    return jsonify(novel.to_dict()), 200


@api_bp.route('/novels/<int:novel_id>', methods=['DELETE'])
@login_required
def delete_novel(novel_id):
    content.delete_novel(novel_id, current_user)
    return jsonify({'message': f'Novel {novel_id} deleted'}), 200


# --- Chapters ---
@api_bp.route('/novels/<int:novel_id>/chapters/<int:chapter_number>', methods=['GET'])
def get_chapter(novel_id, chapter_number):
    return jsonify(content.get_chapter(novel_id, chapter_number).to_dict())


@api_bp.route('/novels/<int:novel_id>/chapters', methods=['POST'])
@login_required
def add_chapter(novel_id):
    data = json_body()
    novel = content.add_chapter(novel_id, current_user,
                                title=data.get('title'),
                                content=data.get('content'),
                                position=data.get('position'))
    return jsonify(novel.to_dict()), 201


@api_bp.route('/novels/<int:novel_id>/chapters/<int:chapter_number>', methods=['DELETE'])
@login_required
def remove_chapter(novel_id, chapter_number):
    novel = content.remove_chapter(novel_id, current_user, chapter_number)
    return jsonify(novel.to_dict()), 200


# --- Ratings ---
@api_bp.route('/novels/<int:novel_id>/rating', methods=['GET'])
def rating_summary(novel_id):
    user = current_user if current_user.is_authenticated else None
    return jsonify(get_rating_summary(novel_id, user))


@api_bp.route('/novels/<int:novel_id>/rate', methods=['POST'])
@login_required
def rate(novel_id):
    data = json_body()
    if 'rating' not in data:
        raise ValidationError('Missing rating', details={'field': 'rating'})
    result = rate_novel(novel_id, current_user, data['rating'])
    return jsonify(result.to_dict()), 200
