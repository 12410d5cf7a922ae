"""Verse routes."""

from flask import Blueprint, jsonify

from grantha_library.api.helpers import get_services, json_body

verses = Blueprint('verses', __name__, url_prefix='/api/verses')


@verses.route('/grantha/<grantha_id>', methods=['GET'])
def list_verses(grantha_id):
    """Lists a grantha's verses in chapter and verse order."""
    content = get_services().content
    return jsonify([v.to_json() for v in content.list_verses(grantha_id)])


@verses.route('/<verse_id>', methods=['GET'])
def get_verse(verse_id):
    return jsonify(get_services().content.get_verse(verse_id).to_json())


@verses.route('', methods=['POST'])
def create_verse():
    verse = get_services().content.create_verse(json_body())
    return jsonify(verse.to_json()), 201


@verses.route('/<verse_id>', methods=['PUT'])
def update_verse(verse_id):
    verse = get_services().content.update_verse(verse_id, json_body())
    return jsonify(verse.to_json())


@verses.route('/<verse_id>', methods=['DELETE'])
def delete_verse(verse_id):
    deleted = get_services().content.delete_verse(verse_id)
    return jsonify({
        'message': 'Verse and associated commentaries deleted successfully',
        'deletedCommentaries': deleted,
    })
