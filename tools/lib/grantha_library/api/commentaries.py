"""Commentary routes."""

from flask import Blueprint, jsonify

from grantha_library.api.helpers import get_services, json_body

commentaries = Blueprint('commentaries', __name__, url_prefix='/api/commentaries')


@commentaries.route('/verse/<verse_id>', methods=['GET'])
def verse_hierarchy(verse_id):
    """Returns the commentary forest of a verse."""
    return jsonify(get_services().tree.build_verse_hierarchy(verse_id))


@commentaries.route('/grantha/<grantha_id>', methods=['GET'])
def grantha_commentaries(grantha_id):
    """Returns all commentaries of a grantha as a flat list."""
    return jsonify(get_services().tree.list_for_grantha(grantha_id))


@commentaries.route('/<commentary_id>', methods=['GET'])
def get_commentary(commentary_id):
    return jsonify(get_services().tree.get_with_parent(commentary_id))


@commentaries.route('', methods=['POST'])
def create_commentary():
    commentary = get_services().tree.create(json_body())
    return jsonify(commentary.to_json()), 201


@commentaries.route('/<commentary_id>', methods=['PUT'])
def update_commentary(commentary_id):
    commentary = get_services().tree.update(commentary_id, json_body())
    return jsonify(commentary.to_json())


@commentaries.route('/<commentary_id>', methods=['DELETE'])
def delete_commentary(commentary_id):
    """Deletes a commentary with all of its sub-commentaries."""
    deleted = get_services().tree.delete_cascade(commentary_id)
    return jsonify({
        'message': 'Commentary and all sub-commentaries deleted successfully',
        'deletedCount': deleted,
    })
