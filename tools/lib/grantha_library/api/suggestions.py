"""Suggestion routes."""

from flask import Blueprint, jsonify

from grantha_library.api.helpers import get_services, json_body

suggestions = Blueprint('suggestions', __name__, url_prefix='/api/suggestions')


@suggestions.route('', methods=['POST'])
def submit_suggestion():
    suggestion = get_services().suggestions.submit(json_body())
    return jsonify({
        'success': True,
        'message': 'Suggestion submitted successfully',
        'suggestion': suggestion.to_json(),
    }), 201


@suggestions.route('/pending', methods=['GET'])
def pending_suggestions():
    return jsonify(get_services().suggestions.list_pending())


@suggestions.route('/<suggestion_id>/approve', methods=['PUT'])
def approve_suggestion(suggestion_id):
    return jsonify(get_services().suggestions.approve(suggestion_id).to_json())


@suggestions.route('/<suggestion_id>/reject', methods=['PUT'])
def reject_suggestion(suggestion_id):
    return jsonify(get_services().suggestions.reject(suggestion_id).to_json())
