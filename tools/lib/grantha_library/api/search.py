"""Search routes."""

from flask import Blueprint, jsonify, request

from grantha_library.api.helpers import get_services

search = Blueprint('search', __name__, url_prefix='/api/search')


@search.route('/advanced', methods=['GET'])
def advanced_search():
    results = get_services().search.search(request.args.get('q', ''))
    return jsonify({'results': results})
