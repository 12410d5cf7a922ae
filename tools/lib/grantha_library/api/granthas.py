"""Grantha routes: listing, CRUD, export and import."""

import unicodedata
from urllib.parse import quote

from flask import Blueprint, jsonify, request

from grantha_library.api.helpers import get_services, json_body
from grantha_library.exceptions import ValidationError
from grantha_library.transfer import export_filename, parse_import_file

granthas = Blueprint('granthas', __name__, url_prefix='/api/granthas')

IMPORT_FIELD = 'granthaFile'


@granthas.route('', methods=['GET'])
def list_granthas():
    """Lists published granthas page by page."""
    page = request.args.get('page', type=int)
    limit = request.args.get('limit', type=int)
    return jsonify(get_services().content.list_published(page, limit))


@granthas.route('/<grantha_id>', methods=['GET'])
def get_grantha(grantha_id):
    return jsonify(get_services().content.get_grantha(grantha_id).to_json())


@granthas.route('/<grantha_id>/export', methods=['GET'])
def export_grantha(grantha_id):
    """Serves the export snapshot as a file download."""
    services = get_services()
    grantha = services.content.get_grantha(grantha_id)
    response = jsonify(services.transfer.export_grantha(grantha_id))
    _set_attachment(response, export_filename(grantha))
    return response


@granthas.route('/import', methods=['POST'])
def import_grantha():
    """Imports an uploaded export snapshot."""
    upload = request.files.get(IMPORT_FIELD)
    if upload is None or not upload.filename:
        raise ValidationError('No file uploaded')
    if not _is_json_upload(upload):
        raise ValidationError('Only JSON files are allowed')
    data = parse_import_file(upload.read())
    return jsonify(get_services().transfer.import_grantha(data)), 201


@granthas.route('', methods=['POST'])
def create_grantha():
    grantha = get_services().content.create_grantha(json_body())
    return jsonify(grantha.to_json()), 201


@granthas.route('/<grantha_id>', methods=['PUT'])
def update_grantha(grantha_id):
    grantha = get_services().content.update_grantha(grantha_id, json_body())
    return jsonify(grantha.to_json())


@granthas.route('/<grantha_id>', methods=['DELETE'])
def delete_grantha(grantha_id):
    counts = get_services().content.delete_grantha(grantha_id)
    return jsonify({'message': 'Grantha deleted successfully', **counts})


def _is_json_upload(upload) -> bool:
    """Returns True for uploads declared or named as JSON."""
    return (
        upload.mimetype == 'application/json'
        or upload.filename.lower().endswith('.json')
    )


def _set_attachment(response, filename: str) -> None:
    """Marks a response as a download, keeping non-ASCII names intact."""
    try:
        filename.encode('ascii')
        names = {'filename': filename}
    except UnicodeEncodeError:
        simple = unicodedata.normalize('NFKD', filename)
        simple = simple.encode('ascii', 'ignore').decode('ascii').strip(' _')
        if not simple.endswith('_export.json'):
            simple = 'grantha_export.json'
        names = {
            'filename': simple,
            'filename*': f"UTF-8''{quote(filename, safe='')}",
        }
    response.headers.set('Content-Disposition', 'attachment', **names)
