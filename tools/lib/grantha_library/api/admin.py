"""Admin routes."""

from flask import Blueprint, jsonify

from grantha_library.api.helpers import get_services, json_body

admin = Blueprint('admin', __name__, url_prefix='/api/admin')


@admin.route('/login', methods=['POST'])
def login():
    """Checks admin credentials; returns the admin id on success."""
    body = json_body()
    account = get_services().admins.login(body.get('username'), body.get('password'))
    return jsonify({'success': True, **account})


@admin.route('/granthas', methods=['GET'])
def all_granthas():
    """Lists every grantha, drafts included."""
    granthas = get_services().content.list_all()
    return jsonify([g.to_json() for g in granthas])
