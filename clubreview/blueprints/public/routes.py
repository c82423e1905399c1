"""Public intake of club applications."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from clubreview.blueprints.admin.routes import serialize_application
from clubreview.errors import ValidationError
from clubreview.extensions import limiter
from clubreview.forms import ClubApplicationForm
from clubreview.security.config import public_rate_limit
from clubreview.services.applications import application_repository

public_api_bp = Blueprint('public_api', __name__, url_prefix='/api')


@public_api_bp.route('/club-applications', methods=['POST'])
@limiter.limit(public_rate_limit)
def submit_application():
    """Submit a new club application for review."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    form = ClubApplicationForm(payload)
    if not form.validate():
        errors = {name: field.errors for name, field in form._fields.items() if field.errors}
        if form.form_errors:
            errors['sport_types'] = list(form.form_errors)
        raise ValidationError("Please correct the highlighted fields", {'fields': errors})

    application = application_repository.create(form.cleaned_data)
    current_app.logger.info(f"New club application {application.id} submitted for {application.name}")

    response = jsonify({
        'success': True,
        'data': serialize_application(application),
        'message': 'Application submitted successfully',
    })
    response.status_code = 201
    return response
