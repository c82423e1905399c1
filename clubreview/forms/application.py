"""Form for public club application submissions."""

from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, Optional, URL, ValidationError

MAX_SPORT_TYPES = 10


class ClubApplicationForm(FlaskForm):
    """Validates a JSON application payload (CSRF is not used on the public API)."""

    class Meta:
        csrf = False

    name = StringField('Club Name', validators=[
        DataRequired(message='Club name is required'),
        Length(min=2, max=100, message='Club name must be between 2 and 100 characters'),
    ])
    contact_email = StringField('Contact Email', validators=[
        DataRequired(message='Contact email is required'),
        Email(message='Please enter a valid email address'),
        Length(max=255),
    ])
    contact_name = StringField('Contact Name', validators=[Optional(), Length(max=255)])
    contact_phone = StringField('Contact Phone', validators=[Optional(), Length(max=32)])
    location = StringField('Location', validators=[
        DataRequired(message='Location is required'),
        Length(max=255),
    ])
    description = TextAreaField('Description', validators=[
        Optional(),
        Length(max=2000, message='Description must be 2000 characters or less'),
    ])
    website_url = StringField('Website', validators=[Optional(), URL(), Length(max=512)])
    logo_url = StringField('Logo URL', validators=[Optional(), URL(), Length(max=512)])

    def __init__(self, payload: dict | None = None, **kwargs):
        payload = dict(payload or {})
        self.sport_types = payload.pop('sport_types', None) or []
        # Text fields only accept JSON strings
        self.mistyped = {
            name for name, value in payload.items()
            if value is not None and not isinstance(value, str)
        }
        for name in self.mistyped:
            payload[name] = None
        super().__init__(formdata=None, data=payload, **kwargs)

    def validate(self, extra_validators=None):
        valid = super().validate(extra_validators=extra_validators)
        for name in self.mistyped & set(self._fields):
            field = self._fields[name]
            field.errors = [f'{field.label.text} must be a string']
            valid = False
        try:
            self._validate_sport_types()
        except ValidationError as e:
            self.form_errors.append(str(e))
            valid = False
        return valid

    def _validate_sport_types(self):
        if not isinstance(self.sport_types, list):
            raise ValidationError('sport_types must be a list')
        if len(self.sport_types) > MAX_SPORT_TYPES:
            raise ValidationError(f'At most {MAX_SPORT_TYPES} sport types are allowed')
        if not all(isinstance(s, str) and 0 < len(s.strip()) <= 50 for s in self.sport_types):
            raise ValidationError('Each sport type must be a non-empty name of 50 characters or less')

    @property
    def cleaned_data(self) -> dict:
        data = {name: field.data for name, field in self._fields.items()}
        data['sport_types'] = [s.strip() for s in self.sport_types]
        return data
