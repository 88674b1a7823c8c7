"""Forms for the game blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Length, Optional


class RegistrationForm(FlaskForm):
    """Form for joining the waiting room."""

    first_name = StringField("First Name", validators=[DataRequired(), Length(max=50)])
    last_name = StringField("Last Name", validators=[DataRequired(), Length(max=50)])


class ConfirmIdentityForm(RegistrationForm):
    """Form for resuming as an existing participant from a new session."""

    alias = StringField("Alias", validators=[DataRequired(), Length(max=80)])


class VoteForm(FlaskForm):
    """Form for casting a ballot."""

    code = StringField("Code", validators=[DataRequired(), Length(max=20)])
    alias = StringField("Alias", validators=[Optional(), Length(max=80)])
