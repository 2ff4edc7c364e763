from flask import Blueprint, request, jsonify, current_app

from models import db
from models.feedback import Feedback, SURVEY_TYPES
from utils.notifier import get_notifier
from utils.validation import ValidationError, bool_field, email_field, int_field, text_field

feedback_bp = Blueprint("feedback", __name__, url_prefix="/api/feedback")


def feedback_json(f: Feedback) -> dict:
    return {
        "id": f.id,
        "surveyType": f.survey_type,
        "rating": f.rating,
        "experience": f.experience,
        "highlight": f.highlight,
        "improvement": f.improvement,
        "wouldRecommend": f.would_recommend,
        "email": f.email,
        "createdAt": f.created_at.isoformat(),
    }


def feedback_stats() -> dict:
    stats = {}
    for survey_type in SURVEY_TYPES:
        total, avg = (
            db.session.query(db.func.count(Feedback.id), db.func.avg(Feedback.rating))
            .filter(Feedback.survey_type == survey_type)
            .one()
        )
        key = survey_type.capitalize()
        stats[f"total{key}"] = total or 0
        stats[f"avg{key}"] = round(float(avg or 0), 2)
    return stats


@feedback_bp.post("")
def submit_feedback():
    if not current_app.config.get("FEATURES", {}).get("surveys_enabled", True):
        return jsonify(error="Surveys are currently disabled"), 503

    data = request.get_json(silent=True) or {}
    survey_type = text_field(data, "surveyType", required=True)
    if survey_type not in SURVEY_TYPES:
        raise ValidationError(f"surveyType must be one of: {', '.join(SURVEY_TYPES)}")
    rating = int_field(data, "rating", minimum=1, maximum=5)

    row = Feedback(
        survey_type=survey_type,
        rating=rating,
        experience=text_field(data, "experience", max_length=120),
        highlight=text_field(data, "highlight", max_length=2000),
        improvement=text_field(data, "improvement", max_length=2000),
        would_recommend=bool_field(data, "wouldRecommend"),
        email=email_field(data, "email", required=False),
    )
    db.session.add(row)
    db.session.commit()

    get_notifier().feedback_submitted(survey_type, rating, row.email)
    return jsonify(success=True, message="Thank you for your feedback!"), 201


@feedback_bp.get("/stats")
def stats():
    return jsonify(feedback_stats()), 200
