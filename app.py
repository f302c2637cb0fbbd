"""Flask application with route handlers"""
from flask import Flask, jsonify, request, send_file
from flask_cors import CORS
import io
import os

from utils.auth import AUTH_HEADER, get_auth_user_id
from utils.validation import MAX_EMAIL_LENGTH, MAX_ID_LENGTH, sanitize_payload, sanitize_string
from utils.logger import log_error, log_info
from utils.rate_limit import init_rate_limiter, RATE_LIMITS
from services import entity_service, form_service, investment_service, profile_service
from services.errors import SafeError, ValidationError
from services.models import PAYLOAD_KEYS, FormSession, SafeFormValues

app = Flask(__name__)
CORS(app, resources={
    r"/*": {
        "origins": os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(','),
        "methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": ["Content-Type", AUTH_HEADER],
        "expose_headers": ["Content-Disposition", "X-Investment-Id", "X-Form-Step"],
        "supports_credentials": True
    }
})

# Initialize rate limiter
limiter = init_rate_limiter(app)


def _current_user():
    """Resolve the users row for the authenticated caller, or None without the auth header"""
    auth_user_id = get_auth_user_id()
    if not auth_user_id:
        return None
    return profile_service.get_user_by_auth_id(auth_user_id)


def _error_response(error: SafeError):
    return jsonify(error.to_dict()), error.status_code


def _json_body():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _request_body():
    data = _json_body()
    session = form_service.parse_session(data.get('session'))
    payload = data.get('values') or {}
    if not isinstance(payload, dict):
        raise ValidationError("Form values must be an object", field='values')
    values = SafeFormValues.from_payload(sanitize_payload(payload, list(PAYLOAD_KEYS)))
    return session, values


def _session_payload(session: FormSession, **extra):
    payload = {"session": session.to_dict(), "query": session.to_query()}
    payload.update(extra)
    return payload


@app.route('/')
def home():
    return jsonify({
        "message": "YC Post-Money SAFE Generator API",
        "status": "running",
        "version": "1.0.0"
    })


@app.route('/health')
@limiter.exempt
def health_check():
    return jsonify({
        "status": "healthy",
        "message": "API is running successfully"
    })


@app.route('/api/entities', methods=['GET'])
@limiter.limit(RATE_LIMITS['read'])
def get_entities():
    """Funds and companies the current user can reuse"""
    try:
        user = _current_user()
        if not user:
            return jsonify({"error": "User ID required"}), 401

        entities = entity_service.list_entities(user.id)
        return jsonify([entity.to_dict() for entity in entities])
    except SafeError as e:
        return _error_response(e)
    except Exception as e:
        log_error("Error fetching entities", e)
        return jsonify({"error": str(e)}), 500


@app.route('/api/entities/<entity_id>/select', methods=['POST'])
@limiter.limit(RATE_LIMITS['read'])
def select_entity(entity_id):
    """Form fields for a selected fund or company, including its signatory"""
    try:
        user = _current_user()
        if not user:
            return jsonify({"error": "User ID required"}), 401

        entities = entity_service.list_entities(user.id)
        patch = entity_service.resolve_selection(sanitize_string(entity_id, max_length=MAX_ID_LENGTH), entities)
        return jsonify({"values": patch})
    except SafeError as e:
        return _error_response(e)
    except Exception as e:
        log_error("Error resolving entity selection", e)
        return jsonify({"error": str(e)}), 500


@app.route('/api/investments', methods=['GET'])
@limiter.limit(RATE_LIMITS['read'])
def get_investments():
    """Investments created by the current user"""
    try:
        user = _current_user()
        if not user:
            return jsonify({"error": "User ID required"}), 401

        investments = investment_service.list_investments(user)
        result = []
        for details in investments:
            row = details.to_dict()
            row['investment_type_label'] = investment_service.format_investment_type(
                details.investment.investment_type
            )
            result.append(row)
        return jsonify(result)
    except SafeError as e:
        return _error_response(e)
    except Exception as e:
        log_error("Error listing investments", e)
        return jsonify({"error": str(e)}), 500


@app.route('/api/investments/<investment_id>', methods=['GET'])
@limiter.limit(RATE_LIMITS['read'])
def resume_investment(investment_id):
    """Resume a form: the stored values plus the session from ?step=&sharing="""
    try:
        if not get_auth_user_id():
            return jsonify({"error": "User ID required"}), 401

        params = {
            'id': investment_id,
            'step': request.args.get('step'),
            'sharing': request.args.get('sharing'),
        }
        state = form_service.resume(params)
        return jsonify(_session_payload(state.session, values=state.values.to_payload()))
    except SafeError as e:
        return _error_response(e)
    except Exception as e:
        log_error("Error resuming investment", e)
        return jsonify({"error": str(e)}), 500


@app.route('/api/form/next', methods=['POST'])
@limiter.limit(RATE_LIMITS['write'])
def form_next():
    """Save the current step and move on (or just save, on a shared link)"""
    try:
        user = _current_user()
        if not user:
            return jsonify({"error": "User ID required"}), 401

        session, values = _request_body()
        result = form_service.advance(session, values, user)
        return jsonify(_session_payload(result.session, completed=result.completed))
    except SafeError as e:
        return _error_response(e)
    except Exception as e:
        log_error("Error saving form step", e)
        return jsonify({"error": str(e)}), 500


@app.route('/api/form/back', methods=['POST'])
def form_back():
    """Previous step; nothing is saved"""
    try:
        data = _json_body()
        session = form_service.back(form_service.parse_session(data.get('session')))
        return jsonify(_session_payload(session))
    except SafeError as e:
        return _error_response(e)
    except Exception as e:
        log_error("Error going back a step", e)
        return jsonify({"error": str(e)}), 500


@app.route('/api/form/submit', methods=['POST'])
@limiter.limit(RATE_LIMITS['render'])
def form_submit():
    """Generate the SAFE and return it as a .docx download"""
    try:
        user = _current_user()
        if not user:
            return jsonify({"error": "User ID required"}), 401

        session, values = _request_body()
        result = form_service.submit(session, values, user)
        response = send_file(
            io.BytesIO(result.document.content),
            mimetype=result.document.MIMETYPE,
            as_attachment=True,
            download_name=result.document.filename
        )
        response.headers['X-Investment-Id'] = str(result.session.investment_id)
        response.headers['X-Form-Step'] = str(result.session.step)
        return response
    except SafeError as e:
        return _error_response(e)
    except Exception as e:
        log_error("Error generating SAFE", e)
        return jsonify({"error": str(e)}), 500


@app.route('/api/investments/<investment_id>/share', methods=['POST'])
@limiter.limit(RATE_LIMITS['share'])
def share_investment(investment_id):
    """Share link for the founder's section, emailed to the founder"""
    try:
        user = _current_user()
        if not user:
            return jsonify({"error": "User ID required"}), 401

        data = _json_body()
        email = sanitize_string(data.get('email'), max_length=MAX_EMAIL_LENGTH)
        base_url = os.environ.get('APP_BASE_URL', request.host_url)
        session = FormSession(investment_id=sanitize_string(investment_id, max_length=MAX_ID_LENGTH), step=form_service.SHARE_STEP)
        result = form_service.share(session, email, base_url)
        log_info(f"Investment {investment_id} shared by user {user.id}")
        return jsonify(result)
    except SafeError as e:
        return _error_response(e)
    except Exception as e:
        log_error("Error sharing investment", e)
        return jsonify({"error": str(e)}), 500


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG', 'false').lower() == 'true')
