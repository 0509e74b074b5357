# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/grosave/routes/auth.py
"""
Phone + OTP authentication API routes

send-otp issues a short-lived code; verify-otp exchanges it for a session
token (creating the account and wallet on first sign-in). The token goes in
the Authorization header as "Bearer <token>".
"""

from flask import Blueprint, request, jsonify, current_app

from ..exceptions import GroSaveError
from ..services import auth_service
from ..services import session_service
from ..validation import require_json
from ..decorators import bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/send-otp")
def send_otp_route():
    """
    Issue an OTP for a phone number.

    With EXPOSE_OTP enabled (development) the code is echoed back in the
    response; delivery over SMS is not wired up.
    """
    try:
        data = require_json(request.get_json(silent=True))
        otp = auth_service.send_otp(data.get("phone"))

        response = {"success": True, "message": "OTP sent"}
        if current_app.config.get("EXPOSE_OTP"):
            response["otp"] = otp
        return jsonify(response), 200

    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to send OTP")
        return jsonify({"error": "Failed to send OTP"}), 500


@auth_bp.post("/verify-otp")
def verify_otp_route():
    """Verify the OTP and open a session. Creates the user on first sign-in."""
    try:
        data = require_json(request.get_json(silent=True))
        result = auth_service.verify_otp_and_login(
            data.get("phone"),
            data.get("otp"),
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "success": True,
            "token": result.token,
            "user": result.user.to_dict(),
            "session": result.session.to_dict(),
            "isNewUser": result.is_new_user,
        }), 200

    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to verify OTP")
        return jsonify({"error": "Login failed"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"success": True, "message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500
