import logging
import os
import secrets
from functools import wraps

from flask import (
    Flask,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import text

db = SQLAlchemy()

from .models import (
    Certificate,
    Event,
    Organizer,
    Participant,
)
from .constants import CATEGORY_BADGES, STATUS_BADGES
from .shared.time import fmt_dt


def create_app():
    app = Flask(__name__, template_folder="templates")
    app.secret_key = os.getenv("SECRET_KEY", "dev")
    app.config["PREFERRED_URL_SCHEME"] = "https"
    app.jinja_env.filters["fmt_dt"] = fmt_dt

    def generate_csrf_token():
        token = session.get("_csrf_token")
        if not token:
            token = secrets.token_hex(16)
            session["_csrf_token"] = token
        return token

    app.jinja_env.globals["csrf_token"] = generate_csrf_token
    app.jinja_env.globals["category_badges"] = CATEGORY_BADGES
    app.jinja_env.globals["status_badges"] = STATUS_BADGES

    DB_USER = os.getenv("DB_USER", "eventcert")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "eventcert")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = 25 * 1024 * 1024

    app.config["GEMINI_API_KEY"] = os.getenv("GEMINI_API_KEY") or os.getenv(
        "GOOGLE_API_KEY"
    )
    app.config["AI_TEXT_MODEL"] = os.getenv("AI_TEXT_MODEL", "gemini-2.5-flash")
    app.config["AI_IMAGE_MODEL"] = os.getenv(
        "AI_IMAGE_MODEL", "imagen-4.0-fast-generate-001"
    )
    app.config["AI_TIMEOUT"] = float(os.getenv("AI_TIMEOUT", "60"))
    app.config["PUBLIC_BASE_URL"] = os.getenv("PUBLIC_BASE_URL", "")

    db.init_app(app)

    @app.context_processor
    def inject_user():
        user = None
        user_id = session.get("user_id")
        if user_id:
            user = db.session.get(Organizer, user_id)
        return {"current_user": user}

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    def login_required(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return redirect(url_for("auth.login", next=request.path))
            return fn(*args, **kwargs)

        return wrapper

    @app.get("/", endpoint="dashboard")
    @login_required
    def dashboard():
        recent_events = (
            Event.query.order_by(Event.date.desc(), Event.created_at.desc())
            .limit(3)
            .all()
        )
        return render_template(
            "dashboard.html",
            total_events=db.session.query(Event.id).count(),
            total_participants=db.session.query(Participant.id).count(),
            total_certificates=db.session.query(Certificate.id).count(),
            recent_events=recent_events,
        )

    @app.get("/stats.json")
    @login_required
    def stats_json():
        return jsonify(
            {
                "events": db.session.query(Event.id).count(),
                "participants": db.session.query(Participant.id).count(),
                "certificates": db.session.query(Certificate.id).count(),
            }
        )

    from .routes.auth import bp as auth_bp
    from .routes.events import bp as events_bp
    from .routes.participants import bp as participants_bp
    from .routes.certificates import bp as certificates_bp
    from .routes.verify import bp as verify_bp
    from .routes.settings_mail import bp as settings_mail_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(participants_bp)
    app.register_blueprint(certificates_bp)
    app.register_blueprint(verify_bp)
    app.register_blueprint(settings_mail_bp)

    with app.app_context():
        if not os.getenv("FLASK_SKIP_SEED"):
            seed_initial_organizer_safely()

    return app


def seed_initial_organizer_safely() -> None:
    """Seed an initial admin organizer if the organizers table is empty."""

    try:
        if db.engine.url.drivername.startswith("sqlite"):
            return
        cols = {
            row[0]
            for row in db.session.execute(
                text(
                    "SELECT column_name FROM information_schema.columns WHERE table_name='organizers'"
                )
            )
        }
        required = {"id", "email", "password_hash"}
        if not required.issubset(cols):
            logging.info("seed skipped (columns missing)")
            return

        if db.session.query(Organizer).count() > 0:
            return

        first_email = os.getenv("FIRST_ORGANIZER_EMAIL", "admin@example.com").lower()
        admin = Organizer(email=first_email, full_name=first_email, is_admin=True)
        password = os.getenv("FIRST_ORGANIZER_PASSWORD")
        if password:
            admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logging.exception("seed_initial_organizer_safely failed")
