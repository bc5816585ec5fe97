from app.api.admin.users import admin_users_bp
from app.api.admin.roles import admin_roles_bp
from app.api.admin.certifications import admin_certifications_bp
from app.api.admin.banned_emails import admin_banned_emails_bp
from app.api.admin.points import admin_points_bp
from app.api.admin.affiliates import admin_affiliates_bp
from app.api.admin.rewards import admin_rewards_bp
from app.api.admin.comments import admin_comments_bp
from app.api.admin.reviews import admin_reviews_bp
from app.api.admin.social_media import admin_social_media_bp
from app.api.admin.notifications import admin_notifications_bp
from app.api.admin.logs import admin_logs_bp
from app.api.admin.reports import admin_reports_bp
from app.api.admin.gallery import gallery_bp
from app.routes.auth import auth_bp
from app.routes.categories import categories_bp
from app.routes.products import products_bp
from app.routes.cart import cart_bp
from app.routes.orders import orders_bp
from app.routes.coupons import coupons_bp
from app.routes.affiliate import affiliate_bp
from app.routes.rewards import rewards_bp
from app.routes.blogs import blogs_bp
from app.routes.reviews import reviews_bp
from app.routes.salons import salons_bp, geocode_bp
from app.routes.pages import pages_bp
from app.routes.notifications import notifications_bp
from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import os

load_dotenv()
from app.config import Config  # noqa: E402
from app.extensions import db  # noqa: E402


def create_app():
    print("Starting create_app()")
    app = Flask(__name__)
    print(f"Flask app created: {app}")
    try:
        print("Loading config...")
        app.config.from_object(Config)
        print("Config loaded successfully")

        print("Initializing CORS...")
        CORS(app)
        print("CORS initialized")

        print("Initializing database...")
        db.init_app(app)
        print("Database initialized")

        print("Initializing Swagger/OpenAPI documentation...")
        host = os.environ.get("API_HOST", "127.0.0.1:5000")
        swagger_template = SWAGGER_TEMPLATE.copy()
        swagger_template["host"] = host

        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)
        print("Swagger initialized - Access at /api/docs")
        print("Registering blueprints...")

        blueprints = [
            auth_bp,
            categories_bp,
            products_bp,
            cart_bp,
            orders_bp,
            coupons_bp,
            affiliate_bp,
            rewards_bp,
            blogs_bp,
            reviews_bp,
            salons_bp,
            geocode_bp,
            pages_bp,
            notifications_bp,
            gallery_bp,
            admin_users_bp,
            admin_roles_bp,
            admin_certifications_bp,
            admin_banned_emails_bp,
            admin_points_bp,
            admin_affiliates_bp,
            admin_rewards_bp,
            admin_comments_bp,
            admin_reviews_bp,
            admin_social_media_bp,
            admin_notifications_bp,
            admin_logs_bp,
            admin_reports_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            print(f"  ✓ {bp.name} registered")

        print("All blueprints registered successfully")

        @app.route("/")
        def home():
            """
            Root endpoint - API status
            ---
            tags:
              - Utility
            responses:
              200:
                description: API is running
                schema:
                  type: object
                  properties:
                    status:
                      type: string
                    message:
                      type: string
            """
            return {"status": "ok", "message": "Backend is running!"}, 200

        print(f"Total routes registered: {len(list(app.url_map.iter_rules()))}")

        if app.config.get("SCHEDULER_ENABLED"):
            from app.scheduler import init_scheduler

            init_scheduler(app)

    except Exception as e:
        print(f"Error during app creation: {e}")
        import traceback

        print(f"Full traceback: {traceback.format_exc()}")
        raise

    print("create_app() completed successfully")
    return app


app = create_app()


if __name__ == "__main__":
    # Create a .env containing:
    #       DATABASE_URL=mysql+pymysql://<USER>:<PASSWORD>@<HOST>:<PORT>/biosculpture
    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
