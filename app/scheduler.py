from apscheduler.schedulers.background import BackgroundScheduler
import atexit
from sqlalchemy import select
from app.extensions import db
from app.models import Coupon, PointsRedemption, SocialMediaPost
from app.utils.helpers import utcnow

scheduler = BackgroundScheduler()


def publish_due_posts(app):
    """Publish APPROVED social posts whose scheduled date has passed."""
    current_time = utcnow()
    current_time_str = current_time.strftime("%Y-%m-%d %H:%M:%S")

    try:
        with app.app_context():
            due_posts = db.session.scalars(
                select(SocialMediaPost)
                .where(SocialMediaPost.status == "APPROVED")
                .where(SocialMediaPost.scheduled_date <= current_time)
            ).all()

            for post in due_posts:
                post.status = "PUBLISHED"
                post.published_at = current_time
            db.session.commit()

            count = len(due_posts)
            if count:
                print(f"[SCHEDULER] {current_time_str} - Published {count} social media post(s)")
            else:
                print(f"[SCHEDULER] {current_time_str} - No social media posts due")
            return count

    except Exception as e:
        print(f"[SCHEDULER] {current_time_str} - Error publishing social media posts: {e}")
        with app.app_context():
            db.session.rollback()
        return 0


def refresh_redemption_statuses(app):
    """Activate redemption coupons that became valid and expire the lapsed ones."""
    current_time = utcnow()
    current_time_str = current_time.strftime("%Y-%m-%d %H:%M:%S")

    try:
        with app.app_context():
            redemptions = db.session.scalars(
                select(PointsRedemption)
                .join(Coupon, Coupon.id == PointsRedemption.coupon_id)
                .where(PointsRedemption.status.in_(("PENDING", "ACTIVE")))
            ).all()

            activated = expired = 0
            for redemption in redemptions:
                coupon = redemption.coupon
                if coupon.valid_until and coupon.valid_until < current_time:
                    redemption.status = "EXPIRED"
                    expired += 1
                elif redemption.status == "PENDING" and (
                    coupon.valid_from is None or coupon.valid_from <= current_time
                ):
                    redemption.status = "ACTIVE"
                    activated += 1
            db.session.commit()

            print(
                f"[SCHEDULER] {current_time_str} - Redemptions: {activated} activated, {expired} expired"
            )
            return activated + expired

    except Exception as e:
        print(f"[SCHEDULER] {current_time_str} - Error refreshing redemptions: {e}")
        with app.app_context():
            db.session.rollback()
        return 0


def init_scheduler(app):
    """Initialize the APScheduler scheduler with Flask app context."""
    scheduler.add_job(
        publish_due_posts, "interval", minutes=5, args=[app],
        id="publish_due_posts", replace_existing=True,
    )
    scheduler.add_job(
        refresh_redemption_statuses, "interval", minutes=15, args=[app],
        id="refresh_redemption_statuses", replace_existing=True,
    )

    if not scheduler.running:
        scheduler.start()
        print("[SCHEDULER] Scheduler started")
    else:
        print("[SCHEDULER] Scheduler already running (skipping duplicate start)")

    # Shut down the scheduler when exiting the app
    atexit.register(lambda: scheduler.shutdown() if scheduler.running else None)
