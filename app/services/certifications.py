from sqlalchemy import select

from ..extensions import db
from ..models import CertificationCategory

NO_CERTIFICATION_MESSAGE = (
    "This product category requires a certification. "
    "Please contact support to get certified."
)


def allowed_category_ids(certification):
    if not certification:
        return set()
    return {link.category_id for link in certification.certification_categories}


def category_is_restricted(category_id):
    return (
        db.session.scalar(
            select(CertificationCategory.id)
            .where(CertificationCategory.category_id == category_id)
            .limit(1)
        )
        is not None
    )


def can_purchase(user, product):
    """Return ``(allowed, reason)`` for ``user`` buying ``product``."""
    if user is not None and user.role == "ADMIN":
        return True, None
    if product.category_id is None:
        return True, None

    certification = user.certification if user is not None else None
    if certification is None:
        if category_is_restricted(product.category_id):
            return False, NO_CERTIFICATION_MESSAGE
        return True, None

    if product.category_id in allowed_category_ids(certification):
        return True, None
    return False, (
        f"Your {certification.name} certification does not allow purchasing "
        "from this category. Please contact support if you need access."
    )
