from typing import List, Optional

from sqlalchemy import (
    DECIMAL,
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata

BigIntegerPK = BigInteger().with_variant(Integer, "sqlite")

ORDER_STATUSES = ("PENDING", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED")
MODERATION_STATUSES = ("PENDING", "APPROVED", "REJECTED")
PUBLISH_STATUSES = ("DRAFT", "PUBLISHED")
DISCOUNT_TYPES = ("PERCENTAGE", "FIXED")
POINTS_ACTION_TYPES = (
    "OWN_PURCHASE",
    "REFERRAL_SIGNUP",
    "REFERRAL_FIRST_ORDER",
    "REFERRAL_REPEAT_ORDER",
)
POINTS_TRANSACTION_TYPES = (
    "PURCHASE",
    "AFFILIATE_SIGNUP",
    "AFFILIATE_PURCHASE",
    "REDEMPTION",
    "MANUAL_ADJUSTMENT",
    "EXPIRED",
)
REDEMPTION_STATUSES = ("PENDING", "ACTIVE", "USED", "EXPIRED", "CANCELLED")
AFFILIATE_TIERS = ("BRONZE", "SILVER", "GOLD", "PLATINUM")
REFERRAL_STATUSES = ("PENDING", "ACTIVE", "INACTIVE")
SOCIAL_PLATFORMS = ("INSTAGRAM", "FACEBOOK", "TWITTER", "LINKEDIN", "TIKTOK")
SOCIAL_CONTENT_TYPES = ("POST", "STORY", "REELS")
SOCIAL_STATUSES = ("DRAFT", "PENDING_REVIEW", "APPROVED", "REJECTED", "PUBLISHED")
ADMIN_ACTION_TYPES = (
    "CREATE",
    "UPDATE",
    "DELETE",
    "VIEW",
    "EXPORT",
    "APPROVE",
    "REJECT",
    "ACTIVATE",
    "DEACTIVATE",
    "BULK_OPERATION",
)


class Role(Base):
    __tablename__ = "roles"
    __table_args__ = (Index("role_name", "name", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(100), nullable=False)
    permissions = mapped_column(JSON)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class Certification(Base):
    __tablename__ = "certifications"
    __table_args__ = (Index("certification_name", "name", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(100), nullable=False)
    description = mapped_column(Text)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    certification_categories: Mapped[List["CertificationCategory"]] = relationship(
        "CertificationCategory",
        uselist=True,
        back_populates="certification",
        cascade="all, delete-orphan",
    )
    users: Mapped[List["User"]] = relationship(
        "User", uselist=True, back_populates="certification"
    )


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        ForeignKeyConstraint(
            ["certification_id"],
            ["certifications.id"],
            ondelete="SET NULL",
            name="fk_user_certification",
        ),
        Index("user_email", "email", unique=True),
        Index("fk_user_certification", "certification_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    email = mapped_column(String(255), nullable=False)
    password_hash = mapped_column(String(255), nullable=False)
    name = mapped_column(String(150))
    role = mapped_column(Enum("USER", "ADMIN"), nullable=False, default="USER")
    is_active = mapped_column(Boolean, nullable=False, default=True)
    points_balance = mapped_column(Integer, nullable=False, default=0)
    permissions = mapped_column(JSON)
    certificate_url = mapped_column(String(500))
    certification_id = mapped_column(Integer)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    certification: Mapped[Optional["Certification"]] = relationship(
        "Certification", back_populates="users"
    )
    cart: Mapped[Optional["Cart"]] = relationship(
        "Cart", uselist=False, back_populates="user", cascade="all, delete-orphan"
    )
    orders: Mapped[List["Order"]] = relationship(
        "Order", uselist=True, back_populates="user"
    )
    points_transactions: Mapped[List["PointsTransaction"]] = relationship(
        "PointsTransaction",
        uselist=True,
        back_populates="user",
        cascade="all, delete-orphan",
    )
    redemptions: Mapped[List["PointsRedemption"]] = relationship(
        "PointsRedemption",
        uselist=True,
        back_populates="user",
        cascade="all, delete-orphan",
    )
    affiliate: Mapped[Optional["Affiliate"]] = relationship(
        "Affiliate", uselist=False, back_populates="user", cascade="all, delete-orphan"
    )
    referral: Mapped[Optional["AffiliateReferral"]] = relationship(
        "AffiliateReferral",
        uselist=False,
        back_populates="referred_user",
        cascade="all, delete-orphan",
    )
    comments: Mapped[List["Comment"]] = relationship(
        "Comment",
        uselist=True,
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="Comment.user_id",
    )
    product_reviews: Mapped[List["ProductReview"]] = relationship(
        "ProductReview",
        uselist=True,
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="ProductReview.user_id",
    )
    notifications: Mapped[List["Notification"]] = relationship(
        "Notification",
        uselist=True,
        back_populates="user",
        cascade="all, delete-orphan",
    )
    coupon_usages: Mapped[List["CouponUsage"]] = relationship(
        "CouponUsage", uselist=True, back_populates="user", cascade="all, delete-orphan"
    )
    salons: Mapped[List["Salon"]] = relationship(
        "Salon", uselist=True, back_populates="user", foreign_keys="Salon.user_id"
    )


class BannedEmail(Base):
    __tablename__ = "banned_emails"
    __table_args__ = (
        ForeignKeyConstraint(
            ["banned_by"], ["users.id"], ondelete="SET NULL", name="fk_banned_by_user"
        ),
        Index("banned_email", "email", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    email = mapped_column(String(255), nullable=False)
    reason = mapped_column(String(500))
    banned_by = mapped_column(Integer)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (Index("category_slug", "slug", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(150), nullable=False)
    slug = mapped_column(String(180), nullable=False)
    description = mapped_column(Text)
    image = mapped_column(String(500))
    icon = mapped_column(String(255))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    products: Mapped[List["Product"]] = relationship(
        "Product", uselist=True, back_populates="category"
    )


class CertificationCategory(Base):
    __tablename__ = "certification_categories"
    __table_args__ = (
        ForeignKeyConstraint(
            ["certification_id"],
            ["certifications.id"],
            ondelete="CASCADE",
            name="fk_certcat_certification",
        ),
        ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            ondelete="CASCADE",
            name="fk_certcat_category",
        ),
        Index(
            "certification_category_unique",
            "certification_id",
            "category_id",
            unique=True,
        ),
    )

    id = mapped_column(Integer, primary_key=True)
    certification_id = mapped_column(Integer, nullable=False)
    category_id = mapped_column(Integer, nullable=False)

    certification: Mapped["Certification"] = relationship(
        "Certification", back_populates="certification_categories"
    )
    category: Mapped["Category"] = relationship("Category")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            ondelete="SET NULL",
            name="fk_product_category",
        ),
        Index("fk_product_category", "category_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(255), nullable=False)
    price = mapped_column(DECIMAL(10, 2), nullable=False)
    description = mapped_column(Text)
    sale_price = mapped_column(DECIMAL(10, 2))
    discount_percentage = mapped_column(Integer)
    image = mapped_column(String(500))
    images = mapped_column(JSON)
    category_id = mapped_column(Integer)
    featured = mapped_column(Boolean, nullable=False, default=False)
    attributes = mapped_column(JSON)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    category: Mapped[Optional["Category"]] = relationship(
        "Category", back_populates="products"
    )
    reviews: Mapped[List["ProductReview"]] = relationship(
        "ProductReview",
        uselist=True,
        back_populates="product",
        cascade="all, delete-orphan",
    )
    cart_items: Mapped[List["CartItem"]] = relationship(
        "CartItem", uselist=True, back_populates="product", cascade="all, delete-orphan"
    )
    order_items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem", uselist=True, back_populates="product"
    )


class Cart(Base):
    __tablename__ = "carts"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_cart_user"
        ),
        Index("cart_user_unique", "user_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    user: Mapped["User"] = relationship("User", back_populates="cart")
    items: Mapped[List["CartItem"]] = relationship(
        "CartItem", uselist=True, back_populates="cart", cascade="all, delete-orphan"
    )


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        ForeignKeyConstraint(
            ["cart_id"], ["carts.id"], ondelete="CASCADE", name="fk_cart_item_cart"
        ),
        ForeignKeyConstraint(
            ["product_id"],
            ["products.id"],
            ondelete="CASCADE",
            name="fk_cart_item_product",
        ),
        Index("cart_product_unique", "cart_id", "product_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    cart_id = mapped_column(Integer, nullable=False)
    product_id = mapped_column(Integer, nullable=False)
    quantity = mapped_column(Integer, nullable=False, default=1)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    cart: Mapped["Cart"] = relationship("Cart", back_populates="items")
    product: Mapped["Product"] = relationship("Product", back_populates="cart_items")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="SET NULL", name="fk_order_user"
        ),
        Index("fk_order_user", "user_id"),
        Index("order_status", "status"),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer)
    status = mapped_column(Enum(*ORDER_STATUSES), nullable=False, default="PENDING")
    subtotal = mapped_column(DECIMAL(10, 2), nullable=False, default=0)
    discount_amount = mapped_column(DECIMAL(10, 2), nullable=False, default=0)
    total = mapped_column(DECIMAL(10, 2), nullable=False)
    coupon_code = mapped_column(String(50))
    shipping_address = mapped_column(JSON)
    affiliate_referral_id = mapped_column(Integer)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    user: Mapped[Optional["User"]] = relationship("User", back_populates="orders")
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem", uselist=True, back_populates="order", cascade="all, delete-orphan"
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        ForeignKeyConstraint(
            ["order_id"], ["orders.id"], ondelete="CASCADE", name="fk_order_item_order"
        ),
        ForeignKeyConstraint(
            ["product_id"],
            ["products.id"],
            ondelete="SET NULL",
            name="fk_order_item_product",
        ),
        Index("fk_order_item_order", "order_id"),
        Index("fk_order_item_product", "product_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    order_id = mapped_column(Integer, nullable=False)
    product_id = mapped_column(Integer)
    product_name = mapped_column(String(255))
    quantity = mapped_column(Integer, nullable=False)
    price = mapped_column(DECIMAL(10, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped[Optional["Product"]] = relationship(
        "Product", back_populates="order_items"
    )


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (Index("coupon_code", "code", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    code = mapped_column(String(50), nullable=False)
    discount_type = mapped_column(Enum(*DISCOUNT_TYPES), nullable=False)
    discount_value = mapped_column(DECIMAL(10, 2), nullable=False)
    description = mapped_column(String(255))
    min_purchase_amount = mapped_column(DECIMAL(10, 2))
    max_discount_amount = mapped_column(DECIMAL(10, 2))
    min_purchase_includes_delivery = mapped_column(
        Boolean, nullable=False, default=False
    )
    usage_limit = mapped_column(Integer)
    user_usage_limit = mapped_column(Integer)
    used_count = mapped_column(Integer, nullable=False, default=0)
    valid_from = mapped_column(DateTime)
    valid_until = mapped_column(DateTime)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    source = mapped_column(
        Enum("MANUAL", "REDEMPTION"), nullable=False, default="MANUAL"
    )
    included_products = mapped_column(JSON)
    excluded_products = mapped_column(JSON)
    included_categories = mapped_column(JSON)
    excluded_categories = mapped_column(JSON)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    usages: Mapped[List["CouponUsage"]] = relationship(
        "CouponUsage", uselist=True, back_populates="coupon", cascade="all, delete-orphan"
    )


class CouponUsage(Base):
    __tablename__ = "coupon_usages"
    __table_args__ = (
        ForeignKeyConstraint(
            ["coupon_id"], ["coupons.id"], ondelete="CASCADE", name="fk_usage_coupon"
        ),
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_usage_user"
        ),
        ForeignKeyConstraint(
            ["order_id"], ["orders.id"], ondelete="SET NULL", name="fk_usage_order"
        ),
        Index("coupon_user", "coupon_id", "user_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    coupon_id = mapped_column(Integer, nullable=False)
    user_id = mapped_column(Integer, nullable=False)
    order_id = mapped_column(Integer)
    discount_amount = mapped_column(DECIMAL(10, 2), nullable=False, default=0)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    coupon: Mapped["Coupon"] = relationship("Coupon", back_populates="usages")
    user: Mapped["User"] = relationship("User", back_populates="coupon_usages")


class PointsConfiguration(Base):
    __tablename__ = "points_configurations"
    __table_args__ = (Index("points_config_action", "action_type", "is_active"),)

    id = mapped_column(Integer, primary_key=True)
    action_type = mapped_column(Enum(*POINTS_ACTION_TYPES), nullable=False)
    points_amount = mapped_column(Integer)
    tiered_config = mapped_column(JSON)
    min_order_value = mapped_column(DECIMAL(10, 2))
    max_points_per_transaction = mapped_column(Integer)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    valid_from = mapped_column(DateTime, nullable=False, server_default=func.now())
    valid_until = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )


class PointsTransaction(Base):
    __tablename__ = "points_transactions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_points_tx_user"
        ),
        Index("fk_points_tx_user", "user_id"),
    )

    id = mapped_column(BigIntegerPK, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    amount = mapped_column(Integer, nullable=False)
    type = mapped_column(Enum(*POINTS_TRANSACTION_TYPES), nullable=False)
    balance_before = mapped_column(Integer, nullable=False)
    balance_after = mapped_column(Integer, nullable=False)
    reference_id = mapped_column(String(64))
    description = mapped_column(String(255))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    user: Mapped["User"] = relationship("User", back_populates="points_transactions")


class Reward(Base):
    __tablename__ = "rewards"

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(150), nullable=False)
    points_cost = mapped_column(Integer, nullable=False)
    discount_type = mapped_column(Enum(*DISCOUNT_TYPES), nullable=False)
    discount_value = mapped_column(DECIMAL(10, 2), nullable=False)
    description = mapped_column(Text)
    min_purchase_amount = mapped_column(DECIMAL(10, 2))
    max_discount_amount = mapped_column(DECIMAL(10, 2))
    stock = mapped_column(Integer)
    redeemed_count = mapped_column(Integer, nullable=False, default=0)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    valid_from = mapped_column(DateTime, nullable=False, server_default=func.now())
    valid_until = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    redemptions: Mapped[List["PointsRedemption"]] = relationship(
        "PointsRedemption", uselist=True, back_populates="reward"
    )


class PointsRedemption(Base):
    __tablename__ = "points_redemptions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_redemption_user"
        ),
        ForeignKeyConstraint(
            ["reward_id"],
            ["rewards.id"],
            ondelete="SET NULL",
            name="fk_redemption_reward",
        ),
        ForeignKeyConstraint(
            ["coupon_id"],
            ["coupons.id"],
            ondelete="SET NULL",
            name="fk_redemption_coupon",
        ),
        Index("fk_redemption_user", "user_id"),
        Index("redemption_coupon_code", "coupon_code"),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    reward_id = mapped_column(Integer)
    coupon_id = mapped_column(Integer)
    points_spent = mapped_column(Integer, nullable=False)
    coupon_code = mapped_column(String(50), nullable=False)
    status = mapped_column(
        Enum(*REDEMPTION_STATUSES), nullable=False, default="PENDING"
    )
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    user: Mapped["User"] = relationship("User", back_populates="redemptions")
    reward: Mapped[Optional["Reward"]] = relationship(
        "Reward", back_populates="redemptions"
    )
    coupon: Mapped[Optional["Coupon"]] = relationship("Coupon")


class Affiliate(Base):
    __tablename__ = "affiliates"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_affiliate_user"
        ),
        Index("affiliate_user_unique", "user_id", unique=True),
        Index("affiliate_code_unique", "affiliate_code", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    affiliate_code = mapped_column(String(32), nullable=False)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    tier = mapped_column(Enum(*AFFILIATE_TIERS), nullable=False, default="BRONZE")
    tier_updated_at = mapped_column(DateTime)
    total_referrals = mapped_column(Integer, nullable=False, default=0)
    active_referrals = mapped_column(Integer, nullable=False, default=0)
    total_points_earned = mapped_column(Integer, nullable=False, default=0)
    current_points_balance = mapped_column(Integer, nullable=False, default=0)
    approved_at = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    user: Mapped["User"] = relationship("User", back_populates="affiliate")
    referrals: Mapped[List["AffiliateReferral"]] = relationship(
        "AffiliateReferral",
        uselist=True,
        back_populates="affiliate",
        cascade="all, delete-orphan",
    )
    clicks: Mapped[List["AffiliateLinkClick"]] = relationship(
        "AffiliateLinkClick",
        uselist=True,
        back_populates="affiliate",
        cascade="all, delete-orphan",
    )


class AffiliateReferral(Base):
    __tablename__ = "affiliate_referrals"
    __table_args__ = (
        ForeignKeyConstraint(
            ["affiliate_id"],
            ["affiliates.id"],
            ondelete="CASCADE",
            name="fk_referral_affiliate",
        ),
        ForeignKeyConstraint(
            ["referred_user_id"],
            ["users.id"],
            ondelete="CASCADE",
            name="fk_referral_user",
        ),
        Index("referred_user_unique", "referred_user_id", unique=True),
        Index("fk_referral_affiliate", "affiliate_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    affiliate_id = mapped_column(Integer, nullable=False)
    referred_user_id = mapped_column(Integer, nullable=False)
    status = mapped_column(Enum(*REFERRAL_STATUSES), nullable=False, default="PENDING")
    first_order_id = mapped_column(Integer)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    affiliate: Mapped["Affiliate"] = relationship(
        "Affiliate", back_populates="referrals"
    )
    referred_user: Mapped["User"] = relationship("User", back_populates="referral")


class AffiliateLinkClick(Base):
    __tablename__ = "affiliate_link_clicks"
    __table_args__ = (
        ForeignKeyConstraint(
            ["affiliate_id"],
            ["affiliates.id"],
            ondelete="CASCADE",
            name="fk_click_affiliate",
        ),
        Index("fk_click_affiliate", "affiliate_id"),
    )

    id = mapped_column(BigIntegerPK, primary_key=True)
    affiliate_id = mapped_column(Integer, nullable=False)
    ip_address = mapped_column(String(64))
    user_agent = mapped_column(String(500))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    affiliate: Mapped["Affiliate"] = relationship("Affiliate", back_populates="clicks")


class Blog(Base):
    __tablename__ = "blogs"
    __table_args__ = (Index("blog_slug", "slug", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    title = mapped_column(String(255), nullable=False)
    slug = mapped_column(String(255), nullable=False)
    excerpt = mapped_column(Text)
    content = mapped_column(Text)
    image = mapped_column(String(500))
    author = mapped_column(String(150))
    status = mapped_column(Enum(*PUBLISH_STATUSES), nullable=False, default="DRAFT")
    published_at = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    comments: Mapped[List["Comment"]] = relationship(
        "Comment", uselist=True, back_populates="blog", cascade="all, delete-orphan"
    )


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        ForeignKeyConstraint(
            ["blog_id"], ["blogs.id"], ondelete="CASCADE", name="fk_comment_blog"
        ),
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_comment_user"
        ),
        ForeignKeyConstraint(
            ["reviewed_by"],
            ["users.id"],
            ondelete="SET NULL",
            name="fk_comment_reviewer",
        ),
        Index("fk_comment_blog", "blog_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    blog_id = mapped_column(Integer, nullable=False)
    user_id = mapped_column(Integer, nullable=False)
    content = mapped_column(Text, nullable=False)
    status = mapped_column(
        Enum(*MODERATION_STATUSES), nullable=False, default="PENDING"
    )
    reviewed_by = mapped_column(Integer)
    reviewed_at = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    blog: Mapped["Blog"] = relationship("Blog", back_populates="comments")
    user: Mapped["User"] = relationship(
        "User", back_populates="comments", foreign_keys=[user_id]
    )


class ProductReview(Base):
    __tablename__ = "product_reviews"
    __table_args__ = (
        ForeignKeyConstraint(
            ["product_id"],
            ["products.id"],
            ondelete="CASCADE",
            name="fk_review_product",
        ),
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_review_user"
        ),
        ForeignKeyConstraint(
            ["reviewed_by"],
            ["users.id"],
            ondelete="SET NULL",
            name="fk_review_reviewer",
        ),
        Index("review_product_user", "product_id", "user_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    product_id = mapped_column(Integer, nullable=False)
    user_id = mapped_column(Integer, nullable=False)
    rating = mapped_column(Integer, nullable=False)
    content = mapped_column(Text, nullable=False)
    title = mapped_column(String(255))
    verified_buyer = mapped_column(Boolean, nullable=False, default=False)
    status = mapped_column(
        Enum(*MODERATION_STATUSES), nullable=False, default="PENDING"
    )
    company_response = mapped_column(Text)
    helpful_count = mapped_column(Integer, nullable=False, default=0)
    not_helpful_count = mapped_column(Integer, nullable=False, default=0)
    reviewed_by = mapped_column(Integer)
    reviewed_at = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    product: Mapped["Product"] = relationship("Product", back_populates="reviews")
    user: Mapped["User"] = relationship(
        "User", back_populates="product_reviews", foreign_keys=[user_id]
    )


class Salon(Base):
    __tablename__ = "salons"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="SET NULL", name="fk_salon_user"
        ),
        ForeignKeyConstraint(
            ["reviewed_by"],
            ["users.id"],
            ondelete="SET NULL",
            name="fk_salon_reviewer",
        ),
        Index("fk_salon_user", "user_id"),
        Index("salon_city", "city"),
    )

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(255), nullable=False)
    address = mapped_column(String(255), nullable=False)
    city = mapped_column(String(100), nullable=False)
    postal_code = mapped_column(String(20))
    phone = mapped_column(String(50))
    email = mapped_column(String(255))
    website = mapped_column(String(255))
    description = mapped_column(Text)
    latitude = mapped_column(DECIMAL(10, 7))
    longitude = mapped_column(DECIMAL(10, 7))
    status = mapped_column(
        Enum(*MODERATION_STATUSES), nullable=False, default="PENDING"
    )
    is_active = mapped_column(Boolean, nullable=False, default=False)
    rejection_reason = mapped_column(String(500))
    user_id = mapped_column(Integer)
    reviewed_by = mapped_column(Integer)
    reviewed_at = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    user: Mapped[Optional["User"]] = relationship(
        "User", back_populates="salons", foreign_keys=[user_id]
    )


class SocialMediaPost(Base):
    __tablename__ = "social_media_posts"
    __table_args__ = (
        ForeignKeyConstraint(
            ["created_by"], ["users.id"], ondelete="SET NULL", name="fk_post_creator"
        ),
        ForeignKeyConstraint(
            ["assigned_reviewer_id"],
            ["users.id"],
            ondelete="SET NULL",
            name="fk_post_assigned_reviewer",
        ),
        ForeignKeyConstraint(
            ["reviewed_by"], ["users.id"], ondelete="SET NULL", name="fk_post_reviewer"
        ),
        Index("post_scheduled_date", "scheduled_date"),
    )

    id = mapped_column(Integer, primary_key=True)
    platform = mapped_column(Enum(*SOCIAL_PLATFORMS), nullable=False)
    content_type = mapped_column(Enum(*SOCIAL_CONTENT_TYPES), nullable=False)
    scheduled_date = mapped_column(DateTime, nullable=False)
    caption = mapped_column(Text)
    images = mapped_column(JSON)
    videos = mapped_column(JSON)
    hashtags = mapped_column(JSON)
    status = mapped_column(Enum(*SOCIAL_STATUSES), nullable=False, default="DRAFT")
    created_by = mapped_column(Integer)
    assigned_reviewer_id = mapped_column(Integer)
    reviewed_by = mapped_column(Integer)
    reviewed_at = mapped_column(DateTime)
    review_comments = mapped_column(Text)
    published_at = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )


class GalleryItem(Base):
    __tablename__ = "gallery_items"
    __table_args__ = (
        ForeignKeyConstraint(
            ["folder_id"],
            ["gallery_items.id"],
            ondelete="CASCADE",
            name="fk_gallery_folder",
        ),
        Index("fk_gallery_folder", "folder_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(255), nullable=False)
    type = mapped_column(Enum("FILE", "FOLDER"), nullable=False)
    url = mapped_column(String(500))
    mime_type = mapped_column(String(100))
    size = mapped_column(BigInteger)
    folder_id = mapped_column(Integer)
    description = mapped_column(String(500))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    folder: Mapped[Optional["GalleryItem"]] = relationship(
        "GalleryItem", remote_side=[id], back_populates="items"
    )
    items: Mapped[List["GalleryItem"]] = relationship(
        "GalleryItem", uselist=True, back_populates="folder"
    )


class Page(Base):
    __tablename__ = "pages"
    __table_args__ = (Index("page_slug", "slug", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(255), nullable=False)
    slug = mapped_column(String(255), nullable=False)
    description = mapped_column(Text)
    content = mapped_column(Text)
    template = mapped_column(String(100), nullable=False, default="Default")
    status = mapped_column(Enum(*PUBLISH_STATUSES), nullable=False, default="DRAFT")
    sections = mapped_column(JSON)
    seo_title = mapped_column(String(255))
    seo_description = mapped_column(String(500))
    seo_url = mapped_column(String(255))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_notification_user"
        ),
        Index("fk_notification_user", "user_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    type = mapped_column(String(50), nullable=False)
    title = mapped_column(String(255), nullable=False)
    message = mapped_column(Text, nullable=False)
    user_id = mapped_column(Integer)
    image = mapped_column(String(500))
    link_url = mapped_column(String(500))
    details = mapped_column(JSON)
    read = mapped_column(Boolean, nullable=False, default=False)
    is_scheduled = mapped_column(Boolean, nullable=False, default=False)
    scheduled_for = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    user: Mapped[Optional["User"]] = relationship(
        "User", back_populates="notifications"
    )


class AdminLog(Base):
    __tablename__ = "admin_logs"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="SET NULL", name="fk_admin_log_user"
        ),
        Index("fk_admin_log_user", "user_id"),
        Index("admin_log_resource", "resource_type", "resource_id"),
        {"comment": "Audit trail of admin actions."},
    )

    id = mapped_column(BigIntegerPK, primary_key=True)
    action_type = mapped_column(Enum(*ADMIN_ACTION_TYPES), nullable=False)
    resource_type = mapped_column(String(64), nullable=False)
    description = mapped_column(String(500), nullable=False)
    user_id = mapped_column(Integer)
    resource_id = mapped_column(String(64))
    details = mapped_column(JSON)
    ip_address = mapped_column(String(64))
    user_agent = mapped_column(String(500))
    request_meta = mapped_column(JSON)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    user: Mapped[Optional["User"]] = relationship("User")
