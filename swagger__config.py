# noqa: E402
"""
Swagger/OpenAPI configuration for the Bio Sculpture storefront and admin API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Bio Sculpture API",
        "description": "REST API for the Bio Sculpture nail-care storefront: catalog, cart and checkout, coupons, loyalty points, affiliates, content and the admin back office",
        "contact": {"email": "support@biosculpture.com"},
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Authentication", "description": "Registration, login and profile"},
        {"name": "Catalog", "description": "Categories and products"},
        {"name": "Cart", "description": "Shopping cart operations"},
        {"name": "Orders", "description": "Checkout and order history"},
        {"name": "Coupons", "description": "Discount codes"},
        {"name": "Affiliates", "description": "Referral program"},
        {"name": "Rewards", "description": "Points redemption"},
        {"name": "Blog", "description": "Blog posts and comments"},
        {"name": "Reviews", "description": "Product reviews"},
        {"name": "Salons", "description": "Salon directory and geocoding"},
        {"name": "Pages", "description": "CMS pages"},
        {"name": "Notifications", "description": "In-app notifications"},
        {"name": "Gallery", "description": "Media library"},
        {"name": "Social Media", "description": "Social media planning calendar"},
        {"name": "Admin", "description": "Back-office management"},
        {"name": "Utility", "description": "Health check"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "error"},
                "message": {"type": "string"},
                "details": {"type": "string"},
            },
        },
        "Success": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "success"},
                "message": {"type": "string"},
            },
        },
        "User": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "email": {"type": "string", "format": "email"},
                "name": {"type": "string"},
                "role": {"type": "string", "enum": ["USER", "ADMIN"]},
                "is_active": {"type": "boolean"},
                "points_balance": {"type": "integer"},
                "certification_id": {"type": "integer"},
            },
        },
        "Category": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "slug": {"type": "string"},
                "description": {"type": "string"},
                "image": {"type": "string"},
                "product_count": {"type": "integer"},
            },
        },
        "Product": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "description": {"type": "string"},
                "price": {"type": "number", "format": "float"},
                "sale_price": {"type": "number", "format": "float"},
                "discount_percentage": {"type": "integer"},
                "image": {"type": "string"},
                "images": {"type": "array", "items": {"type": "string"}},
                "category_id": {"type": "integer"},
                "featured": {"type": "boolean"},
            },
        },
        "Order": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "status": {
                    "type": "string",
                    "enum": ["PENDING", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED"],
                },
                "subtotal": {"type": "number", "format": "float"},
                "discount_amount": {"type": "number", "format": "float"},
                "total": {"type": "number", "format": "float"},
                "coupon_code": {"type": "string"},
                "items": {"type": "array", "items": {"type": "object"}},
            },
        },
        "Coupon": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "code": {"type": "string"},
                "discount_type": {"type": "string", "enum": ["PERCENTAGE", "FIXED"]},
                "discount_value": {"type": "number", "format": "float"},
                "usage_limit": {"type": "integer"},
                "used_count": {"type": "integer"},
                "valid_from": {"type": "string", "format": "date-time"},
                "valid_until": {"type": "string", "format": "date-time"},
                "is_active": {"type": "boolean"},
            },
        },
        "Salon": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "address": {"type": "string"},
                "city": {"type": "string"},
                "postal_code": {"type": "string"},
                "latitude": {"type": "number", "format": "float"},
                "longitude": {"type": "number", "format": "float"},
                "status": {"type": "string", "enum": ["PENDING", "APPROVED", "REJECTED"]},
                "is_active": {"type": "boolean"},
                "distance_km": {"type": "number", "format": "float"},
            },
        },
        "Pagination": {
            "type": "object",
            "properties": {
                "page": {"type": "integer"},
                "limit": {"type": "integer"},
                "total": {"type": "integer"},
                "totalPages": {"type": "integer"},
            },
        },
    },
}
