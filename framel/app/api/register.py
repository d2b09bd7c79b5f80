from flask import Flask

from framel.app.ui import ui_bp
from framel.modules.account.routes import bp as account_bp
from framel.modules.admin.routes import api_bp as admin_api_bp
from framel.modules.admin.routes import bp as admin_bp
from framel.modules.auth.routes import bp as auth_bp
from framel.modules.cart.routes import bp as cart_bp
from framel.modules.catalog.routes import bp as catalog_bp
from framel.modules.orders.routes import bp as orders_bp
from framel.modules.wishlist.routes import bp as wishlist_bp


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(catalog_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(wishlist_bp)
    app.register_blueprint(account_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(admin_api_bp)
    app.register_blueprint(ui_bp)

    # Root API document for the storefront's own JSON endpoints
    @app.get("/api")
    def api_index():
        return {
            "name": "Framel storefront",
            "version": "0.1.0",
            "upstream": app.config["API_URL"],
            "endpoints": {
                "session": ["/api/session"],
                "cart": ["/api/cart/summary"],
                "payment": ["/api/payment/status/<checkout_request_id>"],
                "admin": ["/api/admin/stats"],
            },
        }, 200
